"""Platform integration: auth, HTTP dispatch, parsing, fetching and sync."""
