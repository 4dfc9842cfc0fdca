"""Database session and initialization helpers."""
