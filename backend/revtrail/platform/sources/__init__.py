"""Retry-aware fetchers for platform data."""
