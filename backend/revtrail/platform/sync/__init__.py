"""Revision sync: batching, persistence handlers and progress publishing."""
