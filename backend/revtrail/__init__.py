"""Revision-history sync engine."""
