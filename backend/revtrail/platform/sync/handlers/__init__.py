"""Handlers that persist the results of a sync batch."""

from .postgres import PostgresRevisionHistoryHandler
from .protocol import RevisionHistoryHandler

__all__ = ["PostgresRevisionHistoryHandler", "RevisionHistoryHandler"]
