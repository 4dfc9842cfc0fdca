"""PostgreSQL handler for revision history persistence.

Writes each batch in a single transaction through ``crud.revision_history``.
"""

import asyncio
from typing import Optional, Sequence, Set

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from revtrail import crud
from revtrail.core.credential_store import DbContextFactory
from revtrail.core.logging import ContextualLogger
from revtrail.core.logging import logger as default_logger
from revtrail.db.session import get_db_context
from revtrail.platform.sync.exceptions import SyncFailureError
from revtrail.schemas.revision_history import RevisionHistoryUpsert


class PostgresRevisionHistoryHandler:
    """Handler for the ``revision_history`` table."""

    def __init__(
        self,
        db_context: Optional[DbContextFactory] = None,
        logger: Optional[ContextualLogger] = None,
        max_retries: int = 3,
    ):
        """Initialize the handler.

        Args:
            db_context: Session factory, defaults to the app database
            logger: Contextual logger
            max_retries: Retries on deadlock
        """
        self._db_context = db_context or get_db_context
        self._logger = logger or default_logger.with_context(component="postgres_handler")
        self._max_retries = max_retries

    @property
    def name(self) -> str:
        """Handler name."""
        return "postgres_revision_history"

    async def get_known_record_ids(self) -> Set[str]:
        """Ids of records that already have a stored history."""
        try:
            async with self._db_context() as db:
                return await crud.revision_history.get_record_ids(db)
        except SQLAlchemyError as e:
            raise SyncFailureError(f"[Postgres] Could not load stored record ids: {e}") from e

    async def upsert_histories(self, histories: Sequence[RevisionHistoryUpsert]) -> None:
        """Write a batch with deadlock retry.

        Args:
            histories: Histories to store, one per record
        """
        if not histories:
            return

        for attempt in range(self._max_retries + 1):
            try:
                async with self._db_context() as db:
                    await crud.revision_history.bulk_upsert(db, histories)
                self._logger.debug(f"[Postgres] Persisted {len(histories)} revision histories")
                return
            except DBAPIError as e:
                is_deadlock = "deadlock detected" in str(e).lower()
                if is_deadlock and attempt < self._max_retries:
                    wait_time = 0.1 * (2**attempt)
                    self._logger.warning(
                        f"[Postgres] Deadlock detected, retrying in {wait_time}s "
                        f"(attempt {attempt + 1}/{self._max_retries})"
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise SyncFailureError(f"[Postgres] Database error: {e}") from e
            except SQLAlchemyError as e:
                raise SyncFailureError(f"[Postgres] Database error: {e}") from e
