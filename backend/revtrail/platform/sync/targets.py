"""Sources of the records a sync job walks over."""

from typing import List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from revtrail import crud
from revtrail.core.credential_store import DbContextFactory
from revtrail.db.session import get_db_context
from revtrail.platform.sync.exceptions import SyncFailureError
from revtrail.schemas.target_record import TargetRecordRef


class TargetRecordProvider(Protocol):
    """Lists the records to sync, in a stable order."""

    async def list_all_targets(self, limit: Optional[int] = None) -> List[TargetRecordRef]:
        """All target records, optionally capped."""
        ...


class DatabaseTargetRecordProvider:
    """Reads targets from the ``target_record`` table kept by the ingestion pipeline."""

    def __init__(self, db_context: Optional[DbContextFactory] = None):
        """Use ``db_context`` for sessions, defaulting to the app database."""
        self._db_context = db_context or get_db_context

    async def list_all_targets(self, limit: Optional[int] = None) -> List[TargetRecordRef]:
        """All target records, optionally capped."""
        try:
            async with self._db_context() as db:
                rows = await crud.target_record.list_all(db, limit=limit)
                return [TargetRecordRef.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            raise SyncFailureError(f"Could not load target records: {e}") from e
