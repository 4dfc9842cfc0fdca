"""CRUD operations for stored revision histories.

Every write is a full replace of a record's event set, keyed by ``record_id``.
"""

from typing import Dict, List, Optional, Sequence, Set

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from revtrail.core.datetime_utils import utc_now_naive
from revtrail.core.shared_models import FieldKind
from revtrail.models.revision_history import RevisionHistory
from revtrail.schemas.revision_history import RevisionHistoryStats, RevisionHistoryUpsert


class CRUDRevisionHistory:
    """CRUD operations for revision histories."""

    def __init__(self):
        """Initialize the CRUD object."""
        self.model = RevisionHistory

    async def get_by_record_id(
        self, db: AsyncSession, record_id: str
    ) -> Optional[RevisionHistory]:
        """Get the stored history for one record.

        Args:
            db: Database session
            record_id: Record id

        Returns:
            RevisionHistory if stored, None otherwise
        """
        result = await db.execute(select(self.model).where(self.model.record_id == record_id))
        return result.scalar_one_or_none()

    async def get_many_by_record_ids(
        self, db: AsyncSession, record_ids: Sequence[str]
    ) -> Dict[str, RevisionHistory]:
        """Get stored histories for the given records, keyed by record id."""
        if not record_ids:
            return {}
        result = await db.execute(
            select(self.model).where(self.model.record_id.in_(list(record_ids)))
        )
        return {row.record_id: row for row in result.scalars().all()}

    async def get_record_ids(self, db: AsyncSession) -> Set[str]:
        """Get the ids of every record with a stored history."""
        result = await db.execute(select(self.model.record_id))
        return set(result.scalars().all())

    async def upsert(self, db: AsyncSession, obj_in: RevisionHistoryUpsert) -> RevisionHistory:
        """Insert or fully replace one record's history and commit."""
        rows = await self.bulk_upsert(db, [obj_in])
        return rows[0]

    async def bulk_upsert(
        self, db: AsyncSession, objs_in: Sequence[RevisionHistoryUpsert]
    ) -> List[RevisionHistory]:
        """Insert or fully replace several histories in a single commit.

        Args:
            db: Database session
            objs_in: Histories to store; a later entry for the same record wins

        Returns:
            Stored rows in input order (deduplicated by record id)
        """
        latest: Dict[str, RevisionHistoryUpsert] = {}
        for obj in objs_in:
            latest[obj.record_id] = obj
        if not latest:
            return []

        existing = await self.get_many_by_record_ids(db, list(latest))
        now = utc_now_naive()
        rows: List[RevisionHistory] = []
        for record_id, obj in latest.items():
            revisions = [event.model_dump(mode="json") for event in obj.revisions]
            row = existing.get(record_id)
            if row is None:
                row = self.model(
                    record_id=record_id,
                    base_id=obj.base_id,
                    table_id=obj.table_id,
                    revisions=revisions,
                )
                db.add(row)
            else:
                row.base_id = obj.base_id
                row.table_id = obj.table_id
                row.revisions = revisions
                row.modified_at = now
            rows.append(row)

        await db.commit()
        for row in rows:
            await db.refresh(row)
        return rows

    async def list(
        self,
        db: AsyncSession,
        base_id: Optional[str] = None,
        table_id: Optional[str] = None,
        record_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[RevisionHistory]:
        """List stored histories, most recently modified first.

        Args:
            db: Database session
            base_id: Only histories from this base
            table_id: Only histories from this table
            record_id: Only the history of this record
            limit: Optional cap on the number of rows

        Returns:
            Matching histories
        """
        query = select(self.model)
        if base_id:
            query = query.where(self.model.base_id == base_id)
        if table_id:
            query = query.where(self.model.table_id == table_id)
        if record_id:
            query = query.where(self.model.record_id == record_id)
        query = query.order_by(self.model.modified_at.desc())
        if limit is not None:
            query = query.limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def count(self, db: AsyncSession) -> int:
        """Count stored histories."""
        result = await db.execute(select(func.count()).select_from(self.model))
        return result.scalar_one()

    @staticmethod
    def compute_stats(rows: Sequence[RevisionHistory]) -> RevisionHistoryStats:
        """Totals over a set of stored histories."""
        stats = RevisionHistoryStats(total_records=len(rows))
        for row in rows:
            for event in row.revisions or []:
                stats.total_revisions += 1
                kind = event.get("field_kind")
                if kind == FieldKind.ASSIGNEE.value:
                    stats.assignee_changes += 1
                elif kind == FieldKind.STATUS.value:
                    stats.status_changes += 1
        return stats


revision_history = CRUDRevisionHistory()
