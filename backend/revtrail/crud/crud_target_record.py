"""Read-only CRUD for target records.

Rows belong to the ingestion pipeline; nothing here writes them.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from revtrail.models.target_record import TargetRecord


class CRUDTargetRecord:
    """Read operations for target records."""

    def __init__(self):
        """Initialize the CRUD object."""
        self.model = TargetRecord

    async def list_all(self, db: AsyncSession, limit: Optional[int] = None) -> List[TargetRecord]:
        """List target records in a stable order.

        Args:
            db: Database session
            limit: Optional cap on the number of rows

        Returns:
            List of target records ordered by base, table and record id
        """
        query = select(self.model).order_by(
            self.model.base_id, self.model.table_id, self.model.record_id
        )
        if limit is not None:
            query = query.limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())


target_record = CRUDTargetRecord()
