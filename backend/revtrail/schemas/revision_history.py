"""Stored revision history schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from revtrail.schemas.change_event import ChangeEvent


class RevisionHistoryBase(BaseModel):
    """Latest known set of change events for one record."""

    record_id: str = Field(..., description="Record id, unique per stored history")
    base_id: str = Field(..., description="Base the record lives in")
    table_id: str = Field(..., description="Table the record lives in")
    revisions: List[ChangeEvent] = Field(default_factory=list)

    class Config:
        """Pydantic config."""

        from_attributes = True


class RevisionHistoryUpsert(RevisionHistoryBase):
    """Schema for a full-replace upsert of one record's history."""

    pass


class RevisionHistory(RevisionHistoryBase):
    """Stored revision history."""

    id: UUID
    created_at: datetime
    modified_at: Optional[datetime] = None


class RevisionHistoryStats(BaseModel):
    """Totals over a set of stored histories."""

    total_records: int = 0
    total_revisions: int = 0
    assignee_changes: int = 0
    status_changes: int = 0


class RevisionHistoryListing(BaseModel):
    """Filtered listing of stored histories with totals."""

    count: int
    stats: RevisionHistoryStats
    histories: List[RevisionHistory]
