"""Sync job schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, computed_field

from revtrail.core.datetime_utils import utc_now_naive
from revtrail.core.shared_models import SyncJobStatus


class SyncJob(BaseModel):
    """Snapshot of a revision sync job.

    ``error_count`` is kept apart from ``succeeded_without_history_count`` so
    "nothing to find" never looks like "something went wrong".
    """

    id: UUID = Field(default_factory=uuid4)
    status: SyncJobStatus = SyncJobStatus.RUNNING
    batch_size: int = Field(..., gt=0)
    started_at: datetime = Field(default_factory=utc_now_naive)
    ended_at: Optional[datetime] = None
    last_activity_at: datetime = Field(default_factory=utc_now_naive)

    total_targets: int = 0
    processed_count: int = 0
    succeeded_with_history_count: int = 0
    succeeded_without_history_count: int = 0
    error_count: int = 0

    # Compared against histories stored before the run
    new_history_count: int = 0
    updated_history_count: int = 0
    still_without_history_count: int = 0

    error: Optional[str] = None

    @computed_field(return_type=int)
    def percentage(self) -> int:
        """Share of targets processed, rounded."""
        if not self.total_targets:
            return 100 if self.is_terminal else 0
        return round(self.processed_count * 100 / self.total_targets)

    @property
    def is_terminal(self) -> bool:
        """Whether the job reached completed or failed."""
        return self.status != SyncJobStatus.RUNNING


class SyncProgressUpdate(BaseModel):
    """Progress snapshot handed to progress observers after each batch."""

    job_id: UUID
    status: SyncJobStatus = SyncJobStatus.RUNNING
    batch_number: int = 0
    total_batches: int = 0
    processed: int
    total: int
    with_history: int
    without_history: int
    errors: int
    new_histories: int = 0
    updated_histories: int = 0
    percentage: int
    error: Optional[str] = None
    last_update_timestamp: str
