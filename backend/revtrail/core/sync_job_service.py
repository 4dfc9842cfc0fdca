"""In-memory single-slot store for the revision sync job.

At most one job record exists at a time. Readers always get a copy, so a
snapshot never changes under the caller.
"""

import asyncio
from datetime import timedelta
from typing import Optional
from uuid import UUID

from revtrail.core.config import settings
from revtrail.core.datetime_utils import utc_now_naive
from revtrail.core.logging import logger
from revtrail.core.shared_models import SyncJobStatus
from revtrail.schemas.sync_job import SyncJob


class SyncJobSlot:
    """Holds the current sync job and the task running it."""

    def __init__(
        self,
        stale_after_seconds: Optional[int] = None,
        retention_seconds: Optional[int] = None,
    ):
        """Initialize an empty slot."""
        self.stale_after = timedelta(
            seconds=(
                settings.SYNC_STALE_JOB_SECONDS
                if stale_after_seconds is None
                else stale_after_seconds
            )
        )
        self.retention = timedelta(
            seconds=(
                settings.SYNC_JOB_RETENTION_SECONDS
                if retention_seconds is None
                else retention_seconds
            )
        )
        self._job: Optional[SyncJob] = None
        self._task: Optional["asyncio.Task[SyncJob]"] = None

    def _expire(self) -> None:
        job = self._job
        if job is None or not job.is_terminal or job.ended_at is None:
            return
        if utc_now_naive() - job.ended_at > self.retention:
            logger.debug(f"Discarding sync job {job.id} after retention window")
            self._job = None
            self._task = None

    def current(self) -> Optional[SyncJob]:
        """The job in the slot, if any."""
        self._expire()
        return self._job.model_copy() if self._job else None

    def get(self, job_id: UUID) -> Optional[SyncJob]:
        """The job with ``job_id``, if it is the one in the slot."""
        job = self.current()
        return job if job is not None and job.id == job_id else None

    @property
    def task(self) -> Optional["asyncio.Task[SyncJob]"]:
        """Task running the current job."""
        return self._task

    def is_stale(self, job: SyncJob) -> bool:
        """Whether a running job has shown no activity for too long."""
        if job.is_terminal:
            return False
        return utc_now_naive() - job.last_activity_at > self.stale_after

    def compare_and_set(self, expected_id: Optional[UUID], job: SyncJob) -> bool:
        """Install ``job`` only if the slot still holds ``expected_id``.

        ``expected_id`` of None means the slot must be empty.
        """
        self._expire()
        current_id = self._job.id if self._job else None
        if current_id != expected_id:
            return False
        self._job = job.model_copy()
        self._task = None
        return True

    def attach_task(self, job_id: UUID, task: "asyncio.Task[SyncJob]") -> None:
        """Remember the task running ``job_id``."""
        if self._job is not None and self._job.id == job_id:
            self._task = task

    def save(self, job: SyncJob) -> bool:
        """Store a new snapshot of the job in the slot.

        Ignored when the slot has moved on to another job.
        """
        if self._job is None or self._job.id != job.id:
            return False
        job.last_activity_at = utc_now_naive()
        self._job = job.model_copy()
        return True

    def finish(self, job: SyncJob, status: SyncJobStatus, error: Optional[str] = None) -> SyncJob:
        """Mark ``job`` terminal and store it."""
        job.status = status
        job.error = error
        job.ended_at = utc_now_naive()
        self.save(job)
        return job

    def discard(self) -> Optional[SyncJob]:
        """Empty the slot, cancelling the running task if there is one."""
        job, task = self._job, self._task
        self._job = None
        self._task = None
        if task is not None and not task.done():
            task.cancel()
        return job
