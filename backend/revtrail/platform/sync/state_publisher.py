"""Sync state publisher for progress observers.

Reads the job's counters and pushes a ``SyncProgressUpdate`` to every
registered observer after each batch and once when the job ends. Observers are
called synchronously, in registration order; an observer that raises is logged
and skipped.
"""

from datetime import datetime, timezone
from typing import List, Optional, Protocol, Sequence

from revtrail.core.logging import ContextualLogger
from revtrail.core.shared_models import SyncJobStatus
from revtrail.schemas.sync_job import SyncJob, SyncProgressUpdate


class ProgressObserver(Protocol):
    """Receives progress snapshots of a running job."""

    def on_progress(self, update: SyncProgressUpdate) -> None:
        """Handle one snapshot."""
        ...


class SyncStatePublisher:
    """Publishes job progress to observers and to the log."""

    def __init__(
        self,
        logger: ContextualLogger,
        observers: Optional[Sequence[ProgressObserver]] = None,
        status_log_interval: int = 10,
    ):
        """Initialize the state publisher.

        Args:
            logger: Contextual logger, usually bound to the job id
            observers: Progress observers
            status_log_interval: Log a status line every this many batches
        """
        self.logger = logger
        self._observers: List[ProgressObserver] = list(observers or [])
        self._status_log_interval = max(status_log_interval, 1)

    def add_observer(self, observer: ProgressObserver) -> None:
        """Register another observer."""
        self._observers.append(observer)

    def _build_update(
        self, job: SyncJob, batch_number: int, total_batches: int
    ) -> SyncProgressUpdate:
        return SyncProgressUpdate(
            job_id=job.id,
            status=job.status,
            batch_number=batch_number,
            total_batches=total_batches,
            processed=job.processed_count,
            total=job.total_targets,
            with_history=job.succeeded_with_history_count,
            without_history=job.succeeded_without_history_count,
            errors=job.error_count,
            new_histories=job.new_history_count,
            updated_histories=job.updated_history_count,
            percentage=job.percentage,
            error=job.error,
            last_update_timestamp=datetime.now(timezone.utc).isoformat(),
        )

    def _notify(self, update: SyncProgressUpdate) -> None:
        for observer in self._observers:
            try:
                observer.on_progress(update)
            except Exception as e:
                self.logger.error(f"Progress observer {observer!r} failed: {e}")

    def publish_progress(self, job: SyncJob, batch_number: int, total_batches: int) -> None:
        """Publish the state after a batch."""
        update = self._build_update(job, batch_number, total_batches)
        self._notify(update)
        if batch_number % self._status_log_interval == 0 or batch_number == total_batches:
            self.logger.info(
                f"Batch {batch_number}/{total_batches}: {job.processed_count}/"
                f"{job.total_targets} processed ({job.percentage}%), "
                f"{job.succeeded_with_history_count} with history, "
                f"{job.succeeded_without_history_count} without, {job.error_count} errors"
            )

    def publish_completion(self, job: SyncJob, batch_number: int, total_batches: int) -> None:
        """Publish the final state and log the summary."""
        self._notify(self._build_update(job, batch_number, total_batches))
        summary = (
            f"processed={job.processed_count}/{job.total_targets} "
            f"with_history={job.succeeded_with_history_count} "
            f"without_history={job.succeeded_without_history_count} "
            f"errors={job.error_count} new={job.new_history_count} "
            f"updated={job.updated_history_count} "
            f"still_none={job.still_without_history_count}"
        )
        if job.status == SyncJobStatus.FAILED:
            self.logger.error(f"Sync job failed: {job.error} ({summary})")
        else:
            self.logger.info(f"Sync job completed ({summary})")
