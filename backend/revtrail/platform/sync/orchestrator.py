"""RevisionSyncOrchestrator - walks every target record in paced batches.

Records in a batch are fetched concurrently with isolated failures. After each
batch the records that produced events are written in one upsert, counters are
tallied in target order and progress is published. A rejected session ends the
job after its batch is persisted; any other per-record failure only bumps the
error count.
"""

import asyncio
import random
from typing import Awaitable, Callable, List, Optional, Sequence, Set, Union

import httpx
from pydantic import ValidationError

from revtrail.core.config import settings
from revtrail.core.datetime_utils import utc_now_naive
from revtrail.core.exceptions import CredentialsExpiredException
from revtrail.core.logging import ContextualLogger
from revtrail.core.logging import logger as default_logger
from revtrail.core.shared_models import SyncJobStatus
from revtrail.core.sync_job_service import SyncJobSlot
from revtrail.platform.sources.airtable_revisions import AirtableRevisionFetcher
from revtrail.platform.sync.exceptions import RecordProcessingError, SyncFailureError
from revtrail.platform.sync.handlers.protocol import RevisionHistoryHandler
from revtrail.platform.sync.state_publisher import ProgressObserver, SyncStatePublisher
from revtrail.platform.sync.targets import TargetRecordProvider
from revtrail.schemas.change_event import ChangeEvent
from revtrail.schemas.revision_history import RevisionHistoryUpsert
from revtrail.schemas.sync_job import SyncJob
from revtrail.schemas.target_record import TargetRecordRef

RecordOutcome = Union[List[ChangeEvent], BaseException]


def partition(targets: Sequence[TargetRecordRef], size: int) -> List[List[TargetRecordRef]]:
    """Split targets into consecutive batches of ``size``."""
    return [list(targets[i : i + size]) for i in range(0, len(targets), size)]


class RevisionSyncOrchestrator:
    """Runs one sync job to completion or failure."""

    def __init__(
        self,
        fetcher: AirtableRevisionFetcher,
        handler: RevisionHistoryHandler,
        target_provider: TargetRecordProvider,
        slot: Optional[SyncJobSlot] = None,
        observers: Optional[Sequence[ProgressObserver]] = None,
        batch_delay_seconds: Optional[float] = None,
        batch_delay_jitter_seconds: Optional[float] = None,
        max_targets: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the orchestrator.

        Args:
            fetcher: Revision fetcher
            handler: Persistence handler for finished batches
            target_provider: Source of target records
            slot: Job slot that receives snapshots while the job runs
            observers: Progress observers
            batch_delay_seconds: Pause between batches
            batch_delay_jitter_seconds: Random extra pause, up to this much
            max_targets: Optional cap on the number of targets
            sleep: Sleep used between batches
        """
        self.fetcher = fetcher
        self.handler = handler
        self.target_provider = target_provider
        self.slot = slot
        self.observers = list(observers or [])
        self.batch_delay = (
            settings.SYNC_BATCH_DELAY_SECONDS
            if batch_delay_seconds is None
            else batch_delay_seconds
        )
        self.batch_delay_jitter = (
            settings.SYNC_BATCH_DELAY_JITTER_SECONDS
            if batch_delay_jitter_seconds is None
            else batch_delay_jitter_seconds
        )
        self.max_targets = settings.SYNC_MAX_TARGETS if max_targets is None else max_targets
        self._sleep = sleep

    def _save(self, job: SyncJob) -> None:
        if self.slot is not None:
            self.slot.save(job)

    def _finish(self, job: SyncJob, status: SyncJobStatus, error: Optional[str] = None) -> None:
        if self.slot is not None:
            self.slot.finish(job, status, error)
        else:
            job.status = status
            job.error = error
            job.ended_at = utc_now_naive()

    async def _fetch_one(
        self, ref: TargetRecordRef, credential: str, logger: ContextualLogger
    ) -> List[ChangeEvent]:
        try:
            return await self.fetcher.fetch(ref.base_id, ref.table_id, ref.record_id, credential)
        except CredentialsExpiredException:
            raise
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            logger.warning(f"Failed to fetch revisions for {ref.record_id}: {e}")
            raise RecordProcessingError(ref.record_id, str(e)) from e

    async def run(self, job: SyncJob, credential: str) -> SyncJob:
        """Run ``job`` with ``credential`` and return its final state.

        Never raises for job-level failures; they end up in ``job.status`` and
        ``job.error``. Cancellation marks the job failed and propagates.
        """
        logger = default_logger.with_context(sync_job_id=str(job.id))
        publisher = SyncStatePublisher(logger, self.observers)
        batch_number = 0
        total_batches = 0

        try:
            targets = await self.target_provider.list_all_targets(limit=self.max_targets)
            known_ids = await self.handler.get_known_record_ids()
            batches = partition(targets, job.batch_size)
            total_batches = len(batches)
            job.total_targets = len(targets)
            self._save(job)
            logger.info(
                f"Starting revision sync: {len(targets)} records in {total_batches} "
                f"batches of {job.batch_size}"
            )

            for batch_number, batch in enumerate(batches, start=1):
                outcomes: List[RecordOutcome] = await asyncio.gather(
                    *(self._fetch_one(ref, credential, logger) for ref in batch),
                    return_exceptions=True,
                )
                await self._persist_batch(batch, outcomes)
                aborted = self._tally(job, batch, outcomes, known_ids, logger)
                if aborted is not None:
                    self._finish(job, SyncJobStatus.FAILED, aborted.message)
                    publisher.publish_completion(job, batch_number, total_batches)
                    return job

                self._save(job)
                publisher.publish_progress(job, batch_number, total_batches)

                if batch_number < total_batches:
                    await self._sleep(
                        self.batch_delay + random.uniform(0, self.batch_delay_jitter)
                    )

            self._finish(job, SyncJobStatus.COMPLETED)
        except asyncio.CancelledError:
            self._finish(job, SyncJobStatus.FAILED, "Sync job was cancelled")
            logger.warning("Sync job cancelled")
            raise
        except SyncFailureError as e:
            self._finish(job, SyncJobStatus.FAILED, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error during revision sync: {e}")
            self._finish(job, SyncJobStatus.FAILED, f"Unexpected error: {e}")

        publisher.publish_completion(job, batch_number, total_batches)
        return job

    async def _persist_batch(
        self, batch: Sequence[TargetRecordRef], outcomes: Sequence[RecordOutcome]
    ) -> None:
        histories = [
            RevisionHistoryUpsert(
                record_id=ref.record_id,
                base_id=ref.base_id,
                table_id=ref.table_id,
                revisions=outcome,
            )
            for ref, outcome in zip(batch, outcomes)
            if isinstance(outcome, list) and outcome
        ]
        await self.handler.upsert_histories(histories)

    def _tally(
        self,
        job: SyncJob,
        batch: Sequence[TargetRecordRef],
        outcomes: Sequence[RecordOutcome],
        known_ids: Set[str],
        logger: ContextualLogger,
    ) -> Optional[CredentialsExpiredException]:
        """Update counters in target order.

        Per-record errors count as processed. When the platform rejected the
        session anywhere in the batch, only the records whose events were
        persisted count as processed and the rejection adds a single error.
        Returns that rejection, if any.
        """
        for outcome in outcomes:
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
        aborted = next(
            (o for o in outcomes if isinstance(o, CredentialsExpiredException)), None
        )

        for ref, outcome in zip(batch, outcomes):
            if aborted is not None:
                if isinstance(outcome, list) and outcome:
                    self._count_success(job, ref, outcome, known_ids)
                continue
            if isinstance(outcome, BaseException):
                job.processed_count += 1
                job.error_count += 1
                if not isinstance(outcome, RecordProcessingError):
                    logger.warning(f"Unexpected error for {ref.record_id}: {outcome!r}")
                continue
            self._count_success(job, ref, outcome, known_ids)

        if aborted is not None:
            job.error_count += 1
            logger.error(f"Session rejected while fetching {aborted.record_id}, stopping job")
        return aborted

    @staticmethod
    def _count_success(
        job: SyncJob, ref: TargetRecordRef, events: List[ChangeEvent], known_ids: Set[str]
    ) -> None:
        job.processed_count += 1
        if events:
            job.succeeded_with_history_count += 1
            if ref.record_id in known_ids:
                job.updated_history_count += 1
            else:
                job.new_history_count += 1
        else:
            job.succeeded_without_history_count += 1
            if ref.record_id not in known_ids:
                job.still_without_history_count += 1
