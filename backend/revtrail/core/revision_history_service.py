"""Service facade for revision history sync.

Everything an outer surface (HTTP routes, a CLI, a scheduler) needs goes
through ``RevisionHistoryService``; ``build_revision_history_service`` wires the
shared HTTP client, dispatcher and stores once.
"""

import asyncio
from typing import List, Optional
from uuid import UUID

import httpx

from revtrail import crud, schemas
from revtrail.core.config import settings
from revtrail.core.credential_store import CredentialStore, DbContextFactory
from revtrail.core.exceptions import NotFoundException, SyncJobConflictException
from revtrail.core.logging import logger
from revtrail.core.session_service import SessionService
from revtrail.core.sync_job_service import SyncJobSlot
from revtrail.db.session import get_db_context
from revtrail.platform.auth.playwright_acquirer import PlaywrightCredentialAcquirer
from revtrail.platform.auth.validator import SessionValidator
from revtrail.platform.http_client.dispatcher import RateLimitedDispatcher
from revtrail.platform.parsers.diff_parser import DiffParser
from revtrail.platform.rate_limiters import PacingRateLimiter
from revtrail.platform.sources.airtable_revisions import AirtableRevisionFetcher
from revtrail.platform.sync.handlers.postgres import PostgresRevisionHistoryHandler
from revtrail.platform.sync.handlers.protocol import RevisionHistoryHandler
from revtrail.platform.sync.orchestrator import RevisionSyncOrchestrator
from revtrail.platform.sync.targets import DatabaseTargetRecordProvider


class RevisionHistoryService:
    """Starts and tracks sync jobs and serves stored histories."""

    def __init__(
        self,
        session_service: SessionService,
        fetcher: AirtableRevisionFetcher,
        handler: RevisionHistoryHandler,
        orchestrator: RevisionSyncOrchestrator,
        slot: SyncJobSlot,
        db_context: Optional[DbContextFactory] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the facade from already wired collaborators."""
        self.session_service = session_service
        self.fetcher = fetcher
        self.handler = handler
        self.orchestrator = orchestrator
        self.slot = slot
        self._db_context = db_context or get_db_context
        self._http_client = http_client

    async def start_sync(
        self, batch_size: Optional[int] = None, force_restart: bool = False
    ) -> UUID:
        """Start a background sync job.

        Args:
            batch_size: Records fetched concurrently per batch
            force_restart: Cancel and replace a running job instead of failing

        Returns:
            Id of the new job

        Raises:
            NoValidSessionException: No usable session is stored
            SyncJobConflictException: Another live job is running
        """
        credential = await self.session_service.get_valid_credential()

        current = self.slot.current()
        if current is not None:
            if not current.is_terminal and not (force_restart or self.slot.is_stale(current)):
                raise SyncJobConflictException(current.id)
            if not current.is_terminal:
                reason = "forced restart" if force_restart else "stale"
                logger.warning(f"Replacing running sync job {current.id} ({reason})")
            self.slot.discard()

        job = schemas.SyncJob(batch_size=batch_size or settings.SYNC_DEFAULT_BATCH_SIZE)
        if not self.slot.compare_and_set(None, job):
            existing = self.slot.current()
            raise SyncJobConflictException(existing.id if existing else job.id)

        task = asyncio.create_task(self.orchestrator.run(job, credential))
        self.slot.attach_task(job.id, task)
        logger.info(f"Started sync job {job.id} (batch_size={job.batch_size})")
        return job.id

    def get_job_status(self, job_id: UUID) -> schemas.SyncJob:
        """Snapshot of a job.

        Raises:
            NotFoundException: Unknown id, or the job was already discarded
        """
        job = self.slot.get(job_id)
        if job is None:
            raise NotFoundException(f"Sync job {job_id} not found")
        return job

    async def wait_for_job(self, job_id: UUID) -> schemas.SyncJob:
        """Wait until a job ends and return its final snapshot.

        Cancelling the caller does not cancel the job, and a job cancelled by a
        replacement does not cancel the caller.

        Raises:
            NotFoundException: Unknown id, or the job was discarded while waiting
        """
        job = self.get_job_status(job_id)
        task = self.slot.task
        if not job.is_terminal and task is not None:
            await asyncio.wait({task})
        final = self.slot.get(job_id)
        if final is None:
            raise NotFoundException(f"Sync job {job_id} was discarded before it finished")
        return final

    async def fetch_one_record_history(
        self, ref: schemas.TargetRecordRef, persist: bool = True
    ) -> List[schemas.ChangeEvent]:
        """Fetch one record's history on demand.

        Raises:
            NoValidSessionException: No usable session is stored
            CredentialsExpiredException: The platform rejected the session
        """
        credential = await self.session_service.get_valid_credential()
        events = await self.fetcher.fetch(ref.base_id, ref.table_id, ref.record_id, credential)
        if persist and events:
            await self.handler.upsert_histories(
                [
                    schemas.RevisionHistoryUpsert(
                        record_id=ref.record_id,
                        base_id=ref.base_id,
                        table_id=ref.table_id,
                        revisions=events,
                    )
                ]
            )
        return events

    async def get_record_history(self, record_id: str) -> schemas.RevisionHistory:
        """Stored history of one record.

        Raises:
            NotFoundException: Nothing stored for the record
        """
        async with self._db_context() as db:
            row = await crud.revision_history.get_by_record_id(db, record_id)
            if row is None:
                raise NotFoundException(f"No revision history stored for {record_id}")
            return schemas.RevisionHistory.model_validate(row)

    async def list_histories(
        self,
        base_id: Optional[str] = None,
        table_id: Optional[str] = None,
        record_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> schemas.RevisionHistoryListing:
        """Stored histories matching the filters, with totals over all matches."""
        async with self._db_context() as db:
            rows = await crud.revision_history.list(
                db, base_id=base_id, table_id=table_id, record_id=record_id
            )
            stats = crud.revision_history.compute_stats(rows)
            selected = rows if limit is None else rows[:limit]
            histories = [schemas.RevisionHistory.model_validate(row) for row in selected]
        return schemas.RevisionHistoryListing(count=len(histories), stats=stats, histories=histories)

    async def acquire_session(
        self,
        email: Optional[str] = None,
        password: Optional[str] = None,
        otp_code: Optional[str] = None,
        debug: bool = False,
    ) -> schemas.SessionStatus:
        """Log in and store a new session."""
        return await self.session_service.acquire(email, password, otp_code=otp_code, debug=debug)

    async def validate_session(self) -> bool:
        """Probe the stored session now."""
        return await self.session_service.validate()

    async def session_status(self) -> schemas.SessionStatus:
        """Status of the stored session."""
        return await self.session_service.status()

    async def clear_session(self) -> int:
        """Delete the stored session."""
        return await self.session_service.clear()

    async def aclose(self) -> None:
        """Cancel the running job and close the shared HTTP client."""
        self.slot.discard()
        if self._http_client is not None:
            await self._http_client.aclose()


def build_revision_history_service(
    db_context: Optional[DbContextFactory] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> RevisionHistoryService:
    """Wire the service with one shared HTTP client and dispatcher."""
    http_client = http_client or httpx.AsyncClient(follow_redirects=False)
    dispatcher = RateLimitedDispatcher(http_client, PacingRateLimiter())
    store = CredentialStore(db_context)
    session_service = SessionService(
        store=store,
        validator=SessionValidator(dispatcher),
        acquirer=PlaywrightCredentialAcquirer(),
    )
    fetcher = AirtableRevisionFetcher(dispatcher, store, DiffParser())
    handler = PostgresRevisionHistoryHandler(db_context)
    slot = SyncJobSlot()
    orchestrator = RevisionSyncOrchestrator(
        fetcher=fetcher,
        handler=handler,
        target_provider=DatabaseTargetRecordProvider(db_context),
        slot=slot,
    )
    return RevisionHistoryService(
        session_service=session_service,
        fetcher=fetcher,
        handler=handler,
        orchestrator=orchestrator,
        slot=slot,
        db_context=db_context,
        http_client=http_client,
    )
