"""End-to-end tests for RevisionSyncOrchestrator.

Real SQLite persistence, real parser and fetcher; only the platform is mocked.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from revtrail import crud
from revtrail.core.credential_store import CredentialStore
from revtrail.core.exceptions import NoValidSessionException
from revtrail.core.revision_history_service import RevisionHistoryService
from revtrail.core.session_service import SessionService
from revtrail.core.shared_models import FieldKind, SessionState, SyncJobStatus
from revtrail.core.sync_job_service import SyncJobSlot
from revtrail.models import TargetRecord
from revtrail.platform.http_client.dispatcher import RateLimitedDispatcher
from revtrail.platform.rate_limiters import PacingRateLimiter
from revtrail.platform.sources.airtable_revisions import AirtableRevisionFetcher
from revtrail.platform.sync.exceptions import SyncFailureError
from revtrail.platform.sync.handlers.postgres import PostgresRevisionHistoryHandler
from revtrail.platform.sync.orchestrator import RevisionSyncOrchestrator, partition
from revtrail.platform.sync.targets import DatabaseTargetRecordProvider
from revtrail.schemas.revision_history import RevisionHistoryUpsert
from revtrail.schemas.sync_job import SyncJob
from revtrail.schemas.target_record import TargetRecordRef

ALICE_TO_BOB = (
    '<div class="historicalCellContainer"><div class="micro strong caps">Assignee</div>'
    '<div class="historicalCellValueContainer" columntypeifunchanged="select">'
    '<div class="choiceToken" style="background: red; text-decoration: line-through">'
    '<div class="truncate-pre" title="Alice">Alice</div></div>'
    '<div class="choiceToken" style="background: green">'
    '<div class="truncate-pre" title="Bob">Bob</div></div>'
    "</div></div>"
)


def alice_to_bob_response():
    """Row activity body with a single assignee change."""
    return httpx.Response(
        200,
        json={
            "msg": "SUCCESS",
            "data": {
                "rowActivityInfoById": {
                    "actA1": {
                        "createdTime": "2024-03-01T10:00:00.000Z",
                        "originatingUserId": "usr1",
                        "diffRowHtml": ALICE_TO_BOB,
                    }
                },
                "rowActivityOrCommentUserObjById": {
                    "usr1": {"id": "usr1", "name": "Erin", "email": "erin@example.com"}
                },
                "offsetV2": None,
            },
        },
    )


class RecordingObserver:
    """Collects progress updates."""

    def __init__(self):
        """Start empty."""
        self.updates = []

    def on_progress(self, update):
        """Record an update."""
        self.updates.append(update)


class BrokenObserver:
    """Observer that always fails."""

    def on_progress(self, update):
        """Fail."""
        raise RuntimeError("observer down")


async def seed_targets(db_context, record_ids):
    """Insert target records in one base and table."""
    async with db_context() as db:
        for record_id in record_ids:
            db.add(TargetRecord(record_id=record_id, base_id="appBase", table_id="tblTable"))
        await db.commit()


def build(db_context, no_sleep, routes, observers=None, handler=None):
    """Wire fetcher, handler and orchestrator around a mock platform."""
    calls = []

    def transport_handler(request):
        calls.append(request.url.path)
        record_id = request.url.path.split("/")[3]
        return routes[record_id]()

    client = httpx.AsyncClient(transport=httpx.MockTransport(transport_handler))
    dispatcher = RateLimitedDispatcher(
        client,
        PacingRateLimiter(min_interval_seconds=0, max_concurrency=3),
        max_attempts=2,
        sleep=no_sleep,
    )
    store = CredentialStore(db_context)
    fetcher = AirtableRevisionFetcher(dispatcher, store)
    slot = SyncJobSlot()
    orchestrator = RevisionSyncOrchestrator(
        fetcher=fetcher,
        handler=handler or PostgresRevisionHistoryHandler(db_context),
        target_provider=DatabaseTargetRecordProvider(db_context),
        slot=slot,
        observers=observers,
        batch_delay_seconds=1.0,
        batch_delay_jitter_seconds=0.5,
        sleep=no_sleep,
    )
    return orchestrator, fetcher, store, slot, calls


async def start(slot, orchestrator, batch_size, credential="session=abc"):
    """Install a job in the slot and run it to the end."""
    job = SyncJob(batch_size=batch_size)
    assert slot.compare_and_set(None, job)
    return await orchestrator.run(job, credential)


@pytest.mark.asyncio
async def test_session_rejection_fails_job_after_persisting_batch(db_context, no_sleep):
    """Test A (Alice to Bob), B (404), C (401) in one batch."""
    await seed_targets(db_context, ["recA", "recB", "recC"])
    routes = {
        "recA": alice_to_bob_response,
        "recB": lambda: httpx.Response(404),
        "recC": lambda: httpx.Response(401),
    }
    orchestrator, fetcher, store, slot, calls = build(db_context, no_sleep, routes)
    await store.save("session=abc")

    job = await start(slot, orchestrator, batch_size=5)

    assert job.status == SyncJobStatus.FAILED
    assert "expired" in job.error
    assert job.total_targets == 3
    assert job.processed_count == 1
    assert job.succeeded_with_history_count == 1
    assert job.succeeded_without_history_count == 0
    assert job.new_history_count == 1
    assert job.error_count == 1
    assert slot.get(job.id).status == SyncJobStatus.FAILED

    async with db_context() as db:
        stored = await crud.revision_history.get_by_record_id(db, "recA")
        assert await crud.revision_history.get_record_ids(db) == {"recA"}
    assert len(stored.revisions) == 1
    assert stored.revisions[0]["field_kind"] == FieldKind.ASSIGNEE.value
    assert stored.revisions[0]["old_value"] == "Alice"
    assert stored.revisions[0]["new_value"] == "Bob"
    assert stored.revisions[0]["actor"] == "Erin"

    validator = MagicMock()
    validator.validate = AsyncMock(return_value=True)
    session_service = SessionService(store, validator, acquirer=MagicMock())
    assert await session_service.get_state() == SessionState.INVALID

    service = RevisionHistoryService(
        session_service=session_service,
        fetcher=fetcher,
        handler=orchestrator.handler,
        orchestrator=orchestrator,
        slot=slot,
        db_context=db_context,
    )
    calls_before = len(calls)
    with pytest.raises(NoValidSessionException):
        await service.fetch_one_record_history(
            TargetRecordRef(base_id="appBase", table_id="tblTable", record_id="recA")
        )
    assert len(calls) == calls_before
    validator.validate.assert_not_called()


@pytest.mark.asyncio
async def test_rejection_batch_counts_only_persisted_records(db_context, no_sleep):
    """Test that a success after the rejecting record is still stored and counted."""
    await seed_targets(db_context, ["recA", "recB", "recC", "recD"])
    routes = {
        "recA": lambda: httpx.Response(401),
        "recB": alice_to_bob_response,
        "recC": lambda: httpx.Response(404),
        "recD": lambda: httpx.Response(500),
    }
    orchestrator, _, store, slot, _ = build(db_context, no_sleep, routes)
    await store.save("session=abc")

    job = await start(slot, orchestrator, batch_size=4)

    assert job.status == SyncJobStatus.FAILED
    assert job.processed_count == 1
    assert job.succeeded_with_history_count == 1
    assert job.succeeded_without_history_count == 0
    assert job.error_count == 1
    async with db_context() as db:
        assert await crud.revision_history.get_record_ids(db) == {"recB"}


@pytest.mark.asyncio
async def test_session_rejection_stops_later_batches(db_context, no_sleep):
    """Test that no batch runs after the one that saw the 401."""
    await seed_targets(db_context, ["recA", "recB", "recC"])
    routes = {
        "recA": alice_to_bob_response,
        "recB": lambda: httpx.Response(401),
        "recC": alice_to_bob_response,
    }
    orchestrator, _, store, slot, calls = build(db_context, no_sleep, routes)
    await store.save("session=abc")

    job = await start(slot, orchestrator, batch_size=1)

    assert job.status == SyncJobStatus.FAILED
    assert job.processed_count == 1
    assert job.error_count == 1
    assert not any("recC" in path for path in calls)


@pytest.mark.asyncio
async def test_per_record_errors_do_not_abort(db_context, no_sleep):
    """Test that transport/server errors are tallied and the job completes."""
    await seed_targets(db_context, ["recA", "recB", "recD"])
    routes = {
        "recA": alice_to_bob_response,
        "recB": lambda: httpx.Response(404),
        "recD": lambda: httpx.Response(500),
    }
    recording = RecordingObserver()
    orchestrator, _, store, slot, _ = build(
        db_context, no_sleep, routes, observers=[BrokenObserver(), recording]
    )
    await store.save("session=abc")

    job = await start(slot, orchestrator, batch_size=1)

    assert job.status == SyncJobStatus.COMPLETED
    assert job.processed_count == 3
    assert job.succeeded_with_history_count == 1
    assert job.succeeded_without_history_count == 1
    assert job.error_count == 1
    assert job.new_history_count == 1
    assert job.still_without_history_count == 1
    assert job.percentage == 100

    assert [u.batch_number for u in recording.updates] == [1, 2, 3, 3]
    assert recording.updates[-1].status == SyncJobStatus.COMPLETED
    assert recording.updates[0].processed == 1
    assert len(no_sleep.delays) == 2
    assert all(1.0 <= d <= 1.5 for d in no_sleep.delays)


@pytest.mark.asyncio
async def test_resync_replaces_and_counts_updates(db_context, no_sleep):
    """Test that a second run is idempotent and reported as an update."""
    await seed_targets(db_context, ["recA"])
    async with db_context() as db:
        await crud.revision_history.upsert(
            db,
            RevisionHistoryUpsert(
                record_id="recA", base_id="appBase", table_id="tblTable", revisions=[]
            ),
        )
    orchestrator, _, store, slot, _ = build(db_context, no_sleep, {"recA": alice_to_bob_response})
    await store.save("session=abc")

    job = await start(slot, orchestrator, batch_size=5)

    assert job.status == SyncJobStatus.COMPLETED
    assert job.updated_history_count == 1
    assert job.new_history_count == 0
    async with db_context() as db:
        assert await crud.revision_history.count(db) == 1
        stored = await crud.revision_history.get_by_record_id(db, "recA")
    assert [e["id"] for e in stored.revisions] == ["actA1"]


@pytest.mark.asyncio
async def test_persistence_failure_fails_job(db_context, no_sleep):
    """Test that a failed batch write ends the job."""
    await seed_targets(db_context, ["recA"])
    handler = MagicMock()
    handler.get_known_record_ids = AsyncMock(return_value=set())
    handler.upsert_histories = AsyncMock(side_effect=SyncFailureError("disk full"))
    orchestrator, _, store, slot, _ = build(
        db_context, no_sleep, {"recA": alice_to_bob_response}, handler=handler
    )
    await store.save("session=abc")

    job = await start(slot, orchestrator, batch_size=5)

    assert job.status == SyncJobStatus.FAILED
    assert job.error == "disk full"


@pytest.mark.asyncio
async def test_empty_target_set_completes(db_context, no_sleep):
    """Test a run with nothing to do."""
    orchestrator, _, _, slot, calls = build(db_context, no_sleep, {})

    job = await start(slot, orchestrator, batch_size=5)

    assert job.status == SyncJobStatus.COMPLETED
    assert job.total_targets == 0
    assert job.percentage == 100
    assert calls == []


def test_partition():
    """Test batch partitioning."""
    refs = [TargetRecordRef(base_id="b", table_id="t", record_id=f"r{i}") for i in range(7)]

    batches = partition(refs, 3)

    assert [len(b) for b in batches] == [3, 3, 1]
    assert [r.record_id for b in batches for r in b] == [r.record_id for r in refs]
