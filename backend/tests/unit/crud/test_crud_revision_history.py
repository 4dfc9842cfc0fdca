"""Tests for revision history and credential blob CRUD on SQLite."""

from datetime import datetime

import pytest

from revtrail import crud
from revtrail.core.shared_models import FieldKind
from revtrail.schemas.change_event import ChangeEvent
from revtrail.schemas.revision_history import RevisionHistoryUpsert


def event(event_id, kind=FieldKind.ASSIGNEE, old="Alice", new="Bob", record_id="recA"):
    """Change event with fixed timestamps."""
    return ChangeEvent(
        id=event_id,
        record_id=record_id,
        field_kind=kind,
        old_value=old,
        new_value=new,
        occurred_at=datetime(2024, 3, 1, 12, 0),
        actor="Erin",
    )


def history(record_id, events, base_id="appBase", table_id="tblTable"):
    """Upsert payload."""
    return RevisionHistoryUpsert(
        record_id=record_id, base_id=base_id, table_id=table_id, revisions=events
    )


@pytest.mark.asyncio
async def test_upsert_twice_keeps_only_latest_set(db_context):
    """Test that a second upsert replaces the whole event set."""
    async with db_context() as db:
        await crud.revision_history.upsert(db, history("recA", [event("act1"), event("act2")]))
        await crud.revision_history.upsert(db, history("recA", [event("act3")]))

        row = await crud.revision_history.get_by_record_id(db, "recA")
        assert await crud.revision_history.count(db) == 1

    assert [e["id"] for e in row.revisions] == ["act3"]
    assert row.revisions[0]["old_value"] == "Alice"
    assert row.revisions[0]["field_kind"] == "assignee"


@pytest.mark.asyncio
async def test_bulk_upsert_inserts_and_updates_in_one_call(db_context):
    """Test a mixed batch of new and existing records."""
    async with db_context() as db:
        await crud.revision_history.upsert(db, history("recA", [event("act1")]))
        rows = await crud.revision_history.bulk_upsert(
            db,
            [
                history("recA", [event("act2")]),
                history("recB", [event("act3", record_id="recB")]),
            ],
        )
        assert [r.record_id for r in rows] == ["recA", "recB"]
        assert await crud.revision_history.get_record_ids(db) == {"recA", "recB"}

        stored = await crud.revision_history.get_many_by_record_ids(db, ["recA", "recB", "recZ"])

    assert set(stored) == {"recA", "recB"}
    assert stored["recA"].revisions[0]["id"] == "act2"


@pytest.mark.asyncio
async def test_bulk_upsert_empty_is_noop(db_context):
    """Test that an empty batch writes nothing."""
    async with db_context() as db:
        assert await crud.revision_history.bulk_upsert(db, []) == []
        assert await crud.revision_history.count(db) == 0


@pytest.mark.asyncio
async def test_list_filters_and_stats(db_context):
    """Test filtering by base/table/record and the computed totals."""
    async with db_context() as db:
        await crud.revision_history.bulk_upsert(
            db,
            [
                history(
                    "recA",
                    [event("a1"), event("a2", kind=FieldKind.STATUS, old=None, new="Done")],
                ),
                history("recB", [event("b1", record_id="recB")], table_id="tblOther"),
                history("recC", [event("c1", record_id="recC")], base_id="appOther"),
            ],
        )

        in_base = await crud.revision_history.list(db, base_id="appBase")
        in_table = await crud.revision_history.list(db, base_id="appBase", table_id="tblTable")
        single = await crud.revision_history.list(db, record_id="recC")
        limited = await crud.revision_history.list(db, limit=1)

    assert {r.record_id for r in in_base} == {"recA", "recB"}
    assert [r.record_id for r in in_table] == ["recA"]
    assert [r.record_id for r in single] == ["recC"]
    assert len(limited) == 1

    stats = crud.revision_history.compute_stats(in_base)
    assert stats.total_records == 2
    assert stats.total_revisions == 3
    assert stats.assignee_changes == 2
    assert stats.status_changes == 1


@pytest.mark.asyncio
async def test_credential_blob_lifecycle(db_context):
    """Test upsert, invalidation, revalidation and deletion of the single blob."""
    async with db_context() as db:
        assert await crud.credential_blob.get_current(db) is None
        assert await crud.credential_blob.mark_invalid(db) is None

        first = await crud.credential_blob.upsert(db, "a=1", mfa_required=True)
        assert first.is_valid is True
        assert first.last_validated_at is not None

        second = await crud.credential_blob.upsert(db, "a=2")
        assert second.id == first.id
        assert second.cookies == "a=2"
        assert second.mfa_required is False

        invalid = await crud.credential_blob.mark_invalid(db)
        assert invalid.is_valid is False

        revalidated = await crud.credential_blob.mark_validated(db)
        assert revalidated.is_valid is True

        assert await crud.credential_blob.delete_all(db) == 1
        assert await crud.credential_blob.get_current(db) is None


@pytest.mark.asyncio
async def test_credential_invalidation_matches_cookies(db_context):
    """Test that rejecting old cookies leaves a newer credential valid."""
    async with db_context() as db:
        await crud.credential_blob.upsert(db, "session=new")

        assert await crud.credential_blob.mark_invalid(db, cookies="session=old") is None
        assert (await crud.credential_blob.get_current(db)).is_valid is True

        invalid = await crud.credential_blob.mark_invalid(db, cookies="session=new")
        assert invalid.is_valid is False
