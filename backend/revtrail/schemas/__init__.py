"""Pydantic schemas for revtrail."""

from .change_event import ChangeEvent
from .credential_blob import AcquiredCredential, CredentialBlob, SessionStatus
from .raw_activity import ActivityUser, RawActivity
from .revision_history import (
    RevisionHistory,
    RevisionHistoryBase,
    RevisionHistoryListing,
    RevisionHistoryStats,
    RevisionHistoryUpsert,
)
from .sync_job import SyncJob, SyncProgressUpdate
from .target_record import TargetRecordRef

__all__ = [
    "AcquiredCredential",
    "ActivityUser",
    "ChangeEvent",
    "CredentialBlob",
    "RawActivity",
    "RevisionHistory",
    "RevisionHistoryBase",
    "RevisionHistoryListing",
    "RevisionHistoryStats",
    "RevisionHistoryUpsert",
    "SessionStatus",
    "SyncJob",
    "SyncProgressUpdate",
    "TargetRecordRef",
]
