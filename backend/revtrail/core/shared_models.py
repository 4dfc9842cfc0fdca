"""Enums shared across layers."""

from enum import Enum


class SessionState(str, Enum):
    """Lifecycle state of the stored session credential."""

    ABSENT = "absent"
    VALID = "valid"
    STALE = "stale"
    INVALID = "invalid"


class ProbeOutcome(str, Enum):
    """Result of probing the remote platform with a credential."""

    VALID = "valid"
    INVALID = "invalid"
    INCONCLUSIVE = "inconclusive"


class SyncJobStatus(str, Enum):
    """Sync job status enum."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class FieldKind(str, Enum):
    """Tracked field kinds. Every other field type is dropped by the parser."""

    ASSIGNEE = "assignee"
    STATUS = "status"


class TokenPolarity(str, Enum):
    """Whether a rendered value token was removed or added by a change."""

    ADDED = "added"
    REMOVED = "removed"
