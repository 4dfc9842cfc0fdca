"""Shared exceptions for revtrail."""

from typing import Optional
from uuid import UUID


class RevtrailException(Exception):
    """Base exception for revtrail errors."""

    def __init__(self, message: Optional[str] = None):
        """Store the message for callers that render it."""
        self.message = message or self.__class__.__doc__ or self.__class__.__name__
        super().__init__(self.message)


class NotFoundException(RevtrailException):
    """Raised when a requested object does not exist."""


class NoValidSessionException(RevtrailException):
    """Raised when no usable session credential is stored.

    Covers both "never acquired" and "known to be invalid". Recovery requires an
    explicit acquisition; the accessor never logs in on its own.
    """

    def __init__(self, message: Optional[str] = None):
        """Create the exception with the standard re-authentication hint."""
        super().__init__(
            message or "No valid session available. Acquire a new session before syncing."
        )


class CredentialsExpiredException(RevtrailException):
    """Raised when the remote platform rejects the session (401/403).

    Fatal to any running sync job.
    """

    def __init__(self, status_code: int, record_id: Optional[str] = None):
        """Record the rejecting status and, if known, the record being fetched."""
        self.status_code = status_code
        self.record_id = record_id
        super().__init__(f"Session credentials expired (HTTP {status_code}). Re-authenticate.")


class OtpCodeRequiredException(RevtrailException):
    """Raised when login asks for a one-time code that was not supplied."""

    def __init__(self):
        """Create the exception."""
        super().__init__("One-time code required to complete login")


class SessionAcquisitionException(RevtrailException):
    """Raised when interactive login fails for any reason other than a missing code."""


class SyncJobConflictException(RevtrailException):
    """Raised when a sync is requested while another live job is running."""

    def __init__(self, existing_job_id: UUID):
        """Keep the id of the job that blocked the request."""
        self.existing_job_id = existing_job_id
        super().__init__(f"Sync job {existing_job_id} is already running")
