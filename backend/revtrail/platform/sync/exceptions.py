"""Sync-specific exceptions for error handling."""


class RecordProcessingError(Exception):
    """Raised when revision history for one record cannot be fetched or parsed.

    This is a recoverable error - the job continues with other records and the
    record is counted in ``error_count``.

    Examples:
    - 429 persisted through every retry
    - Unexpected 5xx from the platform
    - Transport failure (timeout, connection reset)
    """

    def __init__(self, record_id: str, reason: str):
        """Keep the failing record id next to the reason."""
        self.record_id = record_id
        self.reason = reason
        super().__init__(f"Failed to process record {record_id}: {reason}")


class SyncFailureError(Exception):
    """Raised when a critical error occurs that should fail the entire job.

    This is a non-recoverable error - the job is terminated immediately.

    Examples:
    - Database write of a batch failed
    - Target records could not be loaded
    """

    pass


class DiffParseError(Exception):
    """Raised when one activity's diff fragment cannot be turned into events.

    Caught per activity by the parser and logged as a warning; the remaining
    activities are still parsed.
    """

    pass
