"""Handler protocol for persisting revision histories.

The orchestrator hands each finished batch to a handler. Handlers own the
write path; the orchestrator never touches the database directly.
"""

from typing import Protocol, Sequence, Set, runtime_checkable

from revtrail.schemas.revision_history import RevisionHistoryUpsert


@runtime_checkable
class RevisionHistoryHandler(Protocol):
    """Protocol defining the RevisionHistoryHandler interface.

    Contract:
    - Upserts MUST be full replaces keyed by record id (safe to retry)
    - A batch is written as one unit
    - Handlers MUST raise SyncFailureError for non-recoverable errors
    """

    @property
    def name(self) -> str:
        """Handler name for logging and debugging."""
        ...

    async def get_known_record_ids(self) -> Set[str]:
        """Ids of records that already have a stored history."""
        ...

    async def upsert_histories(self, histories: Sequence[RevisionHistoryUpsert]) -> None:
        """Store a batch of histories.

        Raises:
            SyncFailureError: The write failed
        """
        ...
