"""CRUD singletons."""

from .crud_credential_blob import credential_blob
from .crud_revision_history import revision_history
from .crud_target_record import target_record

__all__ = ["credential_blob", "revision_history", "target_record"]
