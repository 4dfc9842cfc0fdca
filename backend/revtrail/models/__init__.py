"""SQLAlchemy models for revtrail."""

from ._base import Base
from .credential_blob import CredentialBlob
from .revision_history import RevisionHistory
from .target_record import TargetRecord

__all__ = ["Base", "CredentialBlob", "RevisionHistory", "TargetRecord"]
