"""Credential blob schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from revtrail.core.shared_models import SessionState


class CredentialBlob(BaseModel):
    """Browser-derived session credential."""

    id: UUID
    cookies: str = Field(..., description="Serialized cookie header value")
    is_valid: bool = True
    last_validated_at: Optional[datetime] = None
    mfa_required: bool = False
    created_at: datetime
    modified_at: Optional[datetime] = None

    class Config:
        """Pydantic config."""

        from_attributes = True


class AcquiredCredential(BaseModel):
    """What a login run hands back before it is stored."""

    cookies: str
    mfa_required: bool = False
    cookie_names: list[str] = Field(default_factory=list)


class SessionStatus(BaseModel):
    """Status view of the stored credential; never exposes the cookies."""

    has_credential: bool
    state: SessionState
    is_valid: bool
    last_validated_at: Optional[datetime] = None
    mfa_required: Optional[bool] = None
