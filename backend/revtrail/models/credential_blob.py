"""Credential blob model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from revtrail.models._base import Base


class CredentialBlob(Base):
    """Browser-derived session credential.

    Single row. Written by login (mint) and by probes/401 observers (validity);
    everything else only reads it.
    """

    __tablename__ = "credential_blob"

    cookies: Mapped[str] = mapped_column(Text, nullable=False)
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_validated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    mfa_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
