"""Revision history model."""

from typing import Any, Dict, List

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from revtrail.models._base import Base


class RevisionHistory(Base):
    """Latest full set of assignee/status change events for one record.

    Upserts replace ``revisions`` wholesale; this is a snapshot, not a log.
    """

    __tablename__ = "revision_history"

    record_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    base_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    table_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    revisions: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (Index("ix_revision_history_base_table", "base_id", "table_id"),)
