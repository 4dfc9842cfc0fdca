"""Target record model.

Rows are written by the record ingestion pipeline; the sync engine only reads them.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from revtrail.models._base import Base


class TargetRecord(Base):
    """A record known to exist on the platform."""

    __tablename__ = "target_record"

    record_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    base_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    table_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
