"""Change event schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from revtrail.core.shared_models import FieldKind


class ChangeEvent(BaseModel):
    """One tracked change of an assignee or status field on a record.

    Immutable once created. At least one of ``old_value``/``new_value`` is set.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Activity-derived event id")
    record_id: str = Field(..., description="Record the change belongs to")
    field_kind: FieldKind = Field(..., description="Which tracked field changed")
    old_value: Optional[str] = Field(None, description="Value removed by the change")
    new_value: Optional[str] = Field(None, description="Value added by the change")
    occurred_at: datetime = Field(..., description="When the change happened (UTC)")
    actor: str = Field(..., description="Name or email of the user who made the change")

    @model_validator(mode="after")
    def _require_a_value(self) -> "ChangeEvent":
        if self.old_value is None and self.new_value is None:
            raise ValueError("a change event needs an old or a new value")
        return self
