"""Schemas for activity entries returned by the row activity endpoint."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ActivityUser(BaseModel):
    """User object attached to an activity."""

    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None


class RawActivity(BaseModel):
    """One activity entry before diff parsing.

    Actor and timestamp come from the activity itself; only the field change is
    embedded in ``diff_row_html``.
    """

    id: Optional[str] = Field(None, description="Activity id (act...)")
    created_time: Optional[datetime] = Field(None, description="When the activity was recorded")
    originating_user_id: Optional[str] = None
    group_type: Optional[str] = None
    diff_row_html: Optional[str] = Field(None, description="HTML fragment describing the change")
    user: Optional[ActivityUser] = None

    @property
    def actor(self) -> str:
        """Display name of the user behind the activity."""
        if self.user:
            return self.user.name or self.user.email or "Unknown"
        return "Unknown"
