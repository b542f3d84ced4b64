"""DailyFocusNote: the owner's free-text reflection for a day."""

from datetime import datetime

from pydantic import BaseModel, Field


class DailyFocusNote(BaseModel):
    """At most one per (owner, run_date)."""

    owner_id: str
    run_date: str = Field(..., description='Civil date key, YYYY-MM-DD')
    note: str = ''
    updated_at: datetime | None = None
