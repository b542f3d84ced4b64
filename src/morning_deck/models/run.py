"""
DailyRun, RunLineItem and derived progress models.

A DailyRun is the review queue for one owner on one civil day. Each
RunLineItem is one client's slot in that queue, ordered by ordinal_index.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .client import Client


class ReviewOutcome(str, Enum):
    """Terminal disposition of a line-item. Pending items have no outcome."""

    REVIEWED = 'reviewed'
    FLAGGED = 'flagged'


class DailyRun(BaseModel):
    """One run per (owner, run_date)."""

    id: str
    owner_id: str
    run_date: str = Field(..., description='Civil date key, YYYY-MM-DD')
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> 'DailyRun':
        run_date = row['run_date']
        return cls(
            id=str(row['id']),
            owner_id=str(row['user_id']),
            run_date=run_date.isoformat() if isinstance(run_date, date) else str(run_date),
            created_at=row.get('created_at'),
        )


class RunLineItem(BaseModel):
    """One client's slot within a run."""

    id: str
    run_id: str
    client_id: str
    ordinal_index: int = Field(..., ge=1, description='1-based review order')
    outcome: ReviewOutcome | None = None
    quick_note: str | None = None
    reviewed_at: datetime | None = None
    contact_made: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> 'RunLineItem':
        return cls(
            id=str(row['id']),
            run_id=str(row['daily_run_id']),
            client_id=str(row['client_id']),
            ordinal_index=row['ordinal_index'],
            outcome=row.get('outcome'),
            quick_note=row.get('quick_note'),
            reviewed_at=row.get('reviewed_at'),
            contact_made=bool(row.get('contact_made') or False),
        )

    @property
    def is_pending(self) -> bool:
        return self.outcome is None


class DeckRow(RunLineItem):
    """A line-item joined with its live (active) client."""

    client: Client

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> 'DeckRow':
        """Build from a joined row whose client columns are prefixed 'client__'."""
        item = RunLineItem.from_row(row)
        return cls(**item.model_dump(), client=Client.from_row(row, prefix='client__'))


class RunProgress(BaseModel):
    """Outcome counts for one run."""

    run_id: str
    run_date: str
    reviewed: int = 0
    flagged: int = 0
    total: int = 0

    @property
    def pending(self) -> int:
        return self.total - self.reviewed - self.flagged

    @property
    def complete(self) -> bool:
        return self.total > 0 and self.pending == 0
