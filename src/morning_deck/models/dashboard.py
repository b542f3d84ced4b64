"""
DashboardSummary: derived metrics computed at dashboard load.
"""

from typing import Any

from pydantic import BaseModel, Field

from .client import Client
from .run import RunProgress


class DashboardSummary(BaseModel):
    """Per-owner dashboard metrics."""

    progress: RunProgress | None = Field(
        default=None, description="Today's counts; None until today's run exists"
    )
    streak: int = Field(default=0, ge=0, description='Consecutive completed days')
    needs_attention: list[Client] = Field(default_factory=list)
    overdue_tasks: int = 0

    # Roster and task counts
    total_clients: int = 0
    active_clients: int = 0
    prospect_clients: int = 0
    inactive_clients: int = 0
    high_priority_clients: int = 0
    pending_tasks: int = 0

    @property
    def today_complete(self) -> bool:
        return self.progress is not None and self.progress.complete

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        progress = None
        if self.progress is not None:
            progress = {
                'run_id': self.progress.run_id,
                'run_date': self.progress.run_date,
                'reviewed': self.progress.reviewed,
                'flagged': self.progress.flagged,
                'total': self.progress.total,
            }
        return {
            'progress': progress,
            'streak': self.streak,
            'today_complete': self.today_complete,
            'needs_attention': [
                {
                    'id': c.id,
                    'name': c.name,
                    'priority': c.priority.value if c.priority else None,
                    'last_touched_at': c.last_touched_at.isoformat() if c.last_touched_at else None,
                }
                for c in self.needs_attention
            ],
            'needs_attention_count': len(self.needs_attention),
            'overdue_tasks': self.overdue_tasks,
            'total_clients': self.total_clients,
            'active_clients': self.active_clients,
            'prospect_clients': self.prospect_clients,
            'inactive_clients': self.inactive_clients,
            'high_priority_clients': self.high_priority_clients,
            'pending_tasks': self.pending_tasks,
        }
