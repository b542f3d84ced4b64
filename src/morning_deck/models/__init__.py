"""
Data models for the Morning Deck core.

All persisted models carry owner_id; every read and write is owner-scoped.
"""

from .client import Client, ClientPriority, ClientStatus
from .run import DailyRun, DeckRow, ReviewOutcome, RunLineItem, RunProgress
from .focus import DailyFocusNote
from .dashboard import DashboardSummary

__all__ = [
    'Client',
    'ClientPriority',
    'ClientStatus',
    'DailyRun',
    'DeckRow',
    'ReviewOutcome',
    'RunLineItem',
    'RunProgress',
    'DailyFocusNote',
    'DashboardSummary',
]
