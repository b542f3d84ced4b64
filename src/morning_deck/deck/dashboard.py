"""
Dashboard aggregation: today's progress, completion streak, clients that
need attention and overdue tasks.

History is read over a bounded lookback window; the streak can never exceed
that window.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from ..config import config
from ..logging import get_logger
from ..models.dashboard import DashboardSummary
from ..models.run import RunProgress
from .timekey import day_key, shift_day_key, utc_now

if TYPE_CHECKING:
    from ..repository import DeckRepository

logger = get_logger(__name__)


def compute_streak(history: Iterable[RunProgress], today: str) -> int:
    """
    Consecutive completed days walking back from today.

    Today is treated as still in progress: when today has no run yet, or
    an unfinished one, the walk starts at yesterday instead of stopping
    at the missing day. A streak earned through yesterday therefore still
    shows before today's run is created. Any earlier day without a
    completed run ends the walk.
    """
    by_day = {p.run_date: p for p in history}

    cursor = today
    todays = by_day.get(today)
    if todays is None or not todays.complete:
        cursor = shift_day_key(today, -1)

    streak = 0
    while True:
        progress = by_day.get(cursor)
        if progress is None or not progress.complete:
            return streak
        streak += 1
        cursor = shift_day_key(cursor, -1)


class DashboardAggregator:
    """Computes the DashboardSummary for one owner at read time."""

    def __init__(
        self,
        repository: DeckRepository,
        clock: Callable[[], datetime] = utc_now,
        lookback_days: int | None = None,
        attention_days: int | None = None,
    ):
        self.repository = repository
        self.clock = clock
        self.lookback_days = lookback_days or config.STREAK_LOOKBACK_DAYS
        self.attention_days = attention_days or config.NEEDS_ATTENTION_DAYS

    async def summarize(self, owner_id: str) -> DashboardSummary:
        now = self.clock()
        today = day_key(now)
        since = shift_day_key(today, -self.lookback_days)

        history = await self.repository.list_run_progress(owner_id, since=since)
        progress = next((p for p in history if p.run_date == today), None)
        streak = compute_streak(history, today)

        needs_attention = await self.repository.list_needs_attention(
            owner_id, now - timedelta(days=self.attention_days)
        )
        tasks = await self.repository.count_tasks(owner_id, today)
        clients = await self.repository.count_clients(owner_id)

        logger.debug(
            'dashboard.summarized',
            today=today,
            runs_in_window=len(history),
            streak=streak,
        )
        return DashboardSummary(
            progress=progress,
            streak=streak,
            needs_attention=needs_attention,
            overdue_tasks=tasks['overdue'],
            pending_tasks=tasks['pending'],
            total_clients=clients['total'],
            active_clients=clients['active'],
            prospect_clients=clients['prospect'],
            inactive_clients=clients['inactive'],
            high_priority_clients=clients['high_priority'],
        )
