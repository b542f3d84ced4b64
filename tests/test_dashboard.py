"""Tests for streaks and the dashboard summary."""

from datetime import date, timedelta

import pytest

from morning_deck.deck.dashboard import DashboardAggregator, compute_streak
from morning_deck.deck.runs import DailyRunManager
from morning_deck.deck.timekey import shift_day_key
from morning_deck.errors import StorageUnavailable
from morning_deck.models.run import RunProgress

TODAY = '2026-03-12'


def _day(offset: int, total: int = 2, done: int | None = None) -> RunProgress:
    done = total if done is None else done
    return RunProgress(
        run_id=f'run{offset}',
        run_date=shift_day_key(TODAY, offset),
        reviewed=done,
        total=total,
    )


async def _run_on(repo, clock, owner_id, run_date, outcomes):
    """Create a run dated `run_date` with one fresh client per outcome."""
    run, _ = await repo.upsert_run(owner_id, run_date, clock())
    slots = []
    for n, outcome in enumerate(outcomes, start=1):
        client_id = f'{run_date}-c{n}'
        repo.add_client(client_id, owner_id=owner_id, last_touched_at=clock())
        slots.append((client_id, n))
    await repo.insert_line_items(owner_id, run.id, slots)
    for item, outcome in zip(repo.run_items(run.id), outcomes):
        item['outcome'] = outcome
    return run


class TestComputeStreak:
    def test_consecutive_days_including_today(self):
        history = [_day(0), _day(-1), _day(-2), _day(-3), _day(-5)]
        assert compute_streak(history, TODAY) == 4

    def test_incomplete_today_does_not_break_streak(self):
        history = [_day(0, done=1), _day(-1), _day(-2)]
        assert compute_streak(history, TODAY) == 2

    def test_missing_today_starts_from_yesterday(self):
        assert compute_streak([_day(-1)], TODAY) == 1

    def test_gap_ends_streak(self):
        assert compute_streak([_day(-1), _day(-3), _day(-4)], TODAY) == 1

    def test_incomplete_day_ends_streak(self):
        assert compute_streak([_day(0), _day(-1, done=0), _day(-2)], TODAY) == 1

    def test_empty_run_is_not_complete(self):
        assert compute_streak([_day(0, total=0), _day(-1)], TODAY) == 1
        assert compute_streak([_day(-1, total=0), _day(-2)], TODAY) == 0

    def test_no_history(self):
        assert compute_streak([], TODAY) == 0


class TestDashboardAggregator:
    @pytest.mark.asyncio
    async def test_summary_counts(self, repo, clock, owner_id, now):
        repo.add_client('stale', priority='high', last_touched_at=now - timedelta(days=7))
        repo.add_client('recent', last_touched_at=now - timedelta(days=6))
        repo.add_client('never')
        repo.add_client('prospect', status='prospect')
        repo.add_client('gone', status='inactive', last_touched_at=now - timedelta(days=30))
        repo.add_client('other', owner_id='owner-2')
        repo.add_task(owner_id, 'pending', date(2026, 3, 11))
        repo.add_task(owner_id, 'pending', date(2026, 3, 12))
        repo.add_task(owner_id, 'pending', date(2026, 3, 13))
        repo.add_task(owner_id, 'pending', None)
        repo.add_task(owner_id, 'completed', date(2026, 3, 1))
        repo.add_task('owner-2', 'pending', date(2026, 3, 1))

        summary = await DashboardAggregator(repo, clock).summarize(owner_id)

        assert summary.progress is None
        assert summary.streak == 0
        assert sorted(c.id for c in summary.needs_attention) == ['never', 'stale']
        assert summary.overdue_tasks == 2
        assert summary.pending_tasks == 4
        assert summary.total_clients == 5
        assert summary.active_clients == 3
        assert summary.prospect_clients == 1
        assert summary.inactive_clients == 1
        assert summary.high_priority_clients == 1

    @pytest.mark.asyncio
    async def test_task_due_today_is_overdue(self, repo, clock, owner_id):
        repo.add_task(owner_id, 'pending', date(2026, 3, 12))

        summary = await DashboardAggregator(repo, clock).summarize(owner_id)

        assert summary.overdue_tasks == 1
        assert summary.pending_tasks == 1

    @pytest.mark.asyncio
    async def test_progress_and_streak_from_history(self, repo, clock, owner_id):
        await _run_on(repo, clock, owner_id, TODAY, ['reviewed', None, 'flagged'])
        await _run_on(repo, clock, owner_id, shift_day_key(TODAY, -1), ['reviewed'])
        await _run_on(repo, clock, owner_id, shift_day_key(TODAY, -2), ['flagged', 'reviewed'])

        summary = await DashboardAggregator(repo, clock).summarize(owner_id)

        assert summary.progress.reviewed == 1
        assert summary.progress.flagged == 1
        assert summary.progress.pending == 1
        assert summary.progress.total == 3
        assert summary.today_complete is False
        assert summary.streak == 2

    @pytest.mark.asyncio
    async def test_completed_today_counts_toward_streak(self, repo, clock, owner_id):
        await _run_on(repo, clock, owner_id, TODAY, ['reviewed'])
        await _run_on(repo, clock, owner_id, shift_day_key(TODAY, -1), ['reviewed'])

        summary = await DashboardAggregator(repo, clock).summarize(owner_id)

        assert summary.today_complete is True
        assert summary.streak == 2
        assert summary.to_dict()['today_complete'] is True

    @pytest.mark.asyncio
    async def test_progress_ignores_deactivated_clients(self, repo, clock, owner_id):
        await _run_on(repo, clock, owner_id, TODAY, ['reviewed', None])
        repo.set_status(f'{TODAY}-c2', 'inactive')

        summary = await DashboardAggregator(repo, clock).summarize(owner_id)

        assert summary.progress.total == 1
        assert summary.today_complete is True

    @pytest.mark.asyncio
    async def test_lookback_window_bounds_streak(self, repo, clock, owner_id):
        for offset in range(0, 10):
            await _run_on(repo, clock, owner_id, shift_day_key(TODAY, -offset), ['reviewed'])

        summary = await DashboardAggregator(repo, clock, lookback_days=3).summarize(owner_id)

        assert summary.streak == 4

    @pytest.mark.asyncio
    async def test_new_run_shows_zero_progress(self, repo, clock, owner_id):
        repo.add_client('c1')
        await DailyRunManager(repo, clock).get_or_create_run(owner_id, TODAY)

        summary = await DashboardAggregator(repo, clock).summarize(owner_id)

        assert summary.progress.total == 1
        assert summary.progress.pending == 1

    @pytest.mark.asyncio
    async def test_storage_unavailable_propagates(self, repo, clock, owner_id):
        repo.unavailable = True
        with pytest.raises(StorageUnavailable):
            await DashboardAggregator(repo, clock).summarize(owner_id)

    @pytest.mark.asyncio
    async def test_to_dict(self, repo, clock, owner_id, now):
        repo.add_client('stale', priority='high', last_touched_at=now - timedelta(days=10))

        data = (await DashboardAggregator(repo, clock).summarize(owner_id)).to_dict()

        assert data['progress'] is None
        assert data['needs_attention'] == [{
            'id': 'stale',
            'name': 'stale',
            'priority': 'high',
            'last_touched_at': (now - timedelta(days=10)).isoformat(),
        }]
        assert data['needs_attention_count'] == 1
