"""
MorningDeck: the entry point the CRUD/API layer calls.

Provides:
1. get_or_create_today_run: find-or-create today's run, then reconcile
2. get_run_line_items: active-client rows for a run
3. mark_item / set_contact_made: review transitions
4. dispatch: intent-driven transitions with queue advancement
5. get_dashboard_summary / get_review_history
6. save_focus_note / get_focus_note
7. update_client_bullets

Usage:
    deck = MorningDeck(DeckRepository(postgres))
    result = await deck.get_or_create_today_run(owner_id)
    rows = await deck.get_run_line_items(owner_id, result.run.id)
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from ..errors import NotFound, ValidationError
from ..logging import StageTimer, get_logger, logging_context
from ..models.dashboard import DashboardSummary
from ..models.focus import DailyFocusNote
from ..models.run import DeckRow, ReviewOutcome, RunLineItem, RunProgress
from .bullets import normalize_client_bullets
from .dashboard import DashboardAggregator
from .loader import DeckLoader
from .reconciler import DeckReconciler
from .review import ReviewIntent, ReviewStateMachine, ReviewStep
from .runs import DailyRunManager, RunResult, validate_day_key
from .timekey import day_key, utc_now

if TYPE_CHECKING:
    from ..repository import DeckRepository

logger = get_logger(__name__)

MAX_FOCUS_NOTE_LENGTH = 4000


class MorningDeck:
    """
    Daily review core for one practitioner's client roster.

    Every call takes the owner id from the caller's session and scopes all
    reads and writes to it. All operations are safe to retry.
    """

    def __init__(
        self,
        repository: DeckRepository,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the deck.

        Args:
            repository: Repository over a connected Postgres client
            clock: Source of the current instant (UTC-aware)
        """
        self.repository = repository
        self.clock = clock
        self.runs = DailyRunManager(repository, clock)
        self.reconciler = DeckReconciler(repository, clock)
        self.loader = DeckLoader(repository)
        self.review = ReviewStateMachine(repository, self.loader, clock)
        self.dashboard = DashboardAggregator(repository, clock)

    def today_key(self) -> str:
        return day_key(self.clock())

    # =========================================================================
    # Runs
    # =========================================================================

    async def get_or_create_today_run(self, owner_id: str) -> RunResult:
        """
        Today's run for the owner, with any newly-active clients appended.

        Reconciliation runs on every call, not only at creation.
        """
        today = self.today_key()
        timer = StageTimer()
        with logging_context(owner_id=owner_id):
            with timer.stage('get_or_create'):
                result = await self.runs.get_or_create_run(owner_id, today)
            with logging_context(run_id=result.run.id):
                with timer.stage('reconcile'):
                    result.appended = await self.reconciler.reconcile(result.run)
                logger.info(
                    'deck.today_ready',
                    run_date=today,
                    created=result.created,
                    seeded=result.seeded,
                    appended=result.appended,
                    **timer.summary(),
                )
        return result

    async def get_run_line_items(self, owner_id: str, run_id: str) -> list[DeckRow]:
        """
        Rows for a run, joined with live client fields.

        Raises:
            NotFound: the run does not exist or is not the owner's
        """
        if not run_id:
            raise ValidationError('run_id is required')
        run = await self.repository.get_run(owner_id, run_id)
        if run is None:
            raise NotFound('Run not found', context={'run_id': run_id})
        return await self.loader.load(owner_id, run.id)

    # =========================================================================
    # Review
    # =========================================================================

    async def mark_item(
        self,
        owner_id: str,
        item_id: str,
        outcome: ReviewOutcome | str,
        note: str | None = None,
    ) -> RunLineItem:
        return await self.review.mark_item(owner_id, item_id, outcome, note)

    async def set_contact_made(self, owner_id: str, item_id: str, contact_made: bool) -> RunLineItem:
        return await self.review.set_contact_made(owner_id, item_id, contact_made)

    async def dispatch(
        self,
        owner_id: str,
        intent: ReviewIntent,
        current_index: int | None = None,
    ) -> ReviewStep:
        return await self.review.dispatch(owner_id, intent, current_index)

    # =========================================================================
    # Dashboard
    # =========================================================================

    async def get_dashboard_summary(self, owner_id: str) -> DashboardSummary:
        with logging_context(owner_id=owner_id):
            return await self.dashboard.summarize(owner_id)

    async def get_review_history(self, owner_id: str, limit: int = 30) -> list[RunProgress]:
        """Most recent runs first, with their progress."""
        if limit < 1:
            raise ValidationError('limit must be positive', context={'limit': limit})
        return await self.repository.list_run_progress(owner_id, limit=limit)

    # =========================================================================
    # Focus notes and bullets
    # =========================================================================

    async def save_focus_note(self, owner_id: str, run_date: str, text: str) -> DailyFocusNote:
        validate_day_key(run_date)
        if text is None:
            raise ValidationError('note text is required')
        if len(text) > MAX_FOCUS_NOTE_LENGTH:
            raise ValidationError(
                'Focus note is too long',
                context={'length': len(text), 'max': MAX_FOCUS_NOTE_LENGTH},
            )
        note = await self.repository.upsert_focus_note(owner_id, run_date, text, self.clock())
        logger.info('focus_note.saved', owner_id=owner_id, run_date=run_date)
        return note

    async def get_focus_note(self, owner_id: str, run_date: str) -> DailyFocusNote | None:
        validate_day_key(run_date)
        return await self.repository.get_focus_note(owner_id, run_date)

    async def update_client_bullets(
        self,
        owner_id: str,
        client_id: str,
        text: str | None,
    ) -> str | None:
        """Store the client's bullets in normalized form and return it."""
        notes = normalize_client_bullets(text)
        if not await self.repository.update_client_notes(owner_id, client_id, notes):
            raise NotFound('Client not found', context={'client_id': client_id})
        return notes
