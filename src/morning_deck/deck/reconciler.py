"""
Deck sync: append newly-active clients to an existing run.

A run created early in the day would otherwise never show clients that
became active later. Reconciliation only appends; existing ordinals and
outcomes are never touched.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING

from ..logging import get_logger
from ..models.client import Client
from ..models.run import DailyRun
from .scoring import rank_clients
from .timekey import utc_now

if TYPE_CHECKING:
    from ..repository import DeckRepository

logger = get_logger(__name__)

# Re-plan rounds when concurrent requests keep taking our ordinals
MAX_APPEND_ATTEMPTS = 5


def plan_append(
    membership: Mapping[str, int],
    active_clients: Iterable[Client],
    now: datetime | None = None,
) -> list[tuple[str, int]]:
    """
    Slots for active clients not yet in the run.

    Missing clients are ranked by urgency among themselves and numbered
    after the current maximum ordinal.

    Args:
        membership: client_id -> ordinal for items already in the run
        active_clients: current active roster
        now: reference instant for scoring

    Returns:
        (client_id, ordinal) pairs, in ordinal order
    """
    missing = [c for c in active_clients if c.id not in membership]
    start = max(membership.values(), default=0) + 1
    return [(c.id, start + n) for n, c in enumerate(rank_clients(missing, now))]


class DeckReconciler:
    """Brings a run's client set up to the live active roster."""

    def __init__(
        self,
        repository: DeckRepository,
        clock: Callable[[], datetime] = utc_now,
        max_attempts: int = MAX_APPEND_ATTEMPTS,
    ):
        self.repository = repository
        self.clock = clock
        self.max_attempts = max_attempts

    async def reconcile(self, run: DailyRun) -> int:
        """
        Append line-items for active clients missing from `run`.

        Both reads complete before the diff, and the diff before the insert.
        A concurrent reconcile can take a planned ordinal first; those slots
        come back uninserted, so membership is re-read and the still-missing
        clients are re-planned after the new maximum.

        Returns:
            Number of line-items appended by this call
        """
        appended = 0
        for attempt in range(1, self.max_attempts + 1):
            membership = await self.repository.get_run_membership(run.owner_id, run.id)
            active = await self.repository.list_active_clients(run.owner_id)

            slots = plan_append(membership, active, self.clock())
            if not slots:
                return appended

            inserted = await self.repository.insert_line_items(run.owner_id, run.id, slots)
            appended += len(inserted)
            logger.info(
                'reconciler.appended',
                run_id=run.id,
                attempt=attempt,
                missing=len(slots),
                appended=len(inserted),
                first_ordinal=slots[0][1],
            )
            if len(inserted) == len(slots):
                return appended

        logger.warning(
            'reconciler.slots_contended',
            run_id=run.id,
            attempts=self.max_attempts,
            appended=appended,
        )
        return appended
