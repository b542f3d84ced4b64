"""
Daily run lifecycle: one run per owner per business day.

The run row is found-or-created with a single upsert. Only the request that
actually inserted the row seeds it with the ranked active roster.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from ..errors import ValidationError
from ..logging import get_logger
from ..models.run import DailyRun
from .reconciler import plan_append
from .timekey import parse_day_key, utc_now

if TYPE_CHECKING:
    from ..repository import DeckRepository

logger = get_logger(__name__)


@dataclass
class RunResult:
    """Outcome of get_or_create_run."""

    run: DailyRun
    created: bool
    seeded: int = 0
    appended: int = 0

    def to_dict(self) -> dict:
        return {
            'run': {
                'id': self.run.id,
                'owner_id': self.run.owner_id,
                'run_date': self.run.run_date,
                'created_at': self.run.created_at.isoformat() if self.run.created_at else None,
            },
            'created': self.created,
            'seeded': self.seeded,
            'appended': self.appended,
        }


def validate_day_key(day_key: str) -> str:
    try:
        parse_day_key(day_key)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            f"Invalid day key: {day_key!r}", context={'day_key': day_key}
        ) from e
    return day_key


class DailyRunManager:
    """
    Find-or-create for daily runs.

    Storage failures propagate; an empty run only ever means the owner had
    no active clients when it was seeded.
    """

    def __init__(
        self,
        repository: DeckRepository,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.clock = clock

    async def get_or_create_run(self, owner_id: str, day_key: str) -> RunResult:
        """
        Return the owner's run for `day_key`, creating and seeding it once.

        Args:
            owner_id: Owning user
            day_key: Business-day key (YYYY-MM-DD)

        Returns:
            RunResult with created=True only for the inserting request
        """
        if not owner_id:
            raise ValidationError('owner_id is required')
        validate_day_key(day_key)

        now = self.clock()
        run, created = await self.repository.upsert_run(owner_id, day_key, now)
        if not created:
            return RunResult(run=run, created=False)

        active = await self.repository.list_active_clients(owner_id)
        slots = plan_append({}, active, now)
        inserted = await self.repository.insert_line_items(owner_id, run.id, slots)

        logger.info(
            'daily_run.created',
            run_id=run.id,
            run_date=run.run_date,
            active_clients=len(active),
            seeded=len(inserted),
        )
        return RunResult(run=run, created=True, seeded=len(inserted))
