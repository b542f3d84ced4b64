"""
Urgency scoring for the initial deck order.

score = priority weight * days since last touch. Never-touched clients get a
fixed large staleness so they lead their tier. Scores are a snapshot taken
when items are inserted; they are never recomputed on read.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Protocol, TypeVar

from ..config import config

PRIORITY_WEIGHTS: dict[str, int] = {'high': 3, 'medium': 2, 'low': 1}
DEFAULT_PRIORITY_WEIGHT = PRIORITY_WEIGHTS['low']
NEVER_TOUCHED_DAYS = config.NEVER_TOUCHED_DAYS

MS_PER_DAY = 86_400_000


class Scorable(Protocol):
    name: str
    priority: object
    last_touched_at: datetime | None


S = TypeVar('S', bound=Scorable)
N = TypeVar('N')


def priority_weight(priority: object) -> int:
    """Weight for a priority tier; unknown or missing tiers weigh like low."""
    value = getattr(priority, 'value', priority)
    if not isinstance(value, str):
        return DEFAULT_PRIORITY_WEIGHT
    return PRIORITY_WEIGHTS.get(value, DEFAULT_PRIORITY_WEIGHT)


def days_since(then: datetime | None, now: datetime | None = None) -> int | None:
    """Whole days elapsed since `then`, floored. None when `then` is missing."""
    if then is None:
        return None
    now = now or datetime.now(timezone.utc)
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    elapsed_ms = (now - then) // timedelta(milliseconds=1)
    return elapsed_ms // MS_PER_DAY


def urgency_score(client: Scorable, now: datetime | None = None) -> int:
    days = days_since(client.last_touched_at, now)
    if days is None:
        days = NEVER_TOUCHED_DAYS
    return priority_weight(client.priority) * days


def name_key(item: object) -> str:
    return getattr(item, 'name', '').casefold()


def sort_by_name(items: Iterable[N]) -> list[N]:
    """Case-insensitive ascending order by name."""
    return sorted(items, key=name_key)


def rank_clients(clients: Iterable[S], now: datetime | None = None) -> list[S]:
    """Order clients by urgency, highest first, ties broken by name."""
    now = now or datetime.now(timezone.utc)
    return sorted(clients, key=lambda c: (-urgency_score(c, now), name_key(c)))
