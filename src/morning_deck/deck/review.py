"""
Review outcome state machine and queue advancement.

Each line-item starts pending and moves to reviewed or flagged. Re-marking
an item overwrites its outcome; nothing ever clears it. The current-item
pointer is a pure function of the ordered rows: scan forward for the next
pending item, wrap to the first pending one, or report completion.

UI input arrives as ReviewIntent values passed to ReviewStateMachine.dispatch.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from ..errors import NotFound, SchemaDrift, ValidationError
from ..logging import get_logger
from ..models.run import ReviewOutcome, RunLineItem
from .loader import CONTACT_MADE_COLUMN, DeckLoader
from .timekey import utc_now

if TYPE_CHECKING:
    from ..repository import DeckRepository

logger = get_logger(__name__)


# =============================================================================
# Pure helpers
# =============================================================================


def validate_outcome(outcome: ReviewOutcome | str | None) -> ReviewOutcome:
    """Coerce to a ReviewOutcome or raise ValidationError."""
    try:
        return ReviewOutcome(outcome)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            f"Unknown outcome: {outcome!r}",
            context={'allowed': [o.value for o in ReviewOutcome]},
        ) from e


def normalize_note(note: str | None) -> str | None:
    if note is None:
        return None
    note = note.strip()
    return note or None


def first_pending_index(items: Sequence[RunLineItem]) -> int | None:
    for index, item in enumerate(items):
        if item.is_pending:
            return index
    return None


def next_pending_index(items: Sequence[RunLineItem], current: int | None) -> int | None:
    """
    Index of the next pending item after `current`, wrapping to the start.

    Returns None when nothing is pending.
    """
    start = -1 if current is None else current
    for index in range(start + 1, len(items)):
        if items[index].is_pending:
            return index
    return first_pending_index(items)


def is_run_complete(items: Sequence[RunLineItem]) -> bool:
    """True iff there is at least one item and none is pending."""
    return bool(items) and all(not item.is_pending for item in items)


# =============================================================================
# Intents
# =============================================================================


class IntentKind(str, Enum):
    REVIEW = 'review'
    FLAG = 'flag'
    CONTACT_MADE = 'contact_made'


@dataclass(frozen=True)
class ReviewIntent:
    """A user command against one line-item."""

    kind: IntentKind
    item_id: str
    note: str | None = None
    contact_made: bool | None = None

    @classmethod
    def review(cls, item_id: str, note: str | None = None) -> ReviewIntent:
        return cls(IntentKind.REVIEW, item_id, note=note)

    @classmethod
    def flag(cls, item_id: str, note: str | None = None) -> ReviewIntent:
        return cls(IntentKind.FLAG, item_id, note=note)

    @classmethod
    def set_contact_made(cls, item_id: str, contact_made: bool) -> ReviewIntent:
        return cls(IntentKind.CONTACT_MADE, item_id, contact_made=contact_made)


@dataclass
class ReviewStep:
    """State after an intent was applied."""

    item: RunLineItem
    current_index: int | None
    next_index: int | None
    complete: bool
    total: int

    def to_dict(self) -> dict:
        return {
            'item_id': self.item.id,
            'outcome': self.item.outcome.value if self.item.outcome else None,
            'contact_made': self.item.contact_made,
            'current_index': self.current_index,
            'next_index': self.next_index,
            'complete': self.complete,
            'total': self.total,
        }


_INTENT_OUTCOMES = {
    IntentKind.REVIEW: ReviewOutcome.REVIEWED,
    IntentKind.FLAG: ReviewOutcome.FLAGGED,
}


# =============================================================================
# State machine
# =============================================================================


class ReviewStateMachine:
    """
    Applies outcome and contact-made transitions to line-items.

    Side effects:
    - reviewed_at is set on every outcome transition
    - a note becomes a client annotation and touches the client
    - contact made touches the client and records last contact
    """

    def __init__(
        self,
        repository: DeckRepository,
        loader: DeckLoader | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.loader = loader or DeckLoader(repository)
        self.clock = clock

    async def mark_item(
        self,
        owner_id: str,
        item_id: str,
        outcome: ReviewOutcome | str,
        note: str | None = None,
    ) -> RunLineItem:
        """
        Set an item's outcome, overwriting any earlier one.

        Raises:
            ValidationError: unknown outcome or missing item id
            NotFound: item missing or owned by someone else
        """
        resolved = validate_outcome(outcome)
        if not item_id:
            raise ValidationError('item_id is required')
        note = normalize_note(note)

        now = self.clock()
        item = await self.repository.update_outcome(owner_id, item_id, resolved, note, now)
        if item is None:
            raise NotFound('Line-item not found', context={'item_id': item_id})

        if note:
            await self.repository.insert_annotation(owner_id, item.client_id, note, item.id, now)
            await self.repository.touch_client(owner_id, item.client_id, now)

        logger.info(
            'review.marked',
            item_id=item.id,
            run_id=item.run_id,
            outcome=resolved.value,
            has_note=note is not None,
        )
        return item

    async def set_contact_made(
        self,
        owner_id: str,
        item_id: str,
        contact_made: bool,
    ) -> RunLineItem:
        """
        Toggle contact made, independent of the outcome.

        Raises:
            ValidationError: missing item id
            NotFound: item missing or owned by someone else
            SchemaDrift: the store has no contact_made column
        """
        if not item_id:
            raise ValidationError('item_id is required')
        if not self.repository.supports_contact_made:
            raise SchemaDrift('contact_made is not available', column=CONTACT_MADE_COLUMN)

        try:
            item = await self.repository.update_contact_made(owner_id, item_id, bool(contact_made))
        except SchemaDrift:
            self.repository.mark_column_missing(CONTACT_MADE_COLUMN)
            raise
        if item is None:
            raise NotFound('Line-item not found', context={'item_id': item_id})

        if contact_made:
            await self.repository.touch_client(owner_id, item.client_id, self.clock(), contact_made=True)

        logger.info('review.contact_made', item_id=item.id, contact_made=bool(contact_made))
        return item

    async def dispatch(
        self,
        owner_id: str,
        intent: ReviewIntent,
        current_index: int | None = None,
    ) -> ReviewStep:
        """
        Apply an intent and compute where the queue pointer goes next.

        Outcome intents advance past the item; contact-made leaves the
        pointer on it.
        """
        if intent.kind == IntentKind.CONTACT_MADE:
            if intent.contact_made is None:
                raise ValidationError('contact_made is required')
            item = await self.set_contact_made(owner_id, intent.item_id, intent.contact_made)
        elif intent.kind in _INTENT_OUTCOMES:
            item = await self.mark_item(owner_id, intent.item_id, _INTENT_OUTCOMES[intent.kind], intent.note)
        else:
            raise ValidationError(f"Unknown intent: {intent.kind!r}")

        rows = await self.loader.load(owner_id, item.run_id)
        position = next((n for n, row in enumerate(rows) if row.id == item.id), current_index)

        if intent.kind == IntentKind.CONTACT_MADE:
            next_index = position
        else:
            next_index = next_pending_index(rows, position)

        return ReviewStep(
            item=item,
            current_index=position,
            next_index=next_index,
            complete=is_run_complete(rows),
            total=len(rows),
        )
