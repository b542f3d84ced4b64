"""Daily deck endpoints: today's run, its rows, review transitions, focus notes."""

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from morning_deck.deck.review import ReviewIntent, first_pending_index, is_run_complete
from morning_deck.deck.service import MorningDeck
from morning_deck.errors import ValidationError
from morning_deck.models.run import ReviewOutcome

from ..auth import get_deck, get_owner_id

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/deck")


class OutcomeRequest(BaseModel):
    outcome: str
    note: str | None = None
    current_index: int | None = Field(default=None, ge=0)


class ContactMadeRequest(BaseModel):
    contact_made: bool


class FocusNoteRequest(BaseModel):
    note: str


@router.post("/today")
async def today(
    owner_id: str = Depends(get_owner_id),
    deck: MorningDeck = Depends(get_deck),
):
    """Find or create today's run and append newly-active clients."""
    result = await deck.get_or_create_today_run(owner_id)
    return result.to_dict()


@router.get("/runs/{run_id}/items")
async def run_items(
    run_id: str,
    owner_id: str = Depends(get_owner_id),
    deck: MorningDeck = Depends(get_deck),
):
    rows = await deck.get_run_line_items(owner_id, run_id)
    items = []
    for row in rows:
        item = row.model_dump(mode="json")
        item["client"]["bullets"] = row.client.bullets
        items.append(item)
    return {
        "run_id": run_id,
        "items": items,
        "current_index": first_pending_index(rows),
        "complete": is_run_complete(rows),
    }


@router.post("/items/{item_id}/outcome")
async def mark_outcome(
    item_id: str,
    body: OutcomeRequest,
    owner_id: str = Depends(get_owner_id),
    deck: MorningDeck = Depends(get_deck),
):
    if body.outcome == ReviewOutcome.REVIEWED.value:
        intent = ReviewIntent.review(item_id, body.note)
    elif body.outcome == ReviewOutcome.FLAGGED.value:
        intent = ReviewIntent.flag(item_id, body.note)
    else:
        raise ValidationError(f"Unknown outcome: {body.outcome!r}")
    step = await deck.dispatch(owner_id, intent, body.current_index)
    return step.to_dict()


@router.post("/items/{item_id}/contact-made")
async def contact_made(
    item_id: str,
    body: ContactMadeRequest,
    owner_id: str = Depends(get_owner_id),
    deck: MorningDeck = Depends(get_deck),
):
    step = await deck.dispatch(owner_id, ReviewIntent.set_contact_made(item_id, body.contact_made))
    return step.to_dict()


@router.get("/history")
async def history(
    limit: int = 30,
    owner_id: str = Depends(get_owner_id),
    deck: MorningDeck = Depends(get_deck),
):
    runs = await deck.get_review_history(owner_id, limit=limit)
    return {
        "runs": [
            {**p.model_dump(), "pending": p.pending, "complete": p.complete}
            for p in runs
        ]
    }


@router.get("/focus/{day_key}")
async def get_focus(
    day_key: str,
    owner_id: str = Depends(get_owner_id),
    deck: MorningDeck = Depends(get_deck),
):
    note = await deck.get_focus_note(owner_id, day_key)
    return {"run_date": day_key, "note": note.note if note else None}


@router.put("/focus/{day_key}")
async def save_focus(
    day_key: str,
    body: FocusNoteRequest,
    owner_id: str = Depends(get_owner_id),
    deck: MorningDeck = Depends(get_deck),
):
    note = await deck.save_focus_note(owner_id, day_key, body.note)
    return {"run_date": note.run_date, "note": note.note}
