"""Dashboard summary and client bullet endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from morning_deck.deck.bullets import split_client_bullets
from morning_deck.deck.service import MorningDeck

from ..auth import get_deck, get_owner_id

router = APIRouter()


class BulletsRequest(BaseModel):
    text: str | None = None


@router.get("/dashboard/summary")
async def dashboard_summary(
    owner_id: str = Depends(get_owner_id),
    deck: MorningDeck = Depends(get_deck),
):
    summary = await deck.get_dashboard_summary(owner_id)
    return summary.to_dict()


@router.put("/clients/{client_id}/bullets")
async def update_bullets(
    client_id: str,
    body: BulletsRequest,
    owner_id: str = Depends(get_owner_id),
    deck: MorningDeck = Depends(get_deck),
):
    notes = await deck.update_client_bullets(owner_id, client_id, body.text)
    return {"client_id": client_id, "bullets": split_client_bullets(notes)}
