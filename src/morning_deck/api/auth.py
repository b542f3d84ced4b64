"""
Request identity.

Sessions are handled by the upstream identity proxy. It authenticates with
a bearer token and forwards the signed-in owner in X-Owner-Id.
"""

from fastapi import Depends, Header, HTTPException, Request

from morning_deck.deck.service import MorningDeck

from .config import get_settings


async def verify_api_token(authorization: str = Header(...)) -> None:
    """Validate the bearer token from the session proxy."""
    expected = f"Bearer {get_settings().API_KEY}"
    if authorization != expected:
        raise HTTPException(status_code=401, detail="Invalid or missing bearer token")


async def get_owner_id(
    x_owner_id: str = Header(...),
    _auth: None = Depends(verify_api_token),
) -> str:
    """Owner id of the signed-in user."""
    owner_id = x_owner_id.strip()
    if not owner_id:
        raise HTTPException(status_code=401, detail="Missing owner identity")
    return owner_id


def get_deck(request: Request) -> MorningDeck:
    return request.app.state.deck
