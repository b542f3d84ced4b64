"""FastAPI application for the Morning Deck service."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request

from morning_deck.clients.postgres_client import PostgresClient
from morning_deck.deck.service import MorningDeck
from morning_deck.logging import configure_logging, logging_context
from morning_deck.repository import DeckRepository
from morning_deck.utils import uuid7

from .config import get_settings
from .errors import install_error_handlers
from .routes.dashboard import router as dashboard_router
from .routes.deck import router as deck_router
from .routes.health import router as health_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect storage and probe the schema at startup, clean up at shutdown."""
    settings = get_settings()
    configure_logging(json_output=settings.LOG_JSON)

    postgres = PostgresClient(settings.DATABASE_URL)
    await postgres.connect()
    if not await postgres.verify_connectivity():
        # Requests will surface StorageUnavailable until the store returns
        logger.warning("lifespan.postgres_connectivity_failed")
    else:
        await postgres.setup_schema()
        await postgres.probe_capabilities()
        logger.info("lifespan.postgres_ready", contact_made=postgres.capabilities.contact_made)

    app.state.postgres = postgres
    app.state.deck = MorningDeck(DeckRepository(postgres))

    logger.info("lifespan.ready")
    yield

    logger.info("lifespan.shutdown")
    await postgres.close()


app = FastAPI(
    title="morning-deck",
    description="Daily client review queue, outcomes, streaks and dashboard metrics",
    lifespan=lifespan,
)

REQUEST_ID_HEADER = "X-Request-Id"


@app.middleware("http")
async def bind_request_id(request: Request, call_next):
    """Tag every log line of a request with the caller's id, or a fresh one."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid7())
    with logging_context(request_id=request_id):
        response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


install_error_handlers(app)
app.include_router(health_router)
app.include_router(deck_router)
app.include_router(dashboard_router)
