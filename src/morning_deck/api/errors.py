"""Map core errors onto HTTP responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from morning_deck.errors import (
    MorningDeckError,
    NotFound,
    SchemaDrift,
    StorageUnavailable,
    ValidationError,
)

logger = structlog.get_logger(__name__)


def _body(error: MorningDeckError, retryable: bool) -> dict:
    return {"error": error.message, "error_type": type(error).__name__, "retryable": retryable}


def error_response(error: MorningDeckError) -> JSONResponse:
    if isinstance(error, ValidationError):
        return JSONResponse(status_code=422, content=_body(error, False))
    if isinstance(error, NotFound):
        return JSONResponse(status_code=404, content=_body(error, False))
    if isinstance(error, StorageUnavailable):
        return JSONResponse(status_code=503, content=_body(error, True))
    if isinstance(error, SchemaDrift):
        return JSONResponse(status_code=409, content=_body(error, False))
    return JSONResponse(status_code=500, content=_body(error, False))


async def handle_deck_error(request: Request, exc: MorningDeckError) -> JSONResponse:
    response = error_response(exc)
    log = logger.warning if response.status_code < 500 else logger.error
    log(
        "api.request_failed",
        path=request.url.path,
        status_code=response.status_code,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return response


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MorningDeckError, handle_deck_error)
