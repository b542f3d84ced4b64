"""
structlog setup for the Morning Deck.

Every log line emitted while serving a request carries the request id, and,
once known, the owner and the daily run being worked on. Those values live
in context variables so deck code never has to pass them to the logger.
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Generator

import structlog
from structlog.types import Processor

from .config import config

_request_id: ContextVar[str | None] = ContextVar('request_id', default=None)
_owner_id: ContextVar[str | None] = ContextVar('owner_id', default=None)
_run_id: ContextVar[str | None] = ContextVar('run_id', default=None)

# Log key -> context variable, in the order keys are added to an event
_CONTEXT_FIELDS: dict[str, ContextVar[str | None]] = {
    'request_id': _request_id,
    'owner_id': _owner_id,
    'run_id': _run_id,
}


def get_request_id() -> str | None:
    return _request_id.get()


def get_owner_id() -> str | None:
    return _owner_id.get()


def get_run_id() -> str | None:
    return _run_id.get()


def add_context_info(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Copy the request, owner and run ids that are set into the event."""
    for key, var in _CONTEXT_FIELDS.items():
        value = var.get()
        if value:
            event_dict.setdefault(key, value)
    return event_dict


def configure_logging(json_output: bool = False, log_level: str | None = None) -> None:
    """
    Configure structlog for the service.

    Args:
        json_output: JSON lines for deployed environments; coloured console
            output otherwise.
        log_level: Overrides config.LOG_LEVEL.
    """
    level_num = getattr(logging, (log_level or config.LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(format='%(message)s', stream=sys.stdout, level=level_num)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_context_info,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def logging_context(
    request_id: str | None = None,
    owner_id: str | None = None,
    run_id: str | None = None,
) -> Generator[None, None, None]:
    """
    Bind ids for log lines emitted inside the block.

    Ids left as None keep the value from the enclosing block, so the API
    middleware can bind the request id and MorningDeck can nest the owner
    and run inside it.
    """
    values = {'request_id': request_id, 'owner_id': owner_id, 'run_id': run_id}
    tokens = [
        _CONTEXT_FIELDS[key].set(value)
        for key, value in values.items()
        if value is not None
    ]
    try:
        yield
    finally:
        for token in reversed(tokens):
            token.var.reset(token)


class StageTimer:
    """
    Wall-clock milliseconds per named step of a deck request.

        timer = StageTimer()
        with timer.stage('reconcile'):
            ...
        logger.info('deck.today_ready', **timer.summary())
    """

    def __init__(self):
        self.stages: dict[str, float] = {}
        self.start_time: float = time.perf_counter()

    @contextmanager
    def stage(self, name: str) -> Generator[None, None, None]:
        started = time.perf_counter()
        try:
            yield
        finally:
            self.stages[name] = (time.perf_counter() - started) * 1000

    @property
    def total_ms(self) -> float:
        return (time.perf_counter() - self.start_time) * 1000

    def summary(self) -> dict[str, Any]:
        return {
            'total_ms': round(self.total_ms, 2),
            'stages': {name: round(ms, 2) for name, ms in self.stages.items()},
        }


# Console output until the API lifespan reconfigures from settings
configure_logging(json_output=False)
