"""
Morning Deck

Daily client-review core for a single practitioner: builds one review queue
per business day, ranks clients by urgency, keeps the queue in sync with the
active roster, records review outcomes and summarizes streaks and progress.
"""

__version__ = '0.1.0'

# Re-export key classes for convenience
from .deck import (
    MorningDeck,
    DailyRunManager,
    DeckReconciler,
    DeckLoader,
    ReviewStateMachine,
    ReviewIntent,
    DashboardAggregator,
    RunResult,
)
from .repository import DeckRepository
from .clients import PostgresClient
from .logging import (
    configure_logging,
    get_logger,
    logging_context,
    StageTimer,
)
from .errors import (
    MorningDeckError,
    StorageError,
    StorageUnavailable,
    SchemaDrift,
    ValidationError,
    NotFound,
)

__all__ = [
    # Version
    '__version__',
    # Facade
    'MorningDeck',
    # Components
    'DailyRunManager',
    'DeckReconciler',
    'DeckLoader',
    'ReviewStateMachine',
    'ReviewIntent',
    'DashboardAggregator',
    'RunResult',
    # Storage
    'DeckRepository',
    'PostgresClient',
    # Logging
    'configure_logging',
    'get_logger',
    'logging_context',
    'StageTimer',
    # Errors
    'MorningDeckError',
    'StorageError',
    'StorageUnavailable',
    'SchemaDrift',
    'ValidationError',
    'NotFound',
]
