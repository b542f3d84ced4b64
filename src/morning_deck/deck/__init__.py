"""
Deck components: day keys, urgency ranking, run lifecycle, reconciliation,
review transitions, loading and dashboard aggregation.
"""

from .bullets import (
    MAX_CLIENT_BULLETS,
    has_reached_bullet_cap,
    normalize_client_bullets,
    split_client_bullets,
)
from .timekey import day_key, parse_day_key, shift_day_key
from .scoring import days_since, priority_weight, rank_clients, sort_by_name, urgency_score
from .reconciler import DeckReconciler, plan_append
from .runs import DailyRunManager, RunResult
from .loader import DeckLoader
from .review import (
    IntentKind,
    ReviewIntent,
    ReviewStateMachine,
    ReviewStep,
    first_pending_index,
    is_run_complete,
    next_pending_index,
)
from .dashboard import DashboardAggregator, compute_streak
from .service import MorningDeck

__all__ = [
    # Facade
    'MorningDeck',
    # Day keys
    'day_key',
    'parse_day_key',
    'shift_day_key',
    # Scoring
    'days_since',
    'priority_weight',
    'rank_clients',
    'sort_by_name',
    'urgency_score',
    # Bullets
    'MAX_CLIENT_BULLETS',
    'has_reached_bullet_cap',
    'normalize_client_bullets',
    'split_client_bullets',
    # Lifecycle
    'DailyRunManager',
    'RunResult',
    'DeckReconciler',
    'plan_append',
    'DeckLoader',
    # Review
    'IntentKind',
    'ReviewIntent',
    'ReviewStateMachine',
    'ReviewStep',
    'first_pending_index',
    'is_run_complete',
    'next_pending_index',
    # Dashboard
    'DashboardAggregator',
    'compute_streak',
]
