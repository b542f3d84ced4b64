"""
Pytest configuration and shared fixtures.

Key fixtures:
- owner_id: the signed-in owner every test acts as
- now / clock: a fixed instant (2026-03-12 11:00 in New York)
- repo: in-memory FakeDeckRepository
- deck: MorningDeck wired to the fake repository and fixed clock

Storage-level tests mock the SQLAlchemy engine instead; no test needs a
live database.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

# Load environment variables
from dotenv import load_dotenv

env_file = Path(__file__).parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)

from fakes import FakeDeckRepository  # noqa: E402
from morning_deck.deck.service import MorningDeck  # noqa: E402

FIXED_NOW = datetime(2026, 3, 12, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def owner_id() -> str:
    return 'owner-1'


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock(now):
    return lambda: now


@pytest.fixture
def repo() -> FakeDeckRepository:
    return FakeDeckRepository()


@pytest.fixture
def deck(repo, clock) -> MorningDeck:
    return MorningDeck(repo, clock=clock)
