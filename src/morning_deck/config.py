"""
Configuration management for the Morning Deck core.

Loads settings from environment variables with sensible defaults.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / '.env'
if _env_file.exists():
    load_dotenv(_env_file)


class Config:
    """Configuration settings loaded from environment."""

    # Storage
    DATABASE_URL: str = os.getenv('DATABASE_URL', '')
    STORAGE_RETRY_ATTEMPTS: int = int(os.getenv('STORAGE_RETRY_ATTEMPTS', '3'))

    # Business day: all day keys are civil dates in this zone
    BUSINESS_TIMEZONE: str = os.getenv('BUSINESS_TIMEZONE', 'America/New_York')

    # Deck
    NEVER_TOUCHED_DAYS: int = int(os.getenv('NEVER_TOUCHED_DAYS', '999'))
    MAX_CLIENT_BULLETS: int = int(os.getenv('MAX_CLIENT_BULLETS', '5'))

    # Dashboard
    NEEDS_ATTENTION_DAYS: int = int(os.getenv('NEEDS_ATTENTION_DAYS', '7'))
    STREAK_LOOKBACK_DAYS: int = int(os.getenv('STREAK_LOOKBACK_DAYS', '60'))

    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')

    @classmethod
    def validate(cls) -> list[str]:
        """
        Validate that required configuration is present.

        Returns:
            List of missing required configuration keys
        """
        missing = []
        if not cls.DATABASE_URL:
            missing.append('DATABASE_URL')
        return missing


# Singleton config instance
config = Config()
