"""
External service clients for the Morning Deck core.
"""

from .postgres_client import PostgresClient, StorageCapabilities

__all__ = [
    'PostgresClient',
    'StorageCapabilities',
]
