"""
Client model and its status and priority enums.

Clients are owned and edited by the CRUD layer; the deck only reads the
active roster and writes the touch/contact timestamps.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ClientStatus(str, Enum):
    """Lifecycle status. Only active clients enter a daily run."""

    ACTIVE = 'active'
    INACTIVE = 'inactive'
    PROSPECT = 'prospect'


class ClientPriority(str, Enum):
    """Priority tier used to weight urgency."""

    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


class Client(BaseModel):
    """A tracked relationship, as seen by the deck."""

    id: str = Field(..., description='Client identifier')
    owner_id: str = Field(..., description='Owning user')
    name: str = Field(..., description='Display name')
    status: ClientStatus = Field(default=ClientStatus.ACTIVE)
    priority: ClientPriority | None = Field(
        default=None, description='Missing priority is weighted like low'
    )
    notes: str | None = Field(
        default=None, description='Newline-separated bullet annotations'
    )
    today_signal: str | None = Field(default=None)
    last_contact_at: datetime | None = Field(
        default=None, description='Last time contact was actually made'
    )
    last_touched_at: datetime | None = Field(
        default=None, description='Last interaction of any kind'
    )

    @field_validator('priority', mode='before')
    @classmethod
    def _unknown_priority_as_none(cls, value: Any) -> Any:
        """Tiers outside the enum come from legacy rows; they score like low."""
        if value is None or isinstance(value, ClientPriority):
            return value
        try:
            return ClientPriority(value)
        except ValueError:
            return None

    @classmethod
    def from_row(cls, row: dict[str, Any], prefix: str = '') -> 'Client':
        """Build from a SQL row, optionally reading prefixed columns."""
        return cls(
            id=str(row[f'{prefix}id']),
            owner_id=str(row[f'{prefix}user_id']),
            name=row[f'{prefix}name'],
            status=row[f'{prefix}status'],
            priority=row.get(f'{prefix}priority'),
            notes=row.get(f'{prefix}notes'),
            today_signal=row.get(f'{prefix}today_signal'),
            last_contact_at=row.get(f'{prefix}last_contact_at'),
            last_touched_at=row.get(f'{prefix}last_touched_at'),
        )

    @property
    def bullets(self) -> list[str]:
        from ..deck.bullets import split_client_bullets

        return split_client_bullets(self.notes)

    @property
    def is_active(self) -> bool:
        return self.status == ClientStatus.ACTIVE

