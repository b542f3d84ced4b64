"""
Loader for a run's visible deck rows.

Rows come back already joined with their active client; filtering happens
in the query. The contact_made column is optional: its absence is known
from the startup capability probe, and a drift discovered later falls back
to a read without it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import SchemaDrift
from ..logging import get_logger
from ..models.run import DeckRow

if TYPE_CHECKING:
    from ..repository import DeckRepository

logger = get_logger(__name__)

CONTACT_MADE_COLUMN = 'contact_made'


class DeckLoader:
    """Loads DeckRows for a run, tolerating a missing contact_made column."""

    def __init__(self, repository: DeckRepository):
        self.repository = repository

    async def load(self, owner_id: str, run_id: str) -> list[DeckRow]:
        """Active-client rows for the run, in ordinal order."""
        include_contact_made = self.repository.supports_contact_made
        try:
            rows = await self.repository.list_deck_rows(
                owner_id, run_id, include_contact_made=include_contact_made
            )
        except SchemaDrift as e:
            if not include_contact_made:
                raise
            logger.warning(
                'loader.schema_drift_fallback',
                column=CONTACT_MADE_COLUMN,
                run_id=run_id,
                error=e.message,
            )
            self.repository.mark_column_missing(CONTACT_MADE_COLUMN)
            rows = await self.repository.list_deck_rows(
                owner_id, run_id, include_contact_made=False
            )
        return [DeckRow.from_row(r) for r in rows]
