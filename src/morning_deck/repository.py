"""
Deck repository: owner-scoped SQL for the Morning Deck core.

Provides:
- Daily run upsert (atomic on the (owner, day) unique key)
- Line-item membership reads and conflict-tolerant bulk inserts
- Active-roster reads and the active-only deck join
- Outcome, contact-made and client touch writes
- Progress, roster and task aggregates for the dashboard
- Focus note upsert

Every statement filters on user_id. Day keys cross this boundary as
YYYY-MM-DD strings and are stored as DATE.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from .clients.postgres_client import PostgresClient
from .deck.timekey import parse_day_key
from .models.client import Client
from .models.focus import DailyFocusNote
from .models.run import DailyRun, ReviewOutcome, RunLineItem, RunProgress
from .utils import uuid7

CLIENT_COLUMNS = (
    'c.id, c.user_id, c.name, c.status, c.priority, c.notes, c.today_signal, '
    'c.last_contact_at, c.last_touched_at'
)

ITEM_COLUMNS = (
    'i.id, i.daily_run_id, i.client_id, i.ordinal_index, i.outcome, '
    'i.quick_note, i.reviewed_at'
)


def _day(value: date | str) -> str:
    return value.isoformat() if isinstance(value, date) else str(value)


class DeckRepository:
    """
    High-level SQL operations for runs, line-items and the client roster.

    Handles:
    - Race-free run creation via INSERT ... ON CONFLICT
    - Append-only line-item inserts guarded by (run, client) and
      (run, ordinal) uniqueness
    - Filtering to active clients inside the query
    """

    def __init__(self, postgres: PostgresClient):
        """
        Initialize the repository.

        Args:
            postgres: Connected Postgres client
        """
        self.postgres = postgres

    @property
    def supports_contact_made(self) -> bool:
        return self.postgres.capabilities.contact_made

    def mark_column_missing(self, column: str) -> None:
        self.postgres.mark_column_missing(column)

    # =========================================================================
    # Daily Runs
    # =========================================================================

    async def upsert_run(
        self,
        owner_id: str,
        run_date: str,
        created_at: datetime,
    ) -> tuple[DailyRun, bool]:
        """
        Find or create the run for (owner, day) in one statement.

        The no-op DO UPDATE makes RETURNING yield the existing row on
        conflict; xmax = 0 only for the row this statement inserted.

        Returns:
            (run, created)
        """
        row = await self.postgres.execute(
            """
            INSERT INTO daily_runs (id, user_id, run_date, created_at)
            VALUES (:id, :user_id, :run_date, :created_at)
            ON CONFLICT (user_id, run_date) DO UPDATE SET user_id = EXCLUDED.user_id
            RETURNING id, user_id, run_date, created_at, (xmax = 0) AS inserted
            """,
            {
                'id': str(uuid7()),
                'user_id': owner_id,
                'run_date': parse_day_key(run_date),
                'created_at': created_at,
            },
        )
        return DailyRun.from_row(row[0]), bool(row[0]['inserted'])

    async def get_run(self, owner_id: str, run_id: str) -> DailyRun | None:
        row = await self.postgres.fetch_one(
            """
            SELECT id, user_id, run_date, created_at
            FROM daily_runs
            WHERE id = :run_id AND user_id = :user_id
            """,
            {'run_id': run_id, 'user_id': owner_id},
        )
        return DailyRun.from_row(row) if row else None

    # =========================================================================
    # Line-items
    # =========================================================================

    async def get_run_membership(self, owner_id: str, run_id: str) -> dict[str, int]:
        """Map of client_id -> ordinal for every line-item in the run."""
        rows = await self.postgres.fetch_all(
            """
            SELECT client_id, ordinal_index
            FROM daily_run_clients
            WHERE daily_run_id = :run_id AND user_id = :user_id
            """,
            {'run_id': run_id, 'user_id': owner_id},
        )
        return {str(r['client_id']): r['ordinal_index'] for r in rows}

    async def insert_line_items(
        self,
        owner_id: str,
        run_id: str,
        slots: list[tuple[str, int]],
    ) -> list[str]:
        """
        Insert (client_id, ordinal) slots, skipping any that conflict.

        A conflicting slot means a concurrent request already covered that
        client or ordinal; it is dropped rather than raised.

        Returns:
            Client ids actually inserted
        """
        if not slots:
            return []

        values = []
        params: dict[str, Any] = {'user_id': owner_id, 'run_id': run_id}
        for n, (client_id, ordinal) in enumerate(slots):
            values.append(f'(:id_{n}, :user_id, :run_id, :client_id_{n}, :ordinal_{n})')
            params[f'id_{n}'] = str(uuid7())
            params[f'client_id_{n}'] = client_id
            params[f'ordinal_{n}'] = ordinal

        rows = await self.postgres.execute(
            f"""
            INSERT INTO daily_run_clients (id, user_id, daily_run_id, client_id, ordinal_index)
            VALUES {', '.join(values)}
            ON CONFLICT DO NOTHING
            RETURNING client_id
            """,
            params,
        )
        return [str(r['client_id']) for r in rows]

    async def list_deck_rows(
        self,
        owner_id: str,
        run_id: str,
        include_contact_made: bool = True,
    ) -> list[dict[str, Any]]:
        """
        Line-items joined with their client, active clients only.

        The INNER JOIN plus the status predicate drop rows for inactive or
        deleted clients inside the query.
        """
        contact_col = ', i.contact_made' if include_contact_made else ''
        return await self.postgres.fetch_all(
            f"""
            SELECT {ITEM_COLUMNS}{contact_col},
                   c.id AS client__id, c.user_id AS client__user_id,
                   c.name AS client__name, c.status AS client__status,
                   c.priority AS client__priority, c.notes AS client__notes,
                   c.today_signal AS client__today_signal,
                   c.last_contact_at AS client__last_contact_at,
                   c.last_touched_at AS client__last_touched_at
            FROM daily_run_clients i
            INNER JOIN clients c
                ON c.id = i.client_id AND c.user_id = i.user_id
            WHERE i.daily_run_id = :run_id
              AND i.user_id = :user_id
              AND c.status = 'active'
            ORDER BY i.ordinal_index ASC
            """,
            {'run_id': run_id, 'user_id': owner_id},
        )

    async def update_outcome(
        self,
        owner_id: str,
        item_id: str,
        outcome: ReviewOutcome,
        quick_note: str | None,
        reviewed_at: datetime,
    ) -> RunLineItem | None:
        """
        Overwrite outcome, note and timestamp.

        Repeating the current outcome and note keeps the original timestamp.
        Returns None if the item does not exist or is not the owner's.
        """
        rows = await self.postgres.execute(
            f"""
            UPDATE daily_run_clients i
            SET outcome = :outcome,
                quick_note = :quick_note,
                reviewed_at = CASE
                    WHEN i.outcome IS NOT DISTINCT FROM :outcome
                     AND i.quick_note IS NOT DISTINCT FROM :quick_note
                    THEN coalesce(i.reviewed_at, :reviewed_at)
                    ELSE :reviewed_at
                END
            WHERE i.id = :item_id AND i.user_id = :user_id
            RETURNING {ITEM_COLUMNS}
            """,
            {
                'outcome': outcome.value,
                'quick_note': quick_note,
                'reviewed_at': reviewed_at,
                'item_id': item_id,
                'user_id': owner_id,
            },
        )
        return RunLineItem.from_row(rows[0]) if rows else None

    async def update_contact_made(
        self,
        owner_id: str,
        item_id: str,
        contact_made: bool,
    ) -> RunLineItem | None:
        rows = await self.postgres.execute(
            f"""
            UPDATE daily_run_clients i
            SET contact_made = :contact_made
            WHERE i.id = :item_id AND i.user_id = :user_id
            RETURNING {ITEM_COLUMNS}, i.contact_made
            """,
            {'contact_made': contact_made, 'item_id': item_id, 'user_id': owner_id},
        )
        return RunLineItem.from_row(rows[0]) if rows else None

    # =========================================================================
    # Clients
    # =========================================================================

    async def list_active_clients(self, owner_id: str) -> list[Client]:
        rows = await self.postgres.fetch_all(
            f"""
            SELECT {CLIENT_COLUMNS}
            FROM clients c
            WHERE c.user_id = :user_id AND c.status = 'active'
            """,
            {'user_id': owner_id},
        )
        return [Client.from_row(r) for r in rows]

    async def touch_client(
        self,
        owner_id: str,
        client_id: str,
        at: datetime,
        contact_made: bool = False,
    ) -> None:
        """Set last_touched_at, and last_contact_at too when contact was made."""
        contact_set = ', last_contact_at = :at' if contact_made else ''
        await self.postgres.execute(
            f"""
            UPDATE clients
            SET last_touched_at = :at{contact_set}, updated_at = :at
            WHERE id = :client_id AND user_id = :user_id
            """,
            {'at': at, 'client_id': client_id, 'user_id': owner_id},
        )

    async def insert_annotation(
        self,
        owner_id: str,
        client_id: str,
        body: str,
        source_item_id: str | None,
        created_at: datetime,
    ) -> bool:
        """Add a client note. False when the same item already wrote this body."""
        rows = await self.postgres.execute(
            """
            INSERT INTO client_notes (id, user_id, client_id, body, source_item_id, created_at)
            VALUES (:id, :user_id, :client_id, :body, :source_item_id, :created_at)
            ON CONFLICT DO NOTHING
            RETURNING id
            """,
            {
                'id': str(uuid7()),
                'user_id': owner_id,
                'client_id': client_id,
                'body': body,
                'source_item_id': source_item_id,
                'created_at': created_at,
            },
        )
        return bool(rows)

    async def update_client_notes(
        self,
        owner_id: str,
        client_id: str,
        notes: str | None,
    ) -> bool:
        rows = await self.postgres.execute(
            """
            UPDATE clients SET notes = :notes, updated_at = now()
            WHERE id = :client_id AND user_id = :user_id
            RETURNING id
            """,
            {'notes': notes, 'client_id': client_id, 'user_id': owner_id},
        )
        return bool(rows)

    async def list_needs_attention(self, owner_id: str, cutoff: datetime) -> list[Client]:
        """Active clients never touched, or last touched at or before `cutoff`."""
        rows = await self.postgres.fetch_all(
            f"""
            SELECT {CLIENT_COLUMNS}
            FROM clients c
            WHERE c.user_id = :user_id
              AND c.status = 'active'
              AND (c.last_touched_at IS NULL OR c.last_touched_at <= :cutoff)
            ORDER BY c.last_touched_at ASC NULLS FIRST, lower(c.name) ASC
            """,
            {'user_id': owner_id, 'cutoff': cutoff},
        )
        return [Client.from_row(r) for r in rows]

    async def count_clients(self, owner_id: str) -> dict[str, int]:
        row = await self.postgres.fetch_one(
            """
            SELECT
                count(*) AS total,
                count(*) FILTER (WHERE status = 'active') AS active,
                count(*) FILTER (WHERE status = 'prospect') AS prospect,
                count(*) FILTER (WHERE status = 'inactive') AS inactive,
                count(*) FILTER (WHERE status = 'active' AND priority = 'high') AS high_priority
            FROM clients
            WHERE user_id = :user_id
            """,
            {'user_id': owner_id},
        )
        row = row or {}
        return {k: int(row.get(k) or 0) for k in ('total', 'active', 'prospect', 'inactive', 'high_priority')}

    # =========================================================================
    # Tasks
    # =========================================================================

    async def count_tasks(self, owner_id: str, today: str) -> dict[str, int]:
        """
        Pending tasks, and those already overdue.

        A due date counts from the start of its business day, so a task due
        `today` is overdue once today has begun.
        """
        row = await self.postgres.fetch_one(
            """
            SELECT
                count(*) AS pending,
                count(*) FILTER (WHERE due_date IS NOT NULL AND due_date <= :today) AS overdue
            FROM tasks
            WHERE user_id = :user_id AND status = 'pending'
            """,
            {'user_id': owner_id, 'today': parse_day_key(today)},
        )
        row = row or {}
        return {'pending': int(row.get('pending') or 0), 'overdue': int(row.get('overdue') or 0)}

    # =========================================================================
    # Progress
    # =========================================================================

    async def list_run_progress(
        self,
        owner_id: str,
        since: str | None = None,
        limit: int | None = None,
    ) -> list[RunProgress]:
        """
        Outcome counts per run, newest first.

        Counts cover line-items whose client is still active, the same rows
        the deck shows. Runs with no such items report total = 0.
        """
        since_clause = 'AND r.run_date >= :since' if since else ''
        limit_clause = 'LIMIT :limit' if limit else ''
        params: dict[str, Any] = {'user_id': owner_id}
        if since:
            params['since'] = parse_day_key(since)
        if limit:
            params['limit'] = limit

        rows = await self.postgres.fetch_all(
            f"""
            SELECT
                r.id AS run_id,
                r.run_date,
                count(c.id) AS total,
                count(c.id) FILTER (WHERE i.outcome = 'reviewed') AS reviewed,
                count(c.id) FILTER (WHERE i.outcome = 'flagged') AS flagged
            FROM daily_runs r
            LEFT JOIN daily_run_clients i
                ON i.daily_run_id = r.id AND i.user_id = r.user_id
            LEFT JOIN clients c
                ON c.id = i.client_id AND c.user_id = i.user_id AND c.status = 'active'
            WHERE r.user_id = :user_id {since_clause}
            GROUP BY r.id, r.run_date
            ORDER BY r.run_date DESC
            {limit_clause}
            """,
            params,
        )
        return [
            RunProgress(
                run_id=str(r['run_id']),
                run_date=_day(r['run_date']),
                total=int(r['total']),
                reviewed=int(r['reviewed']),
                flagged=int(r['flagged']),
            )
            for r in rows
        ]

    # =========================================================================
    # Focus notes
    # =========================================================================

    async def upsert_focus_note(
        self,
        owner_id: str,
        run_date: str,
        note: str,
        updated_at: datetime,
    ) -> DailyFocusNote:
        rows = await self.postgres.execute(
            """
            INSERT INTO daily_focus (user_id, run_date, note, updated_at)
            VALUES (:user_id, :run_date, :note, :updated_at)
            ON CONFLICT (user_id, run_date) DO UPDATE SET
                note = EXCLUDED.note,
                updated_at = EXCLUDED.updated_at
            RETURNING user_id, run_date, note, updated_at
            """,
            {
                'user_id': owner_id,
                'run_date': parse_day_key(run_date),
                'note': note,
                'updated_at': updated_at,
            },
        )
        row = rows[0]
        return DailyFocusNote(
            owner_id=str(row['user_id']),
            run_date=_day(row['run_date']),
            note=row['note'],
            updated_at=row['updated_at'],
        )

    async def get_focus_note(self, owner_id: str, run_date: str) -> DailyFocusNote | None:
        row = await self.postgres.fetch_one(
            """
            SELECT user_id, run_date, note, updated_at
            FROM daily_focus
            WHERE user_id = :user_id AND run_date = :run_date
            """,
            {'user_id': owner_id, 'run_date': parse_day_key(run_date)},
        )
        if not row:
            return None
        return DailyFocusNote(
            owner_id=str(row['user_id']),
            run_date=_day(row['run_date']),
            note=row['note'],
            updated_at=row['updated_at'],
        )
