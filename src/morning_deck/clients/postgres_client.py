"""
Postgres client for the Morning Deck core.

Uses SQLAlchemy 2.0 async engine + asyncpg for raw SQL execution. The client
is constructed explicitly and passed to the repository; there is no
module-level connection.

Handles:
- Connection management (connect, close, verify_connectivity)
- Translation of driver failures into the StorageError hierarchy
- Bounded retries of reads while the store is unavailable
- Schema DDL with the uniqueness constraints the deck relies on
- A one-time capability probe for optional columns
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import config
from ..errors import StorageUnavailable, wrap_storage_error

logger = structlog.get_logger(__name__)

# Optional columns that older deployments may lack, keyed by table.
OPTIONAL_COLUMNS: dict[str, tuple[str, ...]] = {
    'daily_run_clients': ('contact_made',),
}

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS clients (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'active'
            CHECK (status IN ('active', 'inactive', 'prospect')),
        priority TEXT CHECK (priority IN ('high', 'medium', 'low')),
        notes TEXT,
        today_signal TEXT,
        last_contact_at TIMESTAMPTZ,
        last_touched_at TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    'CREATE INDEX IF NOT EXISTS clients_user_status_idx ON clients (user_id, status)',
    """
    CREATE TABLE IF NOT EXISTS client_notes (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        client_id TEXT NOT NULL REFERENCES clients (id) ON DELETE CASCADE,
        body TEXT NOT NULL,
        source_item_id TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    # NULL source_item_id values are distinct, so hand-written notes never collide
    """
    CREATE UNIQUE INDEX IF NOT EXISTS client_notes_source_body_key
        ON client_notes (source_item_id, body)
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        client_id TEXT,
        title TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'in_progress', 'completed', 'cancelled')),
        due_date DATE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    'CREATE INDEX IF NOT EXISTS tasks_user_status_idx ON tasks (user_id, status)',
    """
    CREATE TABLE IF NOT EXISTS daily_runs (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        run_date DATE NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        CONSTRAINT daily_runs_user_date_key UNIQUE (user_id, run_date)
    )
    """,
    # client_id carries no FK: line-items outlive deleted clients and are
    # hidden by the inner join on read.
    """
    CREATE TABLE IF NOT EXISTS daily_run_clients (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        daily_run_id TEXT NOT NULL REFERENCES daily_runs (id) ON DELETE CASCADE,
        client_id TEXT NOT NULL,
        ordinal_index INTEGER NOT NULL CHECK (ordinal_index >= 1),
        outcome TEXT CHECK (outcome IN ('reviewed', 'flagged')),
        quick_note TEXT,
        reviewed_at TIMESTAMPTZ,
        contact_made BOOLEAN NOT NULL DEFAULT false,
        CONSTRAINT daily_run_clients_run_client_key UNIQUE (daily_run_id, client_id),
        CONSTRAINT daily_run_clients_run_ordinal_key UNIQUE (daily_run_id, ordinal_index)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS daily_focus (
        user_id TEXT NOT NULL,
        run_date DATE NOT NULL,
        note TEXT NOT NULL DEFAULT '',
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        PRIMARY KEY (user_id, run_date)
    )
    """,
)


def _sanitize_url(url: str) -> str:
    """Remove URL query params that asyncpg does not understand.

    Hosted pooler URLs include ``channel_binding=require`` and ``sslmode=require``
    which are libpq parameters. asyncpg rejects unknown connection params.
    """
    _STRIP_PARAMS = {'channel_binding', 'sslmode'}
    parsed = urlparse(url)
    if not parsed.query:
        return url
    params = parse_qs(parsed.query)
    filtered = {k: v for k, v in params.items() if k not in _STRIP_PARAMS}
    new_query = urlencode(filtered, doseq=True)
    return urlunparse(parsed._replace(query=new_query))


def _normalise_driver(url: str) -> str:
    if url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql+asyncpg://', 1)
    if url.startswith('postgresql://') and '+asyncpg' not in url:
        return url.replace('postgresql://', 'postgresql+asyncpg://', 1)
    return url


@dataclass
class StorageCapabilities:
    """Optional schema features detected at startup."""

    contact_made: bool = True


class PostgresClient:
    """
    Async Postgres client shared by the deck services.

    Reads are retried while the store is unavailable and then re-raised as
    StorageUnavailable. Writes are not retried here; every deck write is
    safe for the caller to repeat.
    """

    def __init__(
        self,
        database_url: str | None = None,
        retry_attempts: int | None = None,
    ):
        """
        Initialize with a Postgres connection URL.

        Args:
            database_url: Postgres connection URL (defaults to config.DATABASE_URL).
                          'postgres://' and 'postgresql://' URLs are converted
                          to asyncpg.
            retry_attempts: Read attempts before StorageUnavailable propagates
                            (defaults to config.STORAGE_RETRY_ATTEMPTS)
        """
        self._engine: AsyncEngine | None = None
        self._database_url = database_url
        self.retry_attempts = retry_attempts or config.STORAGE_RETRY_ATTEMPTS
        self.capabilities = StorageCapabilities()

    async def connect(self, database_url: str | None = None) -> None:
        """
        Create the async engine. No-op if already connected.

        Args:
            database_url: Override the URL from __init__.
        """
        if self._engine is not None:
            return

        url = database_url or self._database_url or config.DATABASE_URL
        if not url:
            missing = ', '.join(config.validate())
            raise ValueError(f'database_url is required (missing config: {missing})')

        url = _normalise_driver(_sanitize_url(url))

        self._engine = create_async_engine(
            url,
            pool_size=5,
            max_overflow=5,
            pool_pre_ping=True,
            pool_timeout=30,
        )
        logger.info('postgres_client.connected')

    async def close(self) -> None:
        """Dispose of the engine and connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info('postgres_client.closed')

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError('PostgresClient not connected, call connect() first')
        return self._engine

    async def verify_connectivity(self) -> bool:
        """Return True if we can execute a simple query."""
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text('SELECT 1'))
            return True
        except Exception:
            logger.exception('postgres_client.connectivity_check_failed')
            return False

    # =========================================================================
    # Schema
    # =========================================================================

    async def setup_schema(self) -> int:
        """Create tables and constraints if missing. Returns statements run."""
        try:
            async with self.engine.begin() as conn:
                for statement in SCHEMA_STATEMENTS:
                    await conn.execute(text(statement))
        except Exception as e:
            raise wrap_storage_error(e, {'operation': 'setup_schema'}) from e
        logger.info('postgres_client.schema_ready', statements=len(SCHEMA_STATEMENTS))
        return len(SCHEMA_STATEMENTS)

    async def probe_capabilities(self) -> StorageCapabilities:
        """
        Check once which optional columns exist.

        Called at startup so request paths consult a flag instead of
        discovering a missing column by failing.
        """
        rows = await self.fetch_all(
            """
            SELECT table_name, column_name
            FROM information_schema.columns
            WHERE table_name = ANY(:tables) AND column_name = ANY(:columns)
            """,
            {
                'tables': list(OPTIONAL_COLUMNS),
                'columns': [c for cols in OPTIONAL_COLUMNS.values() for c in cols],
            },
        )
        present = {(r['table_name'], r['column_name']) for r in rows}
        self.capabilities = StorageCapabilities(
            contact_made=('daily_run_clients', 'contact_made') in present,
        )
        logger.info(
            'postgres_client.capabilities',
            contact_made=self.capabilities.contact_made,
        )
        return self.capabilities

    def mark_column_missing(self, column: str) -> None:
        """Record that an optional column turned out to be absent."""
        if column == 'contact_made' and self.capabilities.contact_made:
            self.capabilities.contact_made = False
            logger.warning('postgres_client.capability_disabled', column=column)

    # =========================================================================
    # Execution
    # =========================================================================

    async def _run(self, sql: str, params: dict[str, Any] | None) -> list[dict[str, Any]]:
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(text(sql), params or {})
                if not result.returns_rows:
                    return []
                return [dict(row) for row in result.mappings().all()]
        except RuntimeError:
            raise
        except Exception as e:
            raise wrap_storage_error(e, {'sql': ' '.join(sql.split())[:120]}) from e

    async def fetch_all(
        self,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Run a read and return rows as dicts.

        Retries while the store is unavailable, then re-raises. An empty list
        always means the query matched nothing.
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=0.2, max=2),
            retry=retry_if_exception_type(StorageUnavailable),
            reraise=True,
        ):
            with attempt:
                return await self._run(sql, params)
        return []

    async def fetch_one(
        self,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        rows = await self.fetch_all(sql, params)
        return rows[0] if rows else None

    async def execute(
        self,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Run a write in its own transaction. Returns RETURNING rows, if any."""
        return await self._run(sql, params)
