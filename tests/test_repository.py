"""
Tests for DeckRepository SQL and row mapping.

The PostgresClient is mocked; these tests check statement shape, owner
scoping and the translation of rows into models.
"""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from morning_deck.clients.postgres_client import StorageCapabilities
from morning_deck.models.client import ClientStatus
from morning_deck.models.run import ReviewOutcome
from morning_deck.repository import DeckRepository

OWNER = 'owner-1'
NOW = datetime(2026, 3, 12, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def postgres():
    pg = MagicMock()
    pg.capabilities = StorageCapabilities()
    pg.execute = AsyncMock(return_value=[])
    pg.fetch_all = AsyncMock(return_value=[])
    pg.fetch_one = AsyncMock(return_value=None)
    return pg


@pytest.fixture
def repository(postgres) -> DeckRepository:
    return DeckRepository(postgres)


def _sql(mock) -> str:
    return ' '.join(mock.call_args[0][0].split())


def _params(mock) -> dict:
    return mock.call_args[0][1]


def _client_row(client_id='c1', status='active', prefix=''):
    return {
        f'{prefix}id': client_id,
        f'{prefix}user_id': OWNER,
        f'{prefix}name': 'Acme',
        f'{prefix}status': status,
        f'{prefix}priority': 'high',
        f'{prefix}notes': 'renewal\nbudget',
        f'{prefix}today_signal': None,
        f'{prefix}last_contact_at': None,
        f'{prefix}last_touched_at': NOW,
    }


class TestRuns:
    @pytest.mark.asyncio
    async def test_upsert_run_is_a_single_conflict_tolerant_insert(self, repository, postgres):
        postgres.execute.return_value = [{
            'id': 'run-1', 'user_id': OWNER, 'run_date': date(2026, 3, 12),
            'created_at': NOW, 'inserted': True,
        }]

        run, created = await repository.upsert_run(OWNER, '2026-03-12', NOW)

        sql = _sql(postgres.execute)
        assert 'ON CONFLICT (user_id, run_date) DO UPDATE' in sql
        assert '(xmax = 0) AS inserted' in sql
        assert _params(postgres.execute)['run_date'] == date(2026, 3, 12)
        assert run.run_date == '2026-03-12'
        assert created is True

    @pytest.mark.asyncio
    async def test_upsert_run_reports_existing(self, repository, postgres):
        postgres.execute.return_value = [{
            'id': 'run-1', 'user_id': OWNER, 'run_date': date(2026, 3, 12),
            'created_at': NOW, 'inserted': False,
        }]
        _, created = await repository.upsert_run(OWNER, '2026-03-12', NOW)
        assert created is False

    @pytest.mark.asyncio
    async def test_get_run_is_owner_scoped(self, repository, postgres):
        assert await repository.get_run(OWNER, 'run-1') is None
        assert 'user_id = :user_id' in _sql(postgres.fetch_one)
        assert _params(postgres.fetch_one) == {'run_id': 'run-1', 'user_id': OWNER}


class TestLineItems:
    @pytest.mark.asyncio
    async def test_membership(self, repository, postgres):
        postgres.fetch_all.return_value = [
            {'client_id': 'c1', 'ordinal_index': 1},
            {'client_id': 'c2', 'ordinal_index': 4},
        ]
        assert await repository.get_run_membership(OWNER, 'run-1') == {'c1': 1, 'c2': 4}

    @pytest.mark.asyncio
    async def test_insert_line_items_multi_row_on_conflict_do_nothing(self, repository, postgres):
        postgres.execute.return_value = [{'client_id': 'c2'}]

        inserted = await repository.insert_line_items(OWNER, 'run-1', [('c1', 3), ('c2', 4)])

        sql = _sql(postgres.execute)
        params = _params(postgres.execute)
        assert 'ON CONFLICT DO NOTHING' in sql
        assert 'RETURNING client_id' in sql
        assert params['client_id_0'] == 'c1' and params['ordinal_0'] == 3
        assert params['client_id_1'] == 'c2' and params['ordinal_1'] == 4
        assert params['id_0'] != params['id_1']
        assert inserted == ['c2']

    @pytest.mark.asyncio
    async def test_insert_nothing_skips_storage(self, repository, postgres):
        assert await repository.insert_line_items(OWNER, 'run-1', []) == []
        postgres.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_deck_rows_filter_to_active_clients_in_query(self, repository, postgres):
        await repository.list_deck_rows(OWNER, 'run-1')

        sql = _sql(postgres.fetch_all)
        assert 'INNER JOIN clients c' in sql
        assert "c.status = 'active'" in sql
        assert 'i.contact_made' in sql
        assert 'ORDER BY i.ordinal_index ASC' in sql

    @pytest.mark.asyncio
    async def test_deck_rows_without_contact_made(self, repository, postgres):
        await repository.list_deck_rows(OWNER, 'run-1', include_contact_made=False)
        assert 'contact_made' not in _sql(postgres.fetch_all)

    @pytest.mark.asyncio
    async def test_update_outcome_keeps_timestamp_for_identical_remark(self, repository, postgres):
        postgres.execute.return_value = [{
            'id': 'i1', 'daily_run_id': 'run-1', 'client_id': 'c1', 'ordinal_index': 1,
            'outcome': 'flagged', 'quick_note': 'call', 'reviewed_at': NOW,
        }]

        item = await repository.update_outcome(OWNER, 'i1', ReviewOutcome.FLAGGED, 'call', NOW)

        sql = _sql(postgres.execute)
        assert 'IS NOT DISTINCT FROM :outcome' in sql
        assert 'coalesce(i.reviewed_at, :reviewed_at)' in sql
        assert _params(postgres.execute)['outcome'] == 'flagged'
        assert item.outcome == ReviewOutcome.FLAGGED
        assert item.run_id == 'run-1'

    @pytest.mark.asyncio
    async def test_update_outcome_missing_item(self, repository, postgres):
        assert await repository.update_outcome(OWNER, 'nope', ReviewOutcome.REVIEWED, None, NOW) is None

    @pytest.mark.asyncio
    async def test_update_contact_made(self, repository, postgres):
        postgres.execute.return_value = [{
            'id': 'i1', 'daily_run_id': 'run-1', 'client_id': 'c1', 'ordinal_index': 1,
            'outcome': None, 'quick_note': None, 'reviewed_at': None, 'contact_made': True,
        }]
        item = await repository.update_contact_made(OWNER, 'i1', True)
        assert item.contact_made is True
        assert item.is_pending


class TestClients:
    @pytest.mark.asyncio
    async def test_list_active_clients(self, repository, postgres):
        postgres.fetch_all.return_value = [_client_row()]

        clients = await repository.list_active_clients(OWNER)

        assert "c.status = 'active'" in _sql(postgres.fetch_all)
        assert clients[0].status == ClientStatus.ACTIVE
        assert clients[0].bullets == ['renewal', 'budget']

    @pytest.mark.asyncio
    async def test_touch_client_without_contact(self, repository, postgres):
        await repository.touch_client(OWNER, 'c1', NOW)
        sql = _sql(postgres.execute)
        assert 'last_touched_at = :at' in sql
        assert 'last_contact_at' not in sql

    @pytest.mark.asyncio
    async def test_touch_client_with_contact(self, repository, postgres):
        await repository.touch_client(OWNER, 'c1', NOW, contact_made=True)
        assert 'last_contact_at = :at' in _sql(postgres.execute)

    @pytest.mark.asyncio
    async def test_insert_annotation_reports_duplicates(self, repository, postgres):
        postgres.execute.return_value = []
        assert await repository.insert_annotation(OWNER, 'c1', 'note', 'i1', NOW) is False
        assert 'ON CONFLICT DO NOTHING' in _sql(postgres.execute)

        postgres.execute.return_value = [{'id': 'n1'}]
        assert await repository.insert_annotation(OWNER, 'c1', 'note', 'i1', NOW) is True

    @pytest.mark.asyncio
    async def test_needs_attention_cutoff(self, repository, postgres):
        await repository.list_needs_attention(OWNER, NOW)
        sql = _sql(postgres.fetch_all)
        assert 'c.last_touched_at IS NULL OR c.last_touched_at <= :cutoff' in sql
        assert _params(postgres.fetch_all)['cutoff'] == NOW

    @pytest.mark.asyncio
    async def test_count_clients_defaults_to_zero(self, repository, postgres):
        counts = await repository.count_clients(OWNER)
        assert counts == {'total': 0, 'active': 0, 'prospect': 0, 'inactive': 0, 'high_priority': 0}

    @pytest.mark.asyncio
    async def test_count_tasks_due_today_is_overdue(self, repository, postgres):
        postgres.fetch_one.return_value = {'pending': 4, 'overdue': 1}

        counts = await repository.count_tasks(OWNER, '2026-03-12')

        assert counts == {'pending': 4, 'overdue': 1}
        assert 'due_date <= :today' in _sql(postgres.fetch_one)
        assert _params(postgres.fetch_one)['today'] == date(2026, 3, 12)


class TestProgress:
    @pytest.mark.asyncio
    async def test_counts_only_active_clients(self, repository, postgres):
        postgres.fetch_all.return_value = [{
            'run_id': 'run-1', 'run_date': date(2026, 3, 12),
            'total': 3, 'reviewed': 2, 'flagged': 1,
        }]

        progress = await repository.list_run_progress(OWNER, since='2026-01-11')

        sql = _sql(postgres.fetch_all)
        assert "c.status = 'active'" in sql
        assert 'r.run_date >= :since' in sql
        assert 'LIMIT' not in sql
        assert progress[0].run_date == '2026-03-12'
        assert progress[0].complete is True

    @pytest.mark.asyncio
    async def test_limit(self, repository, postgres):
        await repository.list_run_progress(OWNER, limit=5)
        assert 'LIMIT :limit' in _sql(postgres.fetch_all)
        assert _params(postgres.fetch_all)['limit'] == 5


class TestFocusNotes:
    @pytest.mark.asyncio
    async def test_upsert(self, repository, postgres):
        postgres.execute.return_value = [{
            'user_id': OWNER, 'run_date': date(2026, 3, 12), 'note': 'focus', 'updated_at': NOW,
        }]

        note = await repository.upsert_focus_note(OWNER, '2026-03-12', 'focus', NOW)

        assert 'ON CONFLICT (user_id, run_date) DO UPDATE' in _sql(postgres.execute)
        assert note.run_date == '2026-03-12'
        assert note.note == 'focus'

    @pytest.mark.asyncio
    async def test_get_missing(self, repository, postgres):
        assert await repository.get_focus_note(OWNER, '2026-03-12') is None


class TestCapabilities:
    def test_supports_contact_made_reads_probe(self, repository, postgres):
        assert repository.supports_contact_made is True
        postgres.capabilities.contact_made = False
        assert repository.supports_contact_made is False

    def test_mark_column_missing_delegates(self, repository, postgres):
        repository.mark_column_missing('contact_made')
        postgres.mark_column_missing.assert_called_once_with('contact_made')
