"""
Tests for the PostgreSQL RecordStore.

Verifies that every verb builds a parameterized query with quoted identifiers,
that unknown tables and malformed column names are rejected before any SQL
runs, and that driver and connection failures surface as PersistenceError.
"""

import asyncio
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock
from uuid import UUID

import asyncpg
import pytest

from behavior_crm.core.errors import PersistenceError
from behavior_crm.core.store import PostgresRecordStore, Range, build_where


def _conn(pool: AsyncMock) -> AsyncMock:
    return pool.acquire.return_value.__aenter__.return_value


# =============================================================================
# WHERE clause builder
# =============================================================================


class TestBuildWhere:

    def test_empty(self) -> None:
        assert build_where() == ('', [])

    def test_filters_ranges_nulls_and_lists(self) -> None:
        start = datetime(2025, 3, 1, tzinfo=timezone.utc)
        end = datetime(2025, 3, 7, tzinfo=timezone.utc)

        clause, params = build_where(
            filters={'user_id': 'u-1'},
            ranges={'performed_at': Range(gte=start, lte=end)},
            is_null={'account_id': True},
            in_={'behavior': ['visit', 'call']},
        )

        assert clause == (
            ' WHERE "user_id" = $1'
            ' AND "performed_at" >= $2'
            ' AND "performed_at" <= $3'
            ' AND "account_id" IS NULL'
            ' AND "behavior" = ANY($4)'
        )
        assert params == ['u-1', start, end, ['visit', 'call']]

    def test_not_null_and_start_offset(self) -> None:
        clause, params = build_where(
            filters={'id': 'x'}, is_null={'resolved_at': False}, start=3
        )
        assert clause == ' WHERE "id" = $3 AND "resolved_at" IS NOT NULL'
        assert params == ['x']

    def test_exclusive_bounds(self) -> None:
        day = date(2025, 3, 1)
        clause, params = build_where(ranges={'detected_at': Range(gt=day, lt=day)})
        assert clause == ' WHERE "detected_at" < $1 AND "detected_at" > $2'
        assert params == [day, day]

    def test_rejects_malformed_column(self) -> None:
        with pytest.raises(ValueError):
            build_where(filters={'user_id; DROP TABLE users': 'x'})


# =============================================================================
# Verbs
# =============================================================================


@pytest.mark.asyncio
class TestSelect:

    async def test_builds_ordered_paginated_query(self, mock_db_pool: AsyncMock) -> None:
        _conn(mock_db_pool).fetch.return_value = [
            {'id': UUID('12345678-1234-5678-1234-567812345678'), 'name': 'A'}
        ]
        store = PostgresRecordStore(mock_db_pool)

        rows = await store.select(
            'accounts', filters={'type': 'clinic'}, order_by='name', descending=True,
            limit=10, offset=20,
        )

        query, *params = _conn(mock_db_pool).fetch.call_args.args
        assert query == (
            'SELECT * FROM "accounts" WHERE "type" = $1 ORDER BY "name" DESC LIMIT $2 OFFSET $3'
        )
        assert params == ['clinic', 10, 20]
        assert rows == [{'id': '12345678-1234-5678-1234-567812345678', 'name': 'A'}]

    async def test_unknown_table(self, mock_db_pool: AsyncMock) -> None:
        store = PostgresRecordStore(mock_db_pool)
        with pytest.raises(ValueError):
            await store.select('pg_user')
        _conn(mock_db_pool).fetch.assert_not_called()

    async def test_driver_error_becomes_persistence_error(self, mock_db_pool: AsyncMock) -> None:
        _conn(mock_db_pool).fetch.side_effect = asyncpg.exceptions.UndefinedTableError(
            'relation "activities" does not exist'
        )
        store = PostgresRecordStore(mock_db_pool)

        with pytest.raises(PersistenceError) as exc_info:
            await store.select('activities')

        assert exc_info.value.status_code == 502
        assert exc_info.value.message.startswith('select on activities failed')
        assert isinstance(exc_info.value.cause, asyncpg.PostgresError)

    async def test_query_timeout_becomes_persistence_error(self, mock_db_pool: AsyncMock) -> None:
        _conn(mock_db_pool).fetch.side_effect = asyncio.TimeoutError()
        store = PostgresRecordStore(mock_db_pool)

        with pytest.raises(PersistenceError) as exc_info:
            await store.select('activities')

        assert exc_info.value.status_code == 502

    async def test_connection_failure_becomes_persistence_error(self, mock_db_pool: AsyncMock) -> None:
        mock_db_pool.acquire.return_value.__aenter__.side_effect = ConnectionRefusedError('connection refused')
        store = PostgresRecordStore(mock_db_pool)

        with pytest.raises(PersistenceError):
            await store.insert('activities', [{'id': 'a'}])


@pytest.mark.asyncio
class TestInsert:

    async def test_multi_row_insert(self, mock_db_pool: AsyncMock) -> None:
        _conn(mock_db_pool).fetch.return_value = [{'id': 'a'}, {'id': 'b'}]
        store = PostgresRecordStore(mock_db_pool)

        rows = await store.insert('contacts', [
            {'account_id': 'acc', 'name': 'Kim'},
            {'account_id': 'acc', 'name': 'Lee'},
        ])

        query, *params = _conn(mock_db_pool).fetch.call_args.args
        assert query == (
            'INSERT INTO "contacts" ("account_id", "name") '
            'VALUES ($1, $2), ($3, $4) RETURNING *'
        )
        assert params == ['acc', 'Kim', 'acc', 'Lee']
        assert len(rows) == 2

    async def test_empty_insert_skips_database(self, mock_db_pool: AsyncMock) -> None:
        store = PostgresRecordStore(mock_db_pool)
        assert await store.insert('contacts', []) == []
        mock_db_pool.acquire.assert_not_called()

    async def test_mismatched_columns(self, mock_db_pool: AsyncMock) -> None:
        store = PostgresRecordStore(mock_db_pool)
        with pytest.raises(ValueError):
            await store.insert('contacts', [{'name': 'Kim'}, {'name': 'Lee', 'role': 'nurse'}])


@pytest.mark.asyncio
class TestUpsert:

    async def test_on_conflict_update(self, mock_db_pool: AsyncMock) -> None:
        _conn(mock_db_pool).fetch.return_value = [{'id': 'u-1', 'clerk_id': 'c', 'name': 'N'}]
        store = PostgresRecordStore(mock_db_pool)

        row = await store.upsert('users', {'clerk_id': 'c', 'name': 'N'}, ['clerk_id'])

        query = _conn(mock_db_pool).fetch.call_args.args[0]
        assert query == (
            'INSERT INTO "users" ("clerk_id", "name") VALUES ($1, $2) '
            'ON CONFLICT ("clerk_id") DO UPDATE SET "name" = EXCLUDED."name" RETURNING *'
        )
        assert row['id'] == 'u-1'

    async def test_do_nothing_returns_input(self, mock_db_pool: AsyncMock) -> None:
        store = PostgresRecordStore(mock_db_pool)

        row = await store.upsert('users', {'clerk_id': 'c'}, ['clerk_id'])

        assert 'DO NOTHING' in _conn(mock_db_pool).fetch.call_args.args[0]
        assert row == {'clerk_id': 'c'}


@pytest.mark.asyncio
class TestUpdate:

    async def test_set_then_where_parameters(self, mock_db_pool: AsyncMock) -> None:
        store = PostgresRecordStore(mock_db_pool)

        await store.update(
            'coaching_signals', {'is_resolved': True, 'message': 'm'}, {'id': 's-1'}
        )

        query, *params = _conn(mock_db_pool).fetch.call_args.args
        assert query == (
            'UPDATE "coaching_signals" SET "is_resolved" = $1, "message" = $2 '
            'WHERE "id" = $3 RETURNING *'
        )
        assert params == [True, 'm', 's-1']

    async def test_requires_filter(self, mock_db_pool: AsyncMock) -> None:
        store = PostgresRecordStore(mock_db_pool)
        with pytest.raises(ValueError):
            await store.update('activities', {'description': 'x'}, {})


@pytest.mark.asyncio
class TestDelete:

    async def test_returns_affected_count(self, mock_db_pool: AsyncMock) -> None:
        _conn(mock_db_pool).execute.return_value = 'DELETE 8'
        store = PostgresRecordStore(mock_db_pool)

        deleted = await store.delete(
            'behavior_scores',
            filters={'user_id': 'u-1'},
            ranges={'period_start': Range(gte=date(2025, 3, 1))},
        )

        query, *params = _conn(mock_db_pool).execute.call_args.args
        assert query == 'DELETE FROM "behavior_scores" WHERE "user_id" = $1 AND "period_start" >= $2'
        assert params == ['u-1', date(2025, 3, 1)]
        assert deleted == 8

    async def test_refuses_unfiltered_delete(self, mock_db_pool: AsyncMock) -> None:
        store = PostgresRecordStore(mock_db_pool)
        with pytest.raises(ValueError):
            await store.delete('activities')

    async def test_interface_error_becomes_persistence_error(self, mock_db_pool: AsyncMock) -> None:
        _conn(mock_db_pool).execute.side_effect = asyncpg.InterfaceError('pool is closed')
        store = PostgresRecordStore(mock_db_pool)

        with pytest.raises(PersistenceError):
            await store.delete('activities', filters={'id': 'a'})

    async def test_timeout_becomes_persistence_error(self, mock_db_pool: AsyncMock) -> None:
        _conn(mock_db_pool).execute.side_effect = asyncio.TimeoutError()
        store = PostgresRecordStore(mock_db_pool)

        with pytest.raises(PersistenceError):
            await store.delete('activities', filters={'id': 'a'})
