"""
Generic persistence interface for the analytics services.

Services never write SQL. They talk to a RecordStore, which exposes filtered
reads and four write verbs over named tables. Rows travel as plain dicts keyed
by column name; identifiers come back as strings.

    rows = await store.select(
        'activities',
        filters={'user_id': user_id},
        ranges={'performed_at': Range(gte=start, lte=end)},
        order_by='performed_at',
        descending=True,
        limit=100,
    )

No transactions span calls. The refresh pattern used for behavior scores and
outcomes is two sequential calls (delete, then insert).

PostgresRecordStore is the production implementation over the asyncpg pool
from behavior_crm.core.database. Table names are whitelisted, column names are
validated and quoted, and every value is passed as a bind parameter.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

import asyncpg
from asyncpg import Pool

from behavior_crm.core.errors import PersistenceError
from behavior_crm.core.log import log_event

logger = logging.getLogger(__name__)

# Driver errors, query timeouts and connection failures all surface as PersistenceError
STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, asyncio.TimeoutError, OSError)


# =============================================================================
# Interface
# =============================================================================

TABLES = frozenset({
    'activities',
    'behavior_scores',
    'outcomes',
    'coaching_signals',
    'competitor_signals',
    'accounts',
    'contacts',
    'prescriptions',
    'users',
})

Row = Dict[str, Any]


@dataclass(frozen=True)
class Range:
    """Bounds for a range filter on one column. Unset bounds are ignored."""

    gte: Any = None
    lte: Any = None
    lt: Any = None
    gt: Any = None

    def bounds(self) -> List[Tuple[str, Any]]:
        pairs = [('>=', self.gte), ('<=', self.lte), ('<', self.lt), ('>', self.gt)]
        return [(op, value) for op, value in pairs if value is not None]


class RecordStore(ABC):
    """
    Filtered read and write access to the CRM tables.

    Filters combine with AND:
        filters   column = value
        ranges    column >= / <= / < / > bound (see Range)
        is_null   column IS NULL (True) or IS NOT NULL (False)
        in_       column = any of the given values
    """

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        ranges: Optional[Dict[str, Range]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        is_null: Optional[Dict[str, bool]] = None,
        in_: Optional[Dict[str, Sequence[Any]]] = None,
    ) -> List[Row]:
        ...

    @abstractmethod
    async def insert(self, table: str, rows: List[Row]) -> List[Row]:
        ...

    @abstractmethod
    async def upsert(self, table: str, row: Row, conflict_keys: Sequence[str]) -> Row:
        ...

    @abstractmethod
    async def update(
        self,
        table: str,
        values: Dict[str, Any],
        filters: Dict[str, Any],
    ) -> List[Row]:
        ...

    @abstractmethod
    async def delete(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        ranges: Optional[Dict[str, Range]] = None,
        is_null: Optional[Dict[str, bool]] = None,
    ) -> int:
        ...


# =============================================================================
# SQL Building Helpers
# =============================================================================

_IDENTIFIER = re.compile(r'^[a-z_][a-z0-9_]*$')


def _table(name: str) -> str:
    if name not in TABLES:
        raise ValueError(f"Unknown table: {name}")
    return f'"{name}"'


def _column(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid column name: {name}")
    return f'"{name}"'


def build_where(
    filters: Optional[Dict[str, Any]] = None,
    ranges: Optional[Dict[str, Range]] = None,
    is_null: Optional[Dict[str, bool]] = None,
    in_: Optional[Dict[str, Sequence[Any]]] = None,
    start: int = 1,
) -> Tuple[str, List[Any]]:
    """
    Build a parameterized WHERE clause.

    Args:
        start: Index of the first bind parameter ($start).

    Returns:
        Tuple of (clause, params). The clause is empty when nothing filters.
    """
    conditions: List[str] = []
    params: List[Any] = []

    def bind(value: Any) -> str:
        params.append(value)
        return f"${start + len(params) - 1}"

    for column, value in (filters or {}).items():
        conditions.append(f"{_column(column)} = {bind(value)}")

    for column, bounds in (ranges or {}).items():
        for op, value in bounds.bounds():
            conditions.append(f"{_column(column)} {op} {bind(value)}")

    for column, null in (is_null or {}).items():
        conditions.append(f"{_column(column)} IS {'' if null else 'NOT '}NULL")

    for column, values in (in_ or {}).items():
        conditions.append(f"{_column(column)} = ANY({bind(list(values))})")

    if not conditions:
        return '', params
    return ' WHERE ' + ' AND '.join(conditions), params


def _to_dict(record: Any) -> Row:
    row = dict(record)
    for key, value in row.items():
        if isinstance(value, UUID):
            row[key] = str(value)
    return row


def _affected(status: str) -> int:
    # asyncpg returns the command tag, e.g. "DELETE 3"
    try:
        return int(status.rsplit(' ', 1)[-1])
    except (ValueError, AttributeError):
        return 0


# =============================================================================
# PostgreSQL Implementation
# =============================================================================

class PostgresRecordStore(RecordStore):
    """RecordStore backed by an asyncpg connection pool."""

    def __init__(self, pool: Pool) -> None:
        self._pool = pool

    async def _fetch(self, operation: str, table: str, query: str, params: List[Any]) -> List[Row]:
        try:
            async with self._pool.acquire() as conn:
                records = await conn.fetch(query, *params)
        except STORE_ERRORS as exc:
            log_event(logger, logging.ERROR, 'store.failed', operation=operation, table=table, error=exc)
            raise PersistenceError(f"{operation} on {table} failed", cause=exc) from exc
        return [_to_dict(record) for record in records]

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        ranges: Optional[Dict[str, Range]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        is_null: Optional[Dict[str, bool]] = None,
        in_: Optional[Dict[str, Sequence[Any]]] = None,
    ) -> List[Row]:
        where, params = build_where(filters, ranges, is_null, in_)
        query = f"SELECT * FROM {_table(table)}{where}"
        if order_by:
            query += f" ORDER BY {_column(order_by)} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            params.append(limit)
            query += f" LIMIT ${len(params)}"
        if offset is not None:
            params.append(offset)
            query += f" OFFSET ${len(params)}"
        return await self._fetch('select', table, query, params)

    async def insert(self, table: str, rows: List[Row]) -> List[Row]:
        if not rows:
            return []
        columns = list(rows[0].keys())
        params: List[Any] = []
        groups: List[str] = []
        for row in rows:
            if set(row.keys()) != set(columns):
                raise ValueError("All inserted rows must have the same columns")
            placeholders = []
            for column in columns:
                params.append(row[column])
                placeholders.append(f"${len(params)}")
            groups.append(f"({', '.join(placeholders)})")
        query = (
            f"INSERT INTO {_table(table)} ({', '.join(_column(c) for c in columns)}) "
            f"VALUES {', '.join(groups)} RETURNING *"
        )
        return await self._fetch('insert', table, query, params)

    async def upsert(self, table: str, row: Row, conflict_keys: Sequence[str]) -> Row:
        if not conflict_keys:
            raise ValueError("upsert requires at least one conflict key")
        columns = list(row.keys())
        params = [row[column] for column in columns]
        placeholders = ', '.join(f"${i}" for i in range(1, len(columns) + 1))
        updates = [c for c in columns if c not in conflict_keys]
        if updates:
            action = 'DO UPDATE SET ' + ', '.join(
                f"{_column(c)} = EXCLUDED.{_column(c)}" for c in updates
            )
        else:
            action = 'DO NOTHING'
        query = (
            f"INSERT INTO {_table(table)} ({', '.join(_column(c) for c in columns)}) "
            f"VALUES ({placeholders}) "
            f"ON CONFLICT ({', '.join(_column(k) for k in conflict_keys)}) {action} "
            f"RETURNING *"
        )
        rows = await self._fetch('upsert', table, query, params)
        return rows[0] if rows else dict(row)

    async def update(
        self,
        table: str,
        values: Dict[str, Any],
        filters: Dict[str, Any],
    ) -> List[Row]:
        if not values:
            raise ValueError("update requires at least one value")
        if not filters:
            raise ValueError("update requires at least one filter")
        params = list(values.values())
        assignments = ', '.join(
            f"{_column(column)} = ${i}" for i, column in enumerate(values, start=1)
        )
        where, where_params = build_where(filters, start=len(params) + 1)
        query = f"UPDATE {_table(table)} SET {assignments}{where} RETURNING *"
        return await self._fetch('update', table, query, params + where_params)

    async def delete(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        ranges: Optional[Dict[str, Range]] = None,
        is_null: Optional[Dict[str, bool]] = None,
    ) -> int:
        where, params = build_where(filters, ranges, is_null)
        if not where:
            raise ValueError("delete requires at least one filter")
        query = f"DELETE FROM {_table(table)}{where}"
        try:
            async with self._pool.acquire() as conn:
                status = await conn.execute(query, *params)
        except STORE_ERRORS as exc:
            log_event(logger, logging.ERROR, 'store.failed', operation='delete', table=table, error=exc)
            raise PersistenceError(f"delete on {table} failed", cause=exc) from exc
        return _affected(status)
