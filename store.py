# store.py
"""
Document-style access to the marketplace tables.

Workflows talk to a Store instead of writing SQL inline, so the same
settlement code runs against PostgreSQL in production and against the
in-memory store in the test suite. Rows travel as plain dicts, the same
shape `dict_row` gives the route handlers.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from psycopg import AsyncConnection, errors as pg_errors, sql

from errors import Conflict

logger = logging.getLogger(__name__)

# Every table the API may touch; anything else is a programming error
COLLECTIONS = (
    "profiles",
    "categories",
    "projects",
    "proposals",
    "transactions",
    "payments",
    "notifications",
    "favorites",
    "ratings",
)


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection}")


class Contains:
    """Filter value matching rows whose array column holds `item`."""

    def __init__(self, item):
        self.item = item


class Store:
    """
    Interface shared by the PostgreSQL and in-memory stores.

    Filters are equality matches on columns. A list/tuple value means
    "column is one of", None means "column is NULL" and Contains(x)
    means "array column holds x". Locking reads
    (`for_update=True`) only make sense inside `transaction()`.
    """

    async def get(self, collection: str, doc_id: str, *, for_update: bool = False) -> dict | None:
        raise NotImplementedError

    async def find(
        self,
        collection: str,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        for_update: bool = False,
        **filters,
    ) -> list[dict]:
        raise NotImplementedError

    async def count(self, collection: str, **filters) -> int:
        raise NotImplementedError

    async def total(self, collection: str, field: str, **filters):
        """Sum of `field` over the matching rows, 0 when there are none."""
        raise NotImplementedError

    async def insert(self, collection: str, doc: dict) -> dict:
        raise NotImplementedError

    async def update(self, collection: str, doc_id: str, **fields) -> dict | None:
        raise NotImplementedError

    async def delete(self, collection: str, doc_id: str) -> bool:
        raise NotImplementedError

    def transaction(self):
        raise NotImplementedError

    async def find_one(self, collection: str, **filters) -> dict | None:
        rows = await self.find(collection, limit=1, **filters)
        return rows[0] if rows else None


def _where_clause(filters: dict) -> tuple[sql.Composable, list]:
    if not filters:
        return sql.SQL(""), []

    clauses = []
    params = []
    for field, value in filters.items():
        column = sql.Identifier(field)
        if value is None:
            clauses.append(sql.SQL("{} IS NULL").format(column))
        elif isinstance(value, Contains):
            clauses.append(sql.SQL("%s = ANY({})").format(column))
            params.append(value.item)
        elif isinstance(value, (list, tuple, set)):
            # cast so enum columns compare against a text[] parameter
            clauses.append(sql.SQL("{}::text = ANY(%s)").format(column))
            params.append(list(value))
        else:
            clauses.append(sql.SQL("{} = %s").format(column))
            params.append(value)

    return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses), params


class PgStore(Store):
    """
    Store backed by a pooled psycopg connection.

    The pool hands out autocommit connections, so single statements commit
    on their own and `transaction()` opens a real BEGIN/COMMIT block
    (nested calls become savepoints).
    """

    def __init__(self, conn: AsyncConnection):
        self.conn = conn

    @asynccontextmanager
    async def transaction(self):
        async with self.conn.transaction():
            yield self

    async def get(self, collection, doc_id, *, for_update=False):
        check_collection(collection)
        query = sql.SQL("SELECT * FROM {} WHERE id = %s").format(sql.Identifier(collection))
        if for_update:
            query += sql.SQL(" FOR UPDATE")

        async with self.conn.cursor() as cur:
            await cur.execute(query, (doc_id,))
            return await cur.fetchone()

    async def find(self, collection, *, order_by=None, descending=False, limit=None, for_update=False, **filters):
        check_collection(collection)
        where, params = _where_clause(filters)
        query = sql.SQL("SELECT * FROM {}").format(sql.Identifier(collection)) + where

        if order_by:
            query += sql.SQL(" ORDER BY {} {}").format(
                sql.Identifier(order_by), sql.SQL("DESC" if descending else "ASC")
            )
        if limit is not None:
            query += sql.SQL(" LIMIT %s")
            params.append(limit)
        if for_update:
            query += sql.SQL(" FOR UPDATE")

        async with self.conn.cursor() as cur:
            await cur.execute(query, params)
            return await cur.fetchall()

    async def count(self, collection, **filters):
        check_collection(collection)
        where, params = _where_clause(filters)
        query = sql.SQL("SELECT COUNT(*) AS count FROM {}").format(sql.Identifier(collection)) + where

        async with self.conn.cursor() as cur:
            await cur.execute(query, params)
            return (await cur.fetchone())["count"]

    async def total(self, collection, field, **filters):
        check_collection(collection)
        where, params = _where_clause(filters)
        query = sql.SQL("SELECT COALESCE(SUM({}), 0) AS total FROM {}").format(
            sql.Identifier(field), sql.Identifier(collection)
        ) + where

        async with self.conn.cursor() as cur:
            await cur.execute(query, params)
            return (await cur.fetchone())["total"]

    async def insert(self, collection, doc):
        check_collection(collection)
        doc = {"id": new_id(), **doc}
        columns = list(doc)
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(collection),
            sql.SQL(", ").join(map(sql.Identifier, columns)),
            sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )

        try:
            async with self.conn.cursor() as cur:
                await cur.execute(query, list(doc.values()))
                return await cur.fetchone()
        except pg_errors.UniqueViolation as e:
            logger.info("Duplicate %s row rejected: %s", collection, e.diag.constraint_name)
            raise Conflict(f"Duplicate {collection} entry") from e

    async def update(self, collection, doc_id, **fields):
        check_collection(collection)
        if not fields:
            return await self.get(collection, doc_id)

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(field)) for field in fields
        )
        query = sql.SQL("UPDATE {} SET {} WHERE id = %s RETURNING *").format(
            sql.Identifier(collection), assignments
        )

        async with self.conn.cursor() as cur:
            await cur.execute(query, [*fields.values(), doc_id])
            return await cur.fetchone()

    async def delete(self, collection, doc_id):
        check_collection(collection)
        query = sql.SQL("DELETE FROM {} WHERE id = %s").format(sql.Identifier(collection))

        async with self.conn.cursor() as cur:
            await cur.execute(query, (doc_id,))
            return cur.rowcount > 0
