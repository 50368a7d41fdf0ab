# db.py
import logging

from fastapi import Depends, HTTPException
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from config import DATABASE_URL
from store import PgStore

logger = logging.getLogger(__name__)

# Global pool, created on first use
_pool: AsyncConnectionPool | None = None


async def getDB():
    """
    FastAPI dependency that lends one pooled connection per request.

    - The pool is opened lazily on the first request.
    - Connections are autocommit; multi-row work uses `store.transaction()`.
    - `yield` hands the connection back to the pool after the response.
    """
    global _pool

    if _pool is None:
        logger.info("Initializing connection pool")
        _pool = AsyncConnectionPool(
            conninfo=DATABASE_URL,
            # rows come back as dicts (record["id"]) instead of tuples
            kwargs={"row_factory": dict_row, "autocommit": True},
            open=False,
        )
        try:
            await _pool.open()
            logger.info("Connection pool opened")
        except Exception:
            logger.exception("Could not open connection pool")
            _pool = None
            raise

    if _pool is None:
        raise HTTPException(status_code=500, detail="Database connection pool is not available.")

    async with _pool.connection() as conn:
        yield conn


async def get_store(conn=Depends(getDB)) -> PgStore:
    return PgStore(conn)


async def close_pool():
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Connection pool closed")
