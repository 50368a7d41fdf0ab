# tests/memory_store.py
"""
In-memory Store for the test suite.

Behaves like PgStore where the workflows can tell the difference:

- rows come back as copies, so callers cannot mutate stored state
- `transaction()` snapshots every table and restores it on error
- one transaction runs at a time (a coarse stand-in for row locks)
- the same unique keys as the schema raise Conflict
"""
import asyncio
import copy
import itertools
from contextlib import asynccontextmanager

from errors import Conflict
from store import COLLECTIONS, Contains, Store, check_collection, new_id

# Mirrors the UNIQUE constraints in init_db.INIT_SQL
UNIQUE_KEYS = {
    "proposals": [("project_id", "freelancer_id")],
    "transactions": [("reference",)],
    "ratings": [("project_id", "rater_id")],
}


class InjectedFailure(RuntimeError):
    pass


def _matches(row: dict, filters: dict) -> bool:
    for field, value in filters.items():
        actual = row.get(field)
        if value is None:
            if actual is not None:
                return False
        elif isinstance(value, Contains):
            if value.item not in (actual or []):
                return False
        elif isinstance(value, (list, tuple, set)):
            if actual not in value:
                return False
        elif actual != value:
            return False
    return True


class MemoryStore(Store):
    def __init__(self):
        self.tables = {name: {} for name in COLLECTIONS}
        self._seq = itertools.count()
        self._order = {}
        self._lock = None
        self._lock_loop = None
        self._owner = None
        # (operation, collection) pairs that raise InjectedFailure
        self.fail_on = set()
        # (collection, id) of every locking read, in the order taken
        self.lock_log = []

    # --- transactions ---

    def _get_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    @asynccontextmanager
    async def transaction(self):
        task = asyncio.current_task()
        if self._owner is task:
            # nested: the outer block owns the snapshot
            yield self
            return

        lock = self._get_lock()
        async with lock:
            self._owner = task
            snapshot = copy.deepcopy(self.tables)
            order = dict(self._order)
            try:
                yield self
            except BaseException:
                self.tables = snapshot
                self._order = order
                raise
            finally:
                self._owner = None

    def _check_fail(self, op: str, collection: str):
        if (op, collection) in self.fail_on:
            raise InjectedFailure(f"{op} on {collection} failed")

    def _check_unique(self, collection: str, doc: dict):
        for key in UNIQUE_KEYS.get(collection, []):
            values = tuple(doc.get(k) for k in key)
            if any(v is None for v in values):
                continue
            for row in self.tables[collection].values():
                if row["id"] != doc["id"] and tuple(row.get(k) for k in key) == values:
                    raise Conflict(f"Duplicate {collection} entry")

    # --- reads ---

    async def get(self, collection, doc_id, *, for_update=False):
        check_collection(collection)
        if for_update:
            self.lock_log.append((collection, doc_id))
        row = self.tables[collection].get(doc_id)
        return copy.deepcopy(row) if row else None

    async def find(self, collection, *, order_by=None, descending=False, limit=None, for_update=False, **filters):
        check_collection(collection)
        rows = [r for r in self.tables[collection].values() if _matches(r, filters)]

        if order_by:
            rows.sort(
                key=lambda r: (r.get(order_by) is None, r.get(order_by), self._order[(collection, r["id"])]),
                reverse=descending,
            )
        else:
            rows.sort(key=lambda r: self._order[(collection, r["id"])])

        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    async def count(self, collection, **filters):
        return len(await self.find(collection, **filters))

    async def total(self, collection, field, **filters):
        return sum((row.get(field) or 0) for row in await self.find(collection, **filters))

    # --- writes ---

    async def insert(self, collection, doc):
        check_collection(collection)
        self._check_fail("insert", collection)
        doc = copy.deepcopy({"id": new_id(), **doc})
        if doc["id"] in self.tables[collection]:
            raise Conflict(f"Duplicate {collection} entry")
        self._check_unique(collection, doc)

        self.tables[collection][doc["id"]] = doc
        self._order[(collection, doc["id"])] = next(self._seq)
        return copy.deepcopy(doc)

    async def update(self, collection, doc_id, **fields):
        check_collection(collection)
        self._check_fail("update", collection)
        row = self.tables[collection].get(doc_id)
        if row is None:
            return None

        candidate = {**row, **copy.deepcopy(fields)}
        self._check_unique(collection, candidate)
        self.tables[collection][doc_id] = candidate
        return copy.deepcopy(candidate)

    async def delete(self, collection, doc_id):
        check_collection(collection)
        self._check_fail("delete", collection)
        self._order.pop((collection, doc_id), None)
        return self.tables[collection].pop(doc_id, None) is not None
