"""InMemoryGateway: deterministic in-process implementation of the Gateway protocol.

Designed for tests and local development. Rows live in an InMemoryStore that
is shared by every gateway bound to it, so each request (or test) can get its
own identity-scoped gateway over the same data. Write policies and uniqueness
constraints behave like the SQL backend.

Failure injection:
    store.fail_next("iniciativas", "delete")  # next matching call raises GatewayError
"""

import uuid
from datetime import datetime, timezone

from bitacora.core.exceptions import GatewayError, UniqueViolationError
from bitacora.gateway.base import INITIATIVES, LOG_ENTRIES, MEMBERS, PROFILES, TABLES, Filters, OrderBy, Row
from bitacora.gateway.policies import check_read, check_upload, check_write
from bitacora.gateway.storage import InMemoryObjectStorage, ObjectStorage

# Columns (or column groups) that must be unique per table, besides "id"
UNIQUE_KEYS: dict[str, list[tuple[str, ...]]] = {
    INITIATIVES: [("codigo",)],
    LOG_ENTRIES: [],
    PROFILES: [("email",)],
    MEMBERS: [("iniciativa_id", "user_id")],
}

_TIMESTAMP_DEFAULTS: dict[str, tuple[str, ...]] = {
    INITIATIVES: ("created_at",),
    LOG_ENTRIES: ("fecha", "created_at"),
    PROFILES: ("created_at",),
    MEMBERS: ("added_at",),
}


class InMemoryStore:
    """Table name -> rows, in insertion order."""

    def __init__(self) -> None:
        self.tables: dict[str, list[Row]] = {name: [] for name in TABLES}
        self.calls: list[tuple[str, str]] = []
        self._failures: dict[tuple[str, str], GatewayError] = {}

    def seed(self, table: str, **values) -> Row:
        """Insert a row bypassing policies (fixtures, bootstrap data)."""
        row = _with_defaults(table, values)
        self.tables[table].append(row)
        return dict(row)

    def fail_next(self, table: str, action: str, error: GatewayError | None = None) -> None:
        self._failures[(table, action)] = error or GatewayError(f"simulated {action} failure on {table}")

    def count_calls(self, action: str, table: str | None = None) -> int:
        return sum(1 for a, t in self.calls if a == action and (table is None or t == table))

    def record(self, action: str, table: str) -> None:
        self.calls.append((action, table))
        error = self._failures.pop((table, action), None)
        if error is not None:
            raise error


def _with_defaults(table: str, values: Row) -> Row:
    row = dict(values)
    row.setdefault("id", str(uuid.uuid4()))
    now = datetime.now(timezone.utc)
    for column in _TIMESTAMP_DEFAULTS.get(table, ()):
        if row.get(column) is None:
            row[column] = now
    if table == PROFILES:
        row.setdefault("role", "user")
    return row


def _matches(row: Row, filters: Filters | None) -> bool:
    for column, expected in (filters or {}).items():
        if isinstance(expected, (list, tuple, set)):
            if row.get(column) not in expected:
                return False
        elif row.get(column) != expected:
            return False
    return True


def _check_table(table: str) -> None:
    if table not in TABLES:
        raise GatewayError(f"relation \"{table}\" does not exist", code="42P01")


class InMemoryGateway:
    """Gateway over an InMemoryStore, bound to one identity."""

    def __init__(
        self,
        store: InMemoryStore,
        identity: str | None = None,
        storage: ObjectStorage | None = None,
    ) -> None:
        self.store = store
        self.identity = identity
        self.storage = storage or InMemoryObjectStorage()

    async def current_identity(self) -> str | None:
        return self.identity

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order_by: OrderBy | None = None,
        descending: bool = False,
    ) -> list[Row]:
        _check_table(table)
        check_read(self.identity)
        self.store.record("select", table)

        rows = [dict(r) for r in self.store.tables[table] if _matches(r, filters)]
        if order_by:
            columns = [order_by] if isinstance(order_by, str) else list(order_by)
            if descending:
                # full ties come out latest insert first
                rows.reverse()
            rows.sort(key=lambda r: [(r.get(c) is not None, r.get(c)) for c in columns], reverse=descending)
        return rows

    async def select_one(self, table: str, filters: Filters) -> Row | None:
        rows = await self.select(table, filters)
        return rows[0] if rows else None

    async def insert(self, table: str, values: Row) -> Row:
        _check_table(table)
        check_write(table, "insert", self.identity, self._role(), values)
        self.store.record("insert", table)

        row = _with_defaults(table, values)
        self._check_unique(table, row)
        self.store.tables[table].append(row)
        return dict(row)

    async def update(self, table: str, filters: Filters, values: Row) -> list[Row]:
        _check_table(table)
        check_write(table, "update", self.identity, self._role(), values)
        self.store.record("update", table)

        new_rows: list[Row] = []
        updated: list[Row] = []
        for row in self.store.tables[table]:
            if _matches(row, filters):
                row = {**row, **values}
                updated.append(row)
            new_rows.append(row)
        for row in updated:
            self._check_unique(table, row, ignore_id=row["id"], rows=new_rows)

        self.store.tables[table] = new_rows
        return [dict(r) for r in updated]

    async def delete(self, table: str, filters: Filters) -> int:
        _check_table(table)
        check_write(table, "delete", self.identity, self._role())
        self.store.record("delete", table)

        before = self.store.tables[table]
        kept = [r for r in before if not _matches(r, filters)]
        self.store.tables[table] = kept
        return len(before) - len(kept)

    async def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:
        check_upload(self.identity)
        self.store.record("upload", "storage")
        return await self.storage.upload(path, data, content_type)

    def _role(self) -> str | None:
        for row in self.store.tables[PROFILES]:
            if row["id"] == self.identity:
                return row.get("role")
        return None

    def _check_unique(
        self, table: str, row: Row, ignore_id: str | None = None, rows: list[Row] | None = None
    ) -> None:
        keys = [("id",)] + UNIQUE_KEYS.get(table, [])
        for existing in self.store.tables[table] if rows is None else rows:
            if existing["id"] == ignore_id:
                continue
            for columns in keys:
                if all(row.get(c) is not None and existing.get(c) == row.get(c) for c in columns):
                    raise UniqueViolationError(
                        f"duplicate key value violates unique constraint on {table}({', '.join(columns)})"
                    )
