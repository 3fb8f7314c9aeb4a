"""In-memory stand-ins for the asyncpg pool and connections.

`FakeAsyncpgPool` hands out `FakeConnection` objects that share one
`FakeDatabase`. Writes made inside ``conn.transaction()`` are buffered per
connection and only reach the shared tables on commit; nested
``transaction()`` calls behave like savepoints. Only the statements the
counter issues are understood.
"""

from __future__ import annotations

import re
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, TypeAlias

import pytest

from txprobe.infrastructure.postgres import AsyncConnectionPool, AsyncpgConfig

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from types import TracebackType

_CREATE_RE = re.compile(r"^CREATE TABLE IF NOT EXISTS (\w+)\(id INTEGER\)$")
_INSERT_RE = re.compile(r"^INSERT INTO (\w+)\(id\) VALUES \(\$1\)$")
_COUNT_RE = re.compile(r"^SELECT count\(\*\) FROM (\w+)$")

Op: TypeAlias = tuple[str, str, int | None]


class FakeReadOnlyError(Exception):
    """Write attempted inside a READ ONLY transaction."""


class FakeDatabase:
    def __init__(self) -> None:
        self.tables: dict[str, list[int]] = {}
        self.events: list[tuple[Any, ...]] = []

    def apply(self, ops: list[Op]) -> None:
        for kind, table, value in ops:
            if kind == "create":
                self.tables.setdefault(table, [])
            else:
                self.tables[table].append(value)  # type: ignore[arg-type]


class FakeTransaction:
    def __init__(self, conn: FakeConnection, kwargs: dict[str, Any]) -> None:
        self._conn = conn
        self.kwargs = kwargs

    async def __aenter__(self) -> FakeTransaction:
        nested = bool(self._conn.frames)
        self._conn.frames.append([])
        self._conn.readonly_stack.append(bool(self.kwargs.get("readonly")))
        self._conn.db.events.append((self._conn.name, "savepoint" if nested else "begin", self.kwargs))
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        ops = self._conn.frames.pop()
        self._conn.readonly_stack.pop()
        nested = bool(self._conn.frames)
        if exc_type is not None:
            self._conn.db.events.append((self._conn.name, "rollback_savepoint" if nested else "rollback"))
        elif nested:
            self._conn.frames[-1].extend(ops)
            self._conn.db.events.append((self._conn.name, "release_savepoint"))
        else:
            self._conn.db.apply(ops)
            self._conn.db.events.append((self._conn.name, "commit"))
        return False


class FakeConnection:
    def __init__(self, name: str, db: FakeDatabase) -> None:
        self.name = name
        self.db = db
        self.frames: list[list[Op]] = []
        self.readonly_stack: list[bool] = []

    def transaction(self, **kwargs: Any) -> FakeTransaction:
        return FakeTransaction(self, kwargs)

    def _visible_rows(self, table: str) -> list[int]:
        pending = [op for frame in self.frames for op in frame]
        created = table in self.db.tables or any(op[0] == "create" and op[1] == table for op in pending)
        if not created:
            raise LookupError(f'relation "{table}" does not exist')
        rows = list(self.db.tables.get(table, []))
        rows.extend(op[2] for op in pending if op[0] == "insert" and op[1] == table)  # type: ignore[misc]
        return rows

    async def execute(self, query: str, *args: object, timeout: float | None = None) -> str:
        if query == "SELECT 1":
            return "SELECT 1"
        if any(self.readonly_stack):
            raise FakeReadOnlyError("cannot execute statement in a read-only transaction")

        if match := _CREATE_RE.match(query):
            op: Op = ("create", match.group(1), None)
            status = "CREATE TABLE"
        elif match := _INSERT_RE.match(query):
            self._visible_rows(match.group(1))
            op = ("insert", match.group(1), int(args[0]))  # type: ignore[call-overload]
            status = "INSERT 0 1"
        else:
            raise NotImplementedError(query)

        self.db.events.append((self.name, "execute", query, args))
        if self.frames:
            self.frames[-1].append(op)
        else:
            self.db.apply([op])
        return status

    async def fetchval(self, query: str, *args: object, timeout: float | None = None) -> Any:
        if match := _COUNT_RE.match(query):
            self.db.events.append((self.name, "fetchval", query, args))
            return len(self._visible_rows(match.group(1)))
        if query == "SELECT 1":
            return 1
        raise NotImplementedError(query)


class FakeAsyncpgPool:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db
        self.acquired: list[FakeConnection] = []
        self.released: list[FakeConnection] = []

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[FakeConnection]:
        conn = FakeConnection(f"conn{len(self.acquired) + 1}", self.db)
        self.acquired.append(conn)
        try:
            yield conn
        finally:
            self.released.append(conn)

    def get_size(self) -> int:
        return len(self.acquired) - len(self.released)

    def get_max_size(self) -> int:
        return 10

    async def close(self) -> None:
        return None


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def fake_asyncpg_pool(fake_db: FakeDatabase) -> FakeAsyncpgPool:
    return FakeAsyncpgPool(fake_db)


@pytest.fixture
def pool(fake_asyncpg_pool: FakeAsyncpgPool) -> AsyncConnectionPool:
    """An `AsyncConnectionPool` already wired to the in-memory pool."""
    connection_pool = AsyncConnectionPool(AsyncpgConfig())
    connection_pool._pool = fake_asyncpg_pool  # type: ignore[assignment]
    return connection_pool
