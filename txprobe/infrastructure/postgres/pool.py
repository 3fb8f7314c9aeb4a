"""Async connection pool for PostgreSQL using asyncpg.

Transactions are explicit scopes: ``async with pool.atransaction() as conn``
commits when the block finishes and rolls back when it raises. A scope that
opens while another one is active in the same task follows a propagation rule
(`Propagation`), so a read helper called from inside a write transaction sees
that transaction's uncommitted rows.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Self, TypeAlias

import asyncpg
from asyncpg import Pool, Record

from ...core.enums import HealthStatus
from ...logger import get_logger
from ...resilience.retry import retry
from .exceptions import PoolNotInitializedError, TransactionPropagationError
from .health import HealthCheckResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from contextlib import AbstractAsyncContextManager
    from contextvars import Token
    from types import TracebackType

    from asyncpg.pool import PoolConnectionProxy

    from .config import AsyncpgConfig

logger = get_logger(__name__)

IsolationLevel: TypeAlias = Literal["read_uncommitted", "read_committed", "repeatable_read", "serializable"]
Propagation: TypeAlias = Literal["required", "requires_new", "nested"]


@dataclass(frozen=True, slots=True)
class _ActiveScope:
    owner: AsyncConnectionPool
    conn: PoolConnectionProxy[Record]
    readonly: bool
    parent: _ActiveScope | None


# Innermost open scope of the current task, across all pools. Each pool only
# sees the scopes it owns, found by walking `parent`.
_active_scope: ContextVar[_ActiveScope | None] = ContextVar("txprobe_active_scope", default=None)


class AsyncConnectionPool:
    """Async connection pool for a single PostgreSQL database.

    Examples
    --------
    >>> async with AsyncConnectionPool(config) as pool:
    ...     async with pool.atransaction() as conn:
    ...         await conn.execute("INSERT INTO foo(id) VALUES ($1)", 1)
    ...     total = await pool.afetchval("SELECT count(*) FROM foo")
    """

    __slots__ = ("_config", "_init_lock", "_pool")

    def __init__(self, config: AsyncpgConfig) -> None:
        self._config = config
        self._pool: Pool[Record] | None = None
        self._init_lock = asyncio.Lock()

    async def __aenter__(self) -> Self:
        await self.ainitialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None and exc_val is not None:
            logger.error(
                "AsyncConnectionPool context manager exiting with exception",
                exc_type=exc_type.__name__,
                exc_val=str(exc_val),
            )
        await self.aclose()

    @property
    def pool(self) -> Pool[Record]:
        """Access the underlying asyncpg pool.

        Raises
        ------
        PoolNotInitializedError
            If pool has not been initialized via `ainitialize()`.
        """
        if self._pool is None:
            msg = "Pool not initialized. Call ainitialize() first."
            raise PoolNotInitializedError(msg)
        return self._pool

    @property
    def active_connection(self) -> PoolConnectionProxy[Record] | None:
        """Connection of this pool's scope active in the current task, if any."""
        scope = self._current_scope()
        return scope.conn if scope is not None else None

    def _current_scope(self) -> _ActiveScope | None:
        scope = _active_scope.get()
        while scope is not None and scope.owner is not self:
            scope = scope.parent
        return scope

    def _enter_scope(self, conn: PoolConnectionProxy[Record], *, readonly: bool) -> Token[_ActiveScope | None]:
        return _active_scope.set(_ActiveScope(self, conn, readonly, parent=_active_scope.get()))

    async def ainitialize(self) -> None:
        """Initialize the connection pool.

        Idempotent. An asyncio lock serializes concurrent callers so that only
        one asyncpg pool is ever created per instance. Pool creation is retried
        on connection-level failures according to ``config.connect_retry``.
        """
        async with self._init_lock:
            if self._pool is not None:
                return

            acreate = retry(self._config.connect_retry)(self._acreate_pool)
            self._pool = await acreate()

            logger.info("AsyncConnectionPool initialized", **self._config.to_log_params())

    async def _acreate_pool(self) -> Pool[Record]:
        pool: Pool[Record] = await asyncpg.create_pool(**self._config.to_pool_params())
        try:
            async with pool.acquire() as conn:
                await conn.execute("SELECT 1")
        except BaseException:
            await pool.close()
            raise
        return pool

    async def aclose(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("AsyncConnectionPool closed")

    async def ahealth_check(self) -> HealthCheckResult:
        """Run ``SELECT 1`` on a pooled connection and time it."""
        max_size = self._config.pool.max_size
        if self._pool is None:
            return HealthCheckResult(
                status=HealthStatus.INITIALIZING,
                pool_max_size=max_size,
                message="Pool not initialized",
            )

        try:
            started = time.perf_counter()
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            latency_s = time.perf_counter() - started
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.warning("Health check failed", error=str(e))
            return HealthCheckResult(status=HealthStatus.UNHEALTHY, pool_max_size=max_size, message=str(e))

        return HealthCheckResult(
            status=HealthStatus.HEALTHY,
            pool_size=self._pool.get_size(),
            pool_max_size=self._pool.get_max_size(),
            latency_s=latency_s,
        )

    @asynccontextmanager
    async def aacquire(self) -> AsyncIterator[PoolConnectionProxy[Record]]:
        """Acquire a connection from the pool; it is released on exit."""
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def atransaction(
        self,
        isolation: IsolationLevel = "read_committed",
        *,
        readonly: bool = False,
        deferrable: bool = False,
        propagation: Propagation = "required",
    ) -> AsyncIterator[PoolConnectionProxy[Record]]:
        """Open a transaction scope.

        The transaction commits when the block exits normally and rolls back
        when it raises; the exception always propagates. The connection goes
        back to the pool on every exit path.

        Parameters
        ----------
        isolation
            Isolation level of a newly started transaction. Ignored when the
            scope joins or nests in an active transaction.
        readonly
            Start the transaction READ ONLY. A read-only ``required`` scope
            that joins a read-write transaction shares it, so its access mode
            is not enforced by the server.
        deferrable
            With ``readonly=True`` and ``serializable``, start DEFERRABLE.
        propagation
            What to do when a scope of this pool is already active in this task:

            ``required``
                join it (same connection, same transaction); start a new one
                when nothing is active.
            ``requires_new``
                suspend it and run an independent transaction on another
                connection.
            ``nested``
                open a savepoint on the active connection, so a failure rolls
                back only to the savepoint.

        Raises
        ------
        TransactionPropagationError
            If a read-write scope tries to join or nest in a read-only one, or
            a read-only scope tries to nest in a read-write one. A savepoint
            cannot change the access mode of its transaction.
        """
        active = self._current_scope()

        if active is not None and propagation != "requires_new":
            if active.readonly and not readonly:
                msg = f"Cannot open a read-write scope ({propagation}) inside a read-only transaction"
                raise TransactionPropagationError(msg)

            if propagation == "required":
                logger.debug("Joining active transaction", readonly=readonly)
                yield active.conn
                return

            if readonly and not active.readonly:
                msg = "Cannot nest a read-only scope inside a read-write transaction"
                raise TransactionPropagationError(msg)

            async with active.conn.transaction():
                token = self._enter_scope(active.conn, readonly=active.readonly)
                logger.debug("Savepoint created")
                try:
                    yield active.conn
                except BaseException as e:
                    logger.debug("Rolling back to savepoint", error_type=type(e).__name__)
                    raise
                finally:
                    _active_scope.reset(token)
            return

        async with self.aacquire() as conn:
            async with conn.transaction(isolation=isolation, readonly=readonly, deferrable=deferrable):
                token = self._enter_scope(conn, readonly=readonly)
                logger.debug("Transaction started", isolation=isolation, readonly=readonly, propagation=propagation)
                try:
                    yield conn
                except BaseException as e:
                    logger.debug("Rolling back transaction", error_type=type(e).__name__)
                    raise
                finally:
                    _active_scope.reset(token)
            logger.debug("Transaction committed", readonly=readonly)

    def areadonly(
        self,
        isolation: IsolationLevel = "read_committed",
        *,
        deferrable: bool = False,
        propagation: Propagation = "required",
    ) -> AbstractAsyncContextManager[PoolConnectionProxy[Record]]:
        """Open a read-only transaction scope; see `atransaction`."""
        return self.atransaction(isolation, readonly=True, deferrable=deferrable, propagation=propagation)

    async def aexecute(self, query: str, *args: object, timeout: float | None = None) -> str:
        """Execute a query on a fresh connection and return its status (e.g. ``"INSERT 0 1"``)."""
        async with self.aacquire() as conn:
            return await conn.execute(query, *args, timeout=timeout)

    async def afetch(self, query: str, *args: object, timeout: float | None = None) -> list[Record]:
        async with self.aacquire() as conn:
            return await conn.fetch(query, *args, timeout=timeout)

    async def afetchval(self, query: str, *args: object, timeout: float | None = None) -> Any:
        """Return the first column of the first row, or None when there are no rows."""
        async with self.aacquire() as conn:
            return await conn.fetchval(query, *args, timeout=timeout)
