"""PostgreSQL infrastructure with asyncpg.

Usage
-----
::

    async with AsyncConnectionPool(AsyncpgConfig.from_env()) as pool:
        async with pool.atransaction() as conn:
            await conn.execute("INSERT INTO foo(id) VALUES ($1)", 1)

        async with pool.areadonly() as conn:
            total = await conn.fetchval("SELECT count(*) FROM foo")
"""

from .config import (
    AsyncpgConfig,
    AsyncpgConnectionSettings,
    AsyncpgPoolSettings,
    AsyncpgServerSettings,
    AsyncpgStatementCacheSettings,
    PostgresEnvSettings,
)
from .exceptions import AsyncpgWrapperError, PoolNotInitializedError, TransactionPropagationError
from .health import HealthCheckResult
from .pool import AsyncConnectionPool, IsolationLevel, Propagation

__all__ = [
    "AsyncConnectionPool",
    "AsyncpgConfig",
    "AsyncpgConnectionSettings",
    "AsyncpgPoolSettings",
    "AsyncpgServerSettings",
    "AsyncpgStatementCacheSettings",
    "AsyncpgWrapperError",
    "HealthCheckResult",
    "IsolationLevel",
    "PoolNotInitializedError",
    "PostgresEnvSettings",
    "Propagation",
    "TransactionPropagationError",
]
