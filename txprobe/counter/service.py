from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

from ..logger import get_logger
from .config import CounterConfig
from .exceptions import InsertAbortedError

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

    from ..infrastructure.postgres.pool import AsyncConnectionPool

logger: BoundLogger = get_logger(__name__)


class TransactionalCounter:
    """A table of integer rows used to check commit and rollback behavior.

    Every operation opens its own transaction scope on the pool it was
    constructed with. ``acount`` opens a read-only scope; called from inside
    another operation's transaction it joins that transaction and sees its
    uncommitted rows.

    Usage Pattern
    -------------
    ```python
    async with AsyncConnectionPool(config) as pool:
        counter = TransactionalCounter(pool)
        await counter.ainitialize()        # table + seed row, count == 1
        await counter.acommit_insert()     # count == 2
        try:
            await counter.aabort_insert()  # raises InsertAbortedError("count=3")
        except InsertAbortedError:
            pass
        assert await counter.acount() == 2
    ```

    Notes
    -----
    ``ainitialize`` only guards the schema (``CREATE TABLE IF NOT EXISTS``).
    Each call writes another seed row.
    """

    __slots__ = ("_config", "_count_sql", "_create_sql", "_insert_sql", "_pool")

    def __init__(self, pool: AsyncConnectionPool, config: CounterConfig | None = None) -> None:
        self._pool = pool
        self._config = config or CounterConfig()

        table = self._config.table_name
        self._create_sql = f"CREATE TABLE IF NOT EXISTS {table}(id INTEGER)"
        self._insert_sql = f"INSERT INTO {table}(id) VALUES ($1)"
        self._count_sql = f"SELECT count(*) FROM {table}"

    @property
    def table_name(self) -> str:
        return self._config.table_name

    async def ainitialize(self) -> None:
        """Create the table if needed and write the seed row, atomically."""
        async with self._pool.atransaction(self._config.isolation) as conn:
            await conn.execute(self._create_sql)
            await conn.execute(self._insert_sql, self._config.seed_value)

        logger.info("Counter table initialized", table=self.table_name, seed_value=self._config.seed_value)

    async def acount(self) -> int:
        """Return the number of rows in the table."""
        async with self._pool.areadonly() as conn:
            count = await conn.fetchval(self._count_sql)
        return int(count)

    async def acommit_insert(self) -> None:
        """Insert one row in a transaction that commits."""
        async with self._pool.atransaction(self._config.isolation) as conn:
            await conn.execute(self._insert_sql, self._config.insert_value)

        logger.debug("Insert committed", table=self.table_name)

    async def aabort_insert(self) -> NoReturn:
        """Insert one row, then fail so the transaction rolls back.

        Raises
        ------
        InsertAbortedError
            Always. Carries the count observed after the insert, inside the
            transaction that is being rolled back.
        """
        async with self._pool.atransaction(self._config.isolation) as conn:
            await conn.execute(self._insert_sql, self._config.insert_value)
            count = await self.acount()
            logger.info("Aborting insert", table=self.table_name, observed_count=count)
            raise InsertAbortedError(count)
