"""txprobe: explicit PostgreSQL transaction scopes and a counter that exercises them."""

from __future__ import annotations

from .counter import CounterConfig, CounterError, InsertAbortedError, TransactionalCounter
from .infrastructure.postgres import AsyncConnectionPool, AsyncpgConfig

__all__ = [
    "AsyncConnectionPool",
    "AsyncpgConfig",
    "CounterConfig",
    "CounterError",
    "InsertAbortedError",
    "TransactionalCounter",
]

__version__ = "0.1.0"
