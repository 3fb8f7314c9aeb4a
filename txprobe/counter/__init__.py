"""Transactional counter: commit and rollback checks over a table of integer rows."""

from __future__ import annotations

from .config import CounterConfig
from .exceptions import CounterError, InsertAbortedError
from .service import TransactionalCounter

__all__ = [
    "CounterConfig",
    "CounterError",
    "InsertAbortedError",
    "TransactionalCounter",
]
