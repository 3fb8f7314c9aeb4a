from __future__ import annotations


class AsyncpgWrapperError(Exception):
    """Base error for the asyncpg pool wrapper."""


class PoolNotInitializedError(AsyncpgWrapperError):
    """Raised when the pool is used before `ainitialize()`."""


class TransactionPropagationError(AsyncpgWrapperError):
    """Raised when a transaction scope cannot join the scope already active in the task."""
