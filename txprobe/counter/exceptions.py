from __future__ import annotations


class CounterError(RuntimeError):
    """Base error for the transactional counter."""


class InsertAbortedError(CounterError):
    """Raised by `TransactionalCounter.aabort_insert` after its insert.

    ``count`` is the row count observed inside the aborted transaction,
    including the insert that is about to be rolled back.
    """

    def __init__(self, count: int) -> None:
        super().__init__(f"count={count}")
        self.count = count
