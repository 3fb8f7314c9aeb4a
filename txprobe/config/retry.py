from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RetryConfig(BaseModel):
    """Attempts, backoff bounds and retryable error types for `txprobe.resilience.retry`.

    Each wait is drawn at random between ``wait_min`` and a cap that doubles
    per attempt, bounded by ``wait_max``.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, description="Attempts including the first call")
    wait_min: float = Field(default=1.0, ge=0, description="Lower bound of each wait, in seconds")
    wait_max: float = Field(default=30.0, ge=0, description="Upper bound of each wait, in seconds")
    retry_on_exceptions: tuple[type[BaseException], ...] | None = Field(
        default=None,
        description="Errors that are retried; None retries every Exception",
    )
    never_retry_on: tuple[type[BaseException], ...] | None = Field(
        default=None,
        description="Errors that are never retried, even when listed in retry_on_exceptions",
    )
    reraise: bool = Field(default=True, description="Raise the last error instead of tenacity.RetryError")
