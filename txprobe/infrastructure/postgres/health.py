from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from ...core.enums import HealthStatus


class HealthCheckResult(BaseModel):
    """Outcome of `AsyncConnectionPool.ahealth_check`.

    ``latency_s`` is the round trip of ``SELECT 1`` and is only set when the
    check succeeded; ``message`` carries the driver error otherwise.
    """

    model_config = ConfigDict(frozen=True)

    status: HealthStatus
    pool_size: int = 0
    pool_max_size: int
    latency_s: float | None = None
    message: str | None = None
    checked_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY
