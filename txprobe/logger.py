"""structlog setup for txprobe.

Modules log through ``logger = get_logger(__name__)`` with key-value events.
`configure_logging` sends those events through the standard library root
logger, so asyncpg's own records end up on the same stdout stream. Until it is
called, structlog's defaults apply.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Literal, TypeAlias, cast

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from structlog.types import Processor

BoundLogger: TypeAlias = structlog.stdlib.BoundLogger
LogLevel: TypeAlias = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

_DRIVER_LOGGERS = ("asyncpg", "asyncio")


class LoggingConfig(BaseSettings):
    """Logging options, read from ``LOG_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="LOG_",
        extra="ignore",
        frozen=True,
    )

    level: LogLevel = Field(default="INFO")
    json_output: bool = Field(default=False, description="One JSON object per line instead of console output")
    service_name: str = Field(default="txprobe", description="Bound as ``service`` on every event")
    driver_level: LogLevel = Field(default="WARNING", description="Level of the asyncpg and asyncio loggers")


def build_processors(*, json_output: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=json_output),
    ]
    if json_output:
        return [*processors, structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return [*processors, structlog.dev.ConsoleRenderer()]


def configure_logging(config: LoggingConfig | None = None) -> None:
    config = config if config is not None else LoggingConfig()

    structlog.configure(
        processors=build_processors(json_output=config.json_output),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(config.level)
    for name in _DRIVER_LOGGERS:
        logging.getLogger(name).setLevel(config.driver_level)

    structlog.contextvars.bind_contextvars(service=config.service_name)


def get_logger(name: str | None = None) -> BoundLogger:
    return cast(BoundLogger, structlog.get_logger(name))
