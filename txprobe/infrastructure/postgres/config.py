"""Configuration models for the asyncpg connection pool.

- `AsyncpgConfig`: complete configuration for a single connection pool
- `PostgresEnvSettings`: connection values loaded from ``TXPROBE_PG_*`` variables
"""

from __future__ import annotations

from typing import Any, Literal, Self
from urllib.parse import quote_plus

import asyncpg
from pydantic import BaseModel, ConfigDict, Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ...config.retry import RetryConfig


def _default_connect_retry() -> RetryConfig:
    return RetryConfig(
        max_attempts=5,
        wait_min=0.5,
        wait_max=10.0,
        retry_on_exceptions=(
            OSError,
            asyncpg.CannotConnectNowError,
            asyncpg.TooManyConnectionsError,
        ),
    )


class AsyncpgConnectionSettings(BaseModel):
    """Connection settings for a PostgreSQL database."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field(default="localhost")
    port: int = Field(default=5432, ge=1, le=65535)
    database: str = Field(default="txprobe")
    user: str = Field(default="postgres")
    password: SecretStr | None = Field(default=None)


class AsyncpgPoolSettings(BaseModel):
    """Connection pool settings."""

    model_config = ConfigDict(extra="forbid")

    min_size: int = Field(default=2, ge=1, le=100)
    max_size: int = Field(default=10, ge=1, le=200)
    max_inactive_connection_lifetime: float = Field(default=300.0, ge=0.0)
    command_timeout: float = Field(default=60.0, ge=1.0, le=300.0)


class AsyncpgStatementCacheSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_size: int = Field(default=256, ge=0, le=1000)
    max_lifetime: int = Field(default=300, ge=0)
    max_cacheable_statement_size: int = Field(default=15360, ge=0)


class AsyncpgServerSettings(BaseModel):
    """PostgreSQL server settings passed to every connection."""

    model_config = ConfigDict(extra="forbid")

    application_name: str = Field(default="txprobe")
    jit: Literal["on", "off"] = Field(default="off")


class AsyncpgConfig(BaseModel):
    """Complete configuration for an asyncpg connection pool.

    Examples
    --------
    >>> config = AsyncpgConfig(
    ...     connection=AsyncpgConnectionSettings(
    ...         host="localhost",
    ...         database="mydb",
    ...         user="postgres",
    ...         password=SecretStr("secret"),
    ...     ),
    ...     pool=AsyncpgPoolSettings(min_size=1, max_size=5),
    ... )
    >>> async with AsyncConnectionPool(config) as pool:
    ...     counter = TransactionalCounter(pool)
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    connection: AsyncpgConnectionSettings = Field(default_factory=AsyncpgConnectionSettings)
    pool: AsyncpgPoolSettings = Field(default_factory=AsyncpgPoolSettings)
    statement_cache: AsyncpgStatementCacheSettings = Field(default_factory=AsyncpgStatementCacheSettings)
    server_settings: AsyncpgServerSettings = Field(default_factory=AsyncpgServerSettings)
    connect_retry: RetryConfig = Field(default_factory=_default_connect_retry)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def dsn(self) -> str:
        """Build PostgreSQL DSN from connection settings."""
        password = self.connection.password.get_secret_value() if self.connection.password else ""
        escaped_user = quote_plus(self.connection.user)
        escaped_password = quote_plus(password) if password else ""
        auth = f"{escaped_user}:{escaped_password}@" if escaped_password else f"{escaped_user}@"
        return f"postgresql://{auth}{self.connection.host}:{self.connection.port}/{self.connection.database}"

    def to_pool_params(self) -> dict[str, Any]:
        """Convert config to asyncpg.create_pool() parameters.

        Returns
        -------
        dict[str, Any]
            Parameters for asyncpg.create_pool().
        """
        return {
            "dsn": self.dsn,
            **self.pool.model_dump(),
            "statement_cache_size": self.statement_cache.max_size,
            "max_cached_statement_lifetime": self.statement_cache.max_lifetime,
            "max_cacheable_statement_size": self.statement_cache.max_cacheable_statement_size,
            "server_settings": self.server_settings.model_dump(),
        }

    def to_log_params(self) -> dict[str, Any]:
        """Pool parameters safe to log (the DSN carries the password)."""
        params = self.to_pool_params()
        params.pop("dsn")
        params.pop("server_settings")
        return {
            "host": self.connection.host,
            "port": self.connection.port,
            "database": self.connection.database,
            **params,
        }

    @classmethod
    def from_env(cls, settings: PostgresEnvSettings | None = None) -> Self:
        """Build a config whose connection and pool sizes come from the environment."""
        env = settings if settings is not None else PostgresEnvSettings()
        return cls(
            connection=AsyncpgConnectionSettings(
                host=env.host,
                port=env.port,
                database=env.database,
                user=env.user,
                password=env.password,
            ),
            pool=AsyncpgPoolSettings(min_size=env.pool_min_size, max_size=env.pool_max_size),
            server_settings=AsyncpgServerSettings(application_name=env.application_name),
        )


class PostgresEnvSettings(BaseSettings):
    """Connection values read from ``TXPROBE_PG_*`` variables or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TXPROBE_PG_",
        extra="ignore",
        frozen=True,
    )

    host: str = Field(default="localhost")
    port: int = Field(default=5432, ge=1, le=65535)
    database: str = Field(default="txprobe")
    user: str = Field(default="postgres")
    password: SecretStr | None = Field(default=None)
    pool_min_size: int = Field(default=2, ge=1, le=100)
    pool_max_size: int = Field(default=10, ge=1, le=200)
    application_name: str = Field(default="txprobe")
