"""Shared fixtures for integration tests against a PostgreSQL container.

Provides:
- postgres_container: session-scoped PostgreSQL container
- asyncpg_pool: function-scoped, initialized `AsyncConnectionPool`
- counter_table: a fresh table name per test (dropped afterwards)
"""

from __future__ import annotations

import os
import sys
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
import pytest_asyncio
from pydantic import SecretStr

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from testcontainers.postgres import PostgresContainer  # type: ignore[import-untyped]

    from txprobe.infrastructure.postgres import AsyncConnectionPool


def pytest_configure(config: pytest.Config) -> None:  # noqa: ARG001
    """Point testcontainers at the local Docker socket before any fixture runs."""
    if not os.environ.get("DOCKER_HOST"):
        possible_sockets = [
            Path("/var/run/docker.sock"),
            Path.home() / ".docker" / "run" / "docker.sock",
        ]
        for socket_path in possible_sockets:
            if socket_path.exists():
                os.environ["DOCKER_HOST"] = f"unix://{socket_path}"
                os.environ["TESTCONTAINERS_DOCKER_SOCKET_OVERRIDE"] = str(socket_path)
                break

    # Ryuk (testcontainers cleanup daemon) has known issues on macOS/Docker Desktop
    if sys.platform == "darwin" and not os.environ.get("TESTCONTAINERS_RYUK_DISABLED"):
        os.environ["TESTCONTAINERS_RYUK_DISABLED"] = "true"


def _is_docker_available() -> bool:
    """Check that the Docker daemon answers a ping, not just that a socket exists."""
    try:
        from docker import from_env  # type: ignore[import-untyped]
        from docker.errors import DockerException  # type: ignore[import-untyped]
    except ImportError:
        return False

    try:
        client = from_env()
        client.ping()
    except DockerException:
        return False
    else:
        return True


@pytest.fixture(scope="session")
def postgres_container() -> Iterator[PostgresContainer]:
    """Provide session-scoped PostgreSQL container.

    Skips
    -----
    If Docker is not reachable or testcontainers is not installed.
    """
    if not _is_docker_available():
        pytest.skip("Docker daemon not accessible")

    try:
        from testcontainers.postgres import PostgresContainer
    except ImportError as e:
        pytest.skip(f"testcontainers not installed: {e}")

    with PostgresContainer("postgres:17-alpine", driver="asyncpg") as container:
        yield container


@pytest_asyncio.fixture
async def asyncpg_pool(postgres_container: PostgresContainer) -> AsyncIterator[AsyncConnectionPool]:
    """Provide an initialized pool using the container's credentials."""
    from txprobe.infrastructure.postgres import (
        AsyncConnectionPool,
        AsyncpgConfig,
        AsyncpgConnectionSettings,
        AsyncpgPoolSettings,
        AsyncpgServerSettings,
    )

    config = AsyncpgConfig(
        connection=AsyncpgConnectionSettings(
            host=postgres_container.get_container_host_ip(),
            port=int(postgres_container.get_exposed_port(5432)),
            database=postgres_container.dbname,
            user=postgres_container.username,
            password=SecretStr(postgres_container.password),
        ),
        pool=AsyncpgPoolSettings(min_size=2, max_size=5, command_timeout=30.0),
        server_settings=AsyncpgServerSettings(application_name="txprobe_test"),
    )

    async with AsyncConnectionPool(config) as pool:
        yield pool


@pytest_asyncio.fixture
async def counter_table(asyncpg_pool: AsyncConnectionPool) -> AsyncIterator[str]:
    """A table name no other test uses; the table is dropped after the test."""
    table = f"foo_{uuid.uuid4().hex[:12]}"
    try:
        yield table
    finally:
        await asyncpg_pool.aexecute(f"DROP TABLE IF EXISTS {table}")
