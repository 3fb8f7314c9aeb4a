from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ..infrastructure.postgres.pool import IsolationLevel


class CounterConfig(BaseModel):
    """Settings for `TransactionalCounter`.

    ``table_name`` is interpolated into SQL, so it is restricted to a plain
    lower-case identifier.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    table_name: str = Field(
        default="foo",
        pattern=r"^[a-z_][a-z0-9_]{0,62}$",
        description="Table holding the counted rows",
    )
    seed_value: int = Field(default=0, description="Value of the seed row written by ainitialize()")
    insert_value: int = Field(default=1, description="Value of rows appended by commit and abort inserts")
    isolation: IsolationLevel = Field(default="read_committed", description="Isolation level of write scopes")
