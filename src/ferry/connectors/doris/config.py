"""
Doris sink configuration.

Doris speaks the MySQL protocol, so connection settings are shared with the
MySQL connector; only the parameter names differ (``user``, ``pool``).
"""

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from ferry.connectors.mysql.config import MysqlConnectionSettings
from ferry.core.params import optional_str, positive_int, required_str

KIND = "doris"

DEFAULT_POOL_SIZE = 8
DEFAULT_BATCH = 1000


class DorisSinkConfig(BaseModel):
    """Validated doris sink parameters."""

    model_config = ConfigDict(frozen=True)

    connection: MysqlConnectionSettings
    table: str = Field(description="Target table inside ``connection.database``")
    batch: int = Field(default=DEFAULT_BATCH, description="Buffered rows before a flush")
    create_table: str | None = Field(
        default=None,
        description="CREATE TABLE template run when the table is missing; {table} is substituted",
    )

    @property
    def database(self) -> str:
        return self.connection.database or ""

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "DorisSinkConfig":
        """
        Raises:
            ConfigurationError: If endpoint, database or table are empty, or
                pool or batch are not positive.
        """
        pool = positive_int(params, KIND, "pool") or DEFAULT_POOL_SIZE
        connection = MysqlConnectionSettings.from_params(
            params,
            kind=KIND,
            user_key="user",
            pool_size=pool,
        )
        return cls(
            connection=connection,
            table=required_str(params, KIND, "table"),
            batch=positive_int(params, KIND, "batch") or DEFAULT_BATCH,
            create_table=optional_str(params, KIND, "create_table"),
        )
