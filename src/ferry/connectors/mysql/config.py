"""
MySQL configuration models.

Also used by the Doris sink, which speaks the MySQL wire protocol.
"""

from typing import Any, Mapping
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from ferry.core.exceptions import ConfigurationError
from ferry.core.params import optional_str, positive_int, required_str, str_list

KIND = "mysql"

DEFAULT_PORT = 3306
DEFAULT_SOURCE_BATCH = 100
DEFAULT_SINK_BATCH = 100

# Built-in key column every explicit sink column list carries
EVENT_ID_COLUMN = "wp_event_id"


def parse_endpoint(endpoint: str, kind: str = KIND, default_port: int = DEFAULT_PORT) -> tuple[str, int]:
    """
    Split ``mysql://host:port`` (scheme optional) into host and port.

    Raises:
        ConfigurationError: If the host is missing or the port is invalid.
    """
    field = f"{kind}.endpoint"
    target = endpoint if "://" in endpoint else f"mysql://{endpoint}"
    try:
        parts = urlsplit(target)
        host = parts.hostname
        port = parts.port or default_port
    except ValueError as e:
        raise ConfigurationError(f"{field} is invalid: {e}", field=field) from e
    if not host:
        raise ConfigurationError(f"{field} must include a host", field=field)
    return host, port


class MysqlConnectionSettings(BaseModel):
    """Connection settings for an aiomysql pool."""

    model_config = ConfigDict(frozen=True)

    endpoint: str = Field(description="Original endpoint string")
    host: str = Field(description="Server host")
    port: int = Field(default=DEFAULT_PORT, description="Server port")
    username: str = Field(default="root", description="Login user")
    password: SecretStr = Field(default=SecretStr(""), description="Login password")
    database: str | None = Field(default=None, description="Default schema for the session")
    pool_size: int = Field(default=10, description="Maximum pooled connections")
    connect_timeout: float = Field(default=8.0, description="Connect timeout in seconds")

    @classmethod
    def from_params(
        cls,
        params: Mapping[str, Any],
        kind: str = KIND,
        user_key: str = "username",
        pool_size: int = 10,
    ) -> "MysqlConnectionSettings":
        endpoint = required_str(params, kind, "endpoint")
        host, port = parse_endpoint(endpoint, kind)
        database = required_str(params, kind, "database")
        return cls(
            endpoint=endpoint,
            host=host,
            port=port,
            username=optional_str(params, kind, user_key) or "root",
            password=SecretStr(str(params.get("password") or "")),
            database=database,
            pool_size=pool_size,
        )

    def without_database(self) -> "MysqlConnectionSettings":
        """Same server, no default schema (for ``CREATE DATABASE``)."""
        return self.model_copy(update={"database": None, "pool_size": 1})

    def to_aiomysql_config(self) -> dict[str, Any]:
        config: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "user": self.username,
            "password": self.password.get_secret_value(),
            "charset": "utf8mb4",
            "autocommit": True,
            "connect_timeout": self.connect_timeout,
            "minsize": 1,
            "maxsize": max(self.pool_size, 1),
        }
        if self.database:
            config["db"] = self.database
        return config


class MysqlSourceConfig(BaseModel):
    """Validated mysql source parameters."""

    model_config = ConfigDict(frozen=True)

    connection: MysqlConnectionSettings
    table: str = Field(description="Table paged with LIMIT/OFFSET")
    batch: int = Field(default=DEFAULT_SOURCE_BATCH, description="Rows per upstream fetch")

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "MysqlSourceConfig":
        """
        Raises:
            ConfigurationError: If endpoint, database or table are empty, or
                batch is not positive.
        """
        connection = MysqlConnectionSettings.from_params(params, pool_size=3)
        table = required_str(params, KIND, "table")
        batch = positive_int(params, KIND, "batch") or DEFAULT_SOURCE_BATCH
        return cls(connection=connection, table=table, batch=batch)


class MysqlSinkConfig(BaseModel):
    """
    Validated mysql sink parameters.

    With an explicit ``columns`` list the built-in ``wp_event_id`` column is
    appended when absent; without one (or with an empty list) the column
    order is read from the table.
    """

    model_config = ConfigDict(frozen=True)

    connection: MysqlConnectionSettings
    table: str | None = Field(default=None, description="Target table; defaults to the sink name")
    batch: int = Field(default=DEFAULT_SINK_BATCH, description="Buffered rows before a flush")
    columns: tuple[str, ...] | None = Field(default=None, description="Explicit column order")

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "MysqlSinkConfig":
        """
        Raises:
            ConfigurationError: If endpoint or database are empty, batch is not
                positive, or columns holds a non-string.
        """
        connection = MysqlConnectionSettings.from_params(params)
        batch = positive_int(params, KIND, "batch") or DEFAULT_SINK_BATCH
        columns = str_list(params, KIND, "columns")
        if columns is not None and EVENT_ID_COLUMN not in columns:
            columns.append(EVENT_ID_COLUMN)
        return cls(
            connection=connection,
            table=optional_str(params, KIND, "table"),
            batch=batch,
            columns=tuple(columns) if columns else None,
        )
