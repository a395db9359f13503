"""
aiomysql pool wrapper implementing the SqlExecutor protocol.

Statements are sent as plain text: values are escaped by the caller, which
keeps the same code path working against servers that reject prepared
statements (Doris).
"""

from typing import Any

import aiomysql
import structlog

from ferry.connectors.mysql.config import MysqlConnectionSettings
from ferry.core.exceptions import ConnectorConnectionError, TerminalIOError, TransientIOError

logger = structlog.get_logger()


class MysqlExecutor:
    """
    Owns one aiomysql connection pool.

    Driver errors are mapped onto the connector taxonomy: operational errors
    (lost connection, server gone away) are transient, everything else is
    terminal.

    Usage:
        executor = MysqlExecutor(settings, connector_type="mysql")
        await executor.open()
        rows = await executor.fetch_all("SELECT 1")
        await executor.close()
    """

    def __init__(self, settings: MysqlConnectionSettings, connector_type: str = "mysql") -> None:
        self._settings = settings
        self._connector_type = connector_type
        self._pool: aiomysql.Pool | None = None

    @property
    def settings(self) -> MysqlConnectionSettings:
        return self._settings

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    async def open(self) -> None:
        """
        Create the pool if it does not exist yet.

        Raises:
            ConnectorConnectionError: If the server cannot be reached.
        """
        if self._pool is not None:
            return

        logger.info(
            "mysql_pool_opening",
            connector_type=self._connector_type,
            host=self._settings.host,
            port=self._settings.port,
            database=self._settings.database,
        )
        try:
            self._pool = await aiomysql.create_pool(**self._settings.to_aiomysql_config())
        except (aiomysql.Error, OSError) as e:
            raise ConnectorConnectionError(
                f"connect {self._connector_type} fail: {e}",
                connector_type=self._connector_type,
                operation="connect",
                details={"endpoint": self._settings.endpoint},
            ) from e

    async def close(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        pool.close()
        await pool.wait_closed()

    async def fetch_all(self, sql: str, args: Any = None) -> list[tuple[Any, ...]]:
        pool = self._require_pool("query")
        try:
            async with pool.acquire() as conn:
                async with conn.cursor() as cursor:
                    await cursor.execute(sql, args)
                    return list(await cursor.fetchall())
        except aiomysql.Error as e:
            raise self._map_error(e, "query") from e

    async def execute(self, sql: str, args: Any = None) -> int:
        pool = self._require_pool("execute")
        try:
            async with pool.acquire() as conn:
                async with conn.cursor() as cursor:
                    return await cursor.execute(sql, args)
        except aiomysql.Error as e:
            raise self._map_error(e, "execute") from e

    async def ping(self) -> None:
        await self.fetch_all("SELECT 1")

    def _require_pool(self, operation: str) -> aiomysql.Pool:
        if self._pool is None:
            raise ConnectorConnectionError(
                f"{self._connector_type} pool is not open",
                connector_type=self._connector_type,
                operation=operation,
            )
        return self._pool

    def _map_error(self, error: Exception, operation: str) -> TransientIOError | TerminalIOError:
        message = f"{self._connector_type} {operation} fail: {error}"
        if isinstance(error, aiomysql.OperationalError):
            return TransientIOError(message, self._connector_type, operation)
        return TerminalIOError(message, self._connector_type, operation)
