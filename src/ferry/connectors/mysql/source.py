"""
MySQL table source.

Pages through a table with ``LIMIT <batch> OFFSET <checkpoint>``, rendering
each row to a JSON object string on the server side.
"""

import structlog

from ferry.connectors.mysql.config import KIND, MysqlSourceConfig
from ferry.connectors.mysql.executor import MysqlExecutor
from ferry.core.checkpoint import CheckpointStore
from ferry.core.exceptions import ConnectorError, SchemaError, SupplierError
from ferry.core.metrics import MetricsSink
from ferry.core.source import CheckpointedSource, Payload
from ferry.core.sql import escape_sql_string, quote_identifier

logger = structlog.get_logger()

BINARY_TYPES = frozenset({"binary", "varbinary", "blob", "mediumblob", "longblob"})

_COLUMNS_SQL = (
    "SELECT COLUMN_NAME, DATA_TYPE FROM INFORMATION_SCHEMA.COLUMNS "
    "WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s "
    "ORDER BY ORDINAL_POSITION"
)


def build_select_statement(table: str, columns: list[tuple[str, str]], batch: int) -> str:
    """
    Build the paging query for ``table``.

    Each row comes back as one utf8mb4 JSON string; binary columns are
    base64-encoded so the JSON stays valid. The offset is left as a ``%s``
    placeholder.
    """
    parts = []
    for name, data_type in columns:
        key = f"'{escape_sql_string(name)}'"
        column = quote_identifier(name)
        if data_type.lower() in BINARY_TYPES:
            parts.append(f"{key}, TO_BASE64({column})")
        else:
            parts.append(f"{key}, {column}")
    return (
        f"SELECT CAST(JSON_OBJECT({', '.join(parts)}) AS CHAR CHARACTER SET utf8mb4) "
        f"FROM {quote_identifier(table)} LIMIT {batch} OFFSET %s"
    )


class MysqlSource(CheckpointedSource):
    """
    Checkpointed MySQL table source.

    The checkpoint is the number of rows already delivered, so it doubles as
    the OFFSET of the next page. Rows must not be deleted or reordered while
    a source is paging through them.
    """

    def __init__(
        self,
        config: MysqlSourceConfig,
        name: str,
        checkpoints: CheckpointStore,
        metrics: MetricsSink | None = None,
        tags: dict[str, str] | None = None,
        executor: MysqlExecutor | None = None,
    ) -> None:
        super().__init__(
            KIND,
            name,
            checkpoints=checkpoints,
            batch_size=config.batch,
            metrics=metrics,
            tags=tags,
        )
        self._config = config
        self._executor = executor or MysqlExecutor(config.connection, connector_type=KIND)
        self._statement: str | None = None

    @property
    def statement(self) -> str | None:
        return self._statement

    async def _do_connect(self) -> None:
        database = self._config.connection.database
        logger.info(
            "mysql_source_connecting",
            name=self.name,
            database=database,
            table=self._config.table,
        )

        await self._executor.open()
        rows = await self._executor.fetch_all(_COLUMNS_SQL, (database, self._config.table))
        columns = [(str(row[0]), str(row[1])) for row in rows]
        if not columns:
            raise SchemaError(
                f"{KIND}.table `{self._config.table}` has no columns",
                connector_type=KIND,
                table=self._config.table,
                details={"database": database},
            )

        self._statement = build_select_statement(self._config.table, columns, self._config.batch)
        checkpoint = await self.load_checkpoint()
        logger.info("mysql_source_connected", name=self.name, checkpoint=checkpoint)

    async def _do_disconnect(self) -> None:
        await self._executor.close()

    async def _do_health_check(self) -> bool:
        await self._executor.ping()
        return True

    async def _fetch(self, offset: int, limit: int) -> list[Payload]:
        if self._statement is None:
            raise SupplierError(
                "mysql source is not connected",
                connector_type=KIND,
                operation="receive",
            )
        try:
            rows = await self._executor.fetch_all(self._statement, (offset,))
        except ConnectorError as e:
            raise SupplierError(
                f"mysql fetch at offset {offset} failed: {e.message}",
                connector_type=KIND,
                operation="receive",
            ) from e
        return [row[0] for row in rows]
