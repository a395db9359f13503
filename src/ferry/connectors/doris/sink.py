"""
Doris table sink.

Doris does not fully support server-side prepared statements, so every
statement is sent as text built from escaped literals and quoted
identifiers.
"""

import structlog

from ferry.connectors.doris.config import KIND, DorisSinkConfig
from ferry.connectors.mysql.executor import MysqlExecutor
from ferry.core.metrics import MetricsSink
from ferry.core.schema import (
    TableSchema,
    create_database_if_missing,
    ensure_table_exists,
    load_columns,
)
from ferry.core.sink import BatchedSqlSink

logger = structlog.get_logger()


class DorisSink(BatchedSqlSink):
    """
    Batched INSERT writer for one Doris table.

    Connecting runs three preparation steps before the first write:
    create the database if it is missing, create the table from the
    ``create_table`` template if it is missing, then cache the column order.

    Usage:
        sink = DorisSink(config, name="events_doris")
        await sink.connect()
        await sink.sink_records(batch)
        await sink.stop()
    """

    def __init__(
        self,
        config: DorisSinkConfig,
        name: str,
        metrics: MetricsSink | None = None,
        tags: dict[str, str] | None = None,
        executor: MysqlExecutor | None = None,
        admin_executor: MysqlExecutor | None = None,
    ) -> None:
        super().__init__(
            KIND,
            name,
            executor=executor or MysqlExecutor(config.connection, connector_type=KIND),
            batch_size=config.batch,
            metrics=metrics,
            tags=tags,
        )
        self._config = config
        self._admin_executor = admin_executor or MysqlExecutor(
            config.connection.without_database(),
            connector_type=KIND,
        )

    async def _do_connect(self) -> None:
        await self._create_database()
        await super()._do_connect()

    async def _create_database(self) -> None:
        await self._admin_executor.open()
        try:
            await create_database_if_missing(self._admin_executor, self._config.database)
        finally:
            await self._admin_executor.close()

        logger.debug("doris_database_ready", name=self.name, database=self._config.database)

    async def _load_schema(self) -> TableSchema:
        database = self._config.database
        table = self._config.table
        await ensure_table_exists(
            self.executor,
            database,
            table,
            create_template=self._config.create_table,
            connector_type=KIND,
        )
        columns = await load_columns(self.executor, database, table, connector_type=KIND)
        return TableSchema.from_columns(f"{database}.{table}", columns)
