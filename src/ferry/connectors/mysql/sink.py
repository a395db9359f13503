"""
MySQL table sink.
"""

import structlog

from ferry.connectors.mysql.config import KIND, MysqlSinkConfig
from ferry.connectors.mysql.executor import MysqlExecutor
from ferry.core.metrics import MetricsSink
from ferry.core.schema import TableSchema, load_columns
from ferry.core.sink import BatchedSqlSink

logger = structlog.get_logger()


class MysqlSink(BatchedSqlSink):
    """
    Batched INSERT writer for one MySQL table.

    The column order comes from the configured ``columns`` list when one is
    given, otherwise from ``INFORMATION_SCHEMA`` at connect time.

    Usage:
        sink = MysqlSink(config, name="orders_sink")
        await sink.connect()
        await sink.sink_records(batch)
        await sink.stop()
    """

    def __init__(
        self,
        config: MysqlSinkConfig,
        name: str,
        metrics: MetricsSink | None = None,
        tags: dict[str, str] | None = None,
        executor: MysqlExecutor | None = None,
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
        self._table = config.table or name

    @property
    def table(self) -> str:
        return self._table

    async def _load_schema(self) -> TableSchema:
        if self._config.columns:
            columns = list(self._config.columns)
        else:
            database = self._config.connection.database or ""
            columns = await load_columns(self.executor, database, self._table, connector_type=KIND)
        return TableSchema.from_columns(self._table, columns)
