"""
Sink contract and the shared batched SQL writer.

Provides:
- RecordSink, RawDataSink and SinkControl capability sets
- BaseSink, the lifecycle every sink shares (idempotent stop, reconnect)
- StructuredSinkMixin, rejecting raw writes for record-only sinks
- BatchedSqlSink, schema-aware multi-row INSERT writing
"""

from abc import ABC, abstractmethod
from typing import Any, Protocol, Sequence, runtime_checkable

import structlog

from ferry.core.base import AbstractConnector, ConnectorState
from ferry.core.exceptions import (
    ConnectorConnectionError,
    ConnectorError,
    UnsupportedOperationError,
)
from ferry.core.metrics import MetricsSink
from ferry.core.record import DataRecord
from ferry.core.schema import SqlExecutor, TableSchema

logger = structlog.get_logger()


class RecordSink(ABC):
    """Capability: accepts structured records."""

    @abstractmethod
    async def sink_record(self, record: DataRecord) -> None:
        ...

    @abstractmethod
    async def sink_records(self, batch: Sequence[DataRecord]) -> None:
        ...


class RawDataSink(ABC):
    """Capability: accepts raw text or bytes payloads."""

    @abstractmethod
    async def sink_str(self, data: str) -> None:
        ...

    @abstractmethod
    async def sink_bytes(self, data: bytes) -> None:
        ...

    @abstractmethod
    async def sink_str_batch(self, data: Sequence[str]) -> None:
        ...

    @abstractmethod
    async def sink_bytes_batch(self, data: Sequence[bytes]) -> None:
        ...


class SinkControl(ABC):
    """Capability: lifecycle control."""

    @abstractmethod
    async def stop(self) -> None:
        ...

    @abstractmethod
    async def reconnect(self) -> None:
        ...


class BaseSink(AbstractConnector, SinkControl):
    """
    Lifecycle shared by every sink.

    ``stop`` flushes whatever is buffered, releases the connection and is a
    no-op on the second call. A sink left in ERROR by a failed reconnect is
    still flushed. Subclasses override ``flush`` when they buffer.
    """

    async def flush(self) -> None:
        """Write out anything buffered. Default: nothing is buffered."""

    @property
    def is_stopped(self) -> bool:
        return self._state == ConnectorState.STOPPED

    async def stop(self) -> None:
        if self.is_stopped:
            return

        try:
            if self._state in (ConnectorState.CONNECTED, ConnectorState.ERROR):
                await self.flush()
        finally:
            await self.disconnect()
            self._state = ConnectorState.STOPPED

        logger.info(
            "sink_stopped",
            connector_type=self.connector_type,
            name=self.name,
        )


class StructuredSinkMixin(RawDataSink):
    """Raw writes for sinks that only understand records."""

    connector_type: str

    def _reject_raw(self, operation: str) -> UnsupportedOperationError:
        return UnsupportedOperationError(
            f"{self.connector_type} sink does not accept raw input",
            connector_type=self.connector_type,
            operation=operation,
        )

    async def sink_str(self, data: str) -> None:
        raise self._reject_raw("sink_str")

    async def sink_bytes(self, data: bytes) -> None:
        raise self._reject_raw("sink_bytes")

    async def sink_str_batch(self, data: Sequence[str]) -> None:
        raise self._reject_raw("sink_str_batch")

    async def sink_bytes_batch(self, data: Sequence[bytes]) -> None:
        raise self._reject_raw("sink_bytes_batch")


@runtime_checkable
class ManagedSqlExecutor(SqlExecutor, Protocol):
    """SqlExecutor that also owns its connection pool."""

    async def open(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def ping(self) -> None:
        """Run ``SELECT 1``; raise ConnectorError on failure."""
        ...


class BatchedSqlSink(StructuredSinkMixin, RecordSink, BaseSink):
    """
    Record sink writing multi-row INSERT statements.

    The column order is loaded once on connect by ``_load_schema``. Each
    ``sink_records`` call emits exactly one INSERT holding any tuples buffered
    by earlier ``sink_record`` calls followed by the batch's tuples.
    ``sink_record`` buffers and flushes once ``batch_size`` tuples are waiting.
    Buffered tuples are dropped only after the INSERT succeeded, so a failed
    flush can be retried after ``reconnect``.

    Subclasses implement ``_load_schema``.
    """

    def __init__(
        self,
        connector_type: str,
        name: str,
        executor: ManagedSqlExecutor,
        batch_size: int,
        metrics: MetricsSink | None = None,
        tags: dict[str, str] | None = None,
    ) -> None:
        super().__init__(connector_type, name, metrics=metrics, tags=tags)
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self._executor = executor
        self._batch_size = batch_size
        self._schema: TableSchema | None = None
        self._pending: list[str] = []

    @property
    def executor(self) -> ManagedSqlExecutor:
        return self._executor

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def pending(self) -> int:
        """Number of buffered value tuples."""
        return len(self._pending)

    @property
    def schema(self) -> TableSchema:
        if self._schema is None:
            raise ConnectorError(
                f"{self.connector_type} sink {self.name} is not connected",
                connector_type=self.connector_type,
                operation="schema",
            )
        return self._schema

    @abstractmethod
    async def _load_schema(self) -> TableSchema:
        """
        Prepare the target and return its cached column order.

        Raises:
            SchemaError: If the target yields no usable columns.
        """
        ...

    async def _do_connect(self) -> None:
        await self._executor.open()
        self._schema = await self._load_schema()
        logger.info(
            "sql_sink_connected",
            connector_type=self.connector_type,
            name=self.name,
            table=self._schema.quoted_table,
            columns=list(self._schema.column_order),
        )

    async def _do_disconnect(self) -> None:
        await self._executor.close()

    async def _do_health_check(self) -> bool:
        await self._executor.ping()
        return True

    async def sink_record(self, record: DataRecord) -> None:
        values = self.schema.format_values_tuple(record)
        if values is None:
            return
        self._pending.append(values)
        if len(self._pending) >= self._batch_size:
            await self.flush()

    async def sink_records(self, batch: Sequence[DataRecord]) -> None:
        schema = self.schema
        tuples = list(self._pending)
        for record in batch:
            values = schema.format_values_tuple(record)
            if values is not None:
                tuples.append(values)

        if not tuples:
            return
        await self._write(tuples)
        self._pending.clear()

    async def flush(self) -> None:
        if not self._pending:
            return
        await self._write(self._pending)
        self._pending.clear()

    async def stop(self) -> None:
        """
        Flush buffered tuples and release the pool.

        Raises:
            ConnectorError: If buffered tuples could not be written; they are
                dropped and counted in a ``sql_sink_pending_dropped`` warning.
        """
        if self.is_stopped:
            return

        try:
            await super().stop()
        except Exception:
            self._drop_pending()
            raise

        dropped = self._drop_pending()
        if dropped:
            raise ConnectorError(
                f"{self.connector_type} sink {self.name} stopped with {dropped} unwritten rows",
                connector_type=self.connector_type,
                operation="stop",
                details={"rows": dropped},
            )

    def _drop_pending(self) -> int:
        dropped = len(self._pending)
        if dropped:
            logger.warning(
                "sql_sink_pending_dropped",
                connector_type=self.connector_type,
                name=self.name,
                rows=dropped,
            )
            self._pending.clear()
        return dropped

    async def reconnect(self) -> None:
        """Ping the server; rebuild the pool if the ping fails."""
        try:
            await self._executor.ping()
            return
        except ConnectorError as e:
            logger.warning(
                "sql_sink_ping_failed",
                connector_type=self.connector_type,
                name=self.name,
                error=str(e),
            )

        try:
            await self._executor.close()
            await self._executor.open()
            await self._executor.ping()
        except ConnectorError as e:
            self._state = ConnectorState.ERROR
            self._error = e
            raise ConnectorConnectionError(
                f"{self.connector_type} reconnect failed: {e.message}",
                connector_type=self.connector_type,
                operation="reconnect",
            ) from e
        self._state = ConnectorState.CONNECTED

    async def _write(self, tuples: Sequence[str]) -> Any:
        sql = self.schema.build_insert(tuples)
        if sql is None:
            return 0

        async with self.metrics.track_write(self.connector_type, self.name):
            affected = await self._executor.execute(sql)

        self._touch()
        self.metrics.records_written(self.connector_type, self.name, len(tuples))
        logger.debug(
            "sql_sink_flushed",
            connector_type=self.connector_type,
            name=self.name,
            rows=len(tuples),
            affected=affected,
        )
        return affected
