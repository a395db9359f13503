"""
VictoriaLogs sink.

Provides:
- build_log_entry, the JSON object stored for one record
- VictoriaLogsSink, posting JSON lines over HTTP under the retry policy
"""

import time
from datetime import date, datetime, timezone
from typing import Any, Sequence

import httpx
import orjson
import structlog

from ferry.connectors.victorialogs.config import KIND, VictoriaLogsConfig
from ferry.core.exceptions import ConnectorError
from ferry.core.formats import OutputFormat, format_record
from ferry.core.metrics import MetricsSink
from ferry.core.record import DataRecord
from ferry.core.retry import RetryPolicy, classify_exception, classify_response
from ferry.core.sink import BaseSink, RecordSink, StructuredSinkMixin

logger = structlog.get_logger()

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _to_nanos(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    delta = value - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000


def resolve_timestamp(record: DataRecord, create_time_field: str | None) -> int:
    """
    Event time in nanoseconds since the epoch.

    Uses ``create_time_field`` when it names a datetime field (naive values
    are taken as UTC); falls back to the current time otherwise.
    """
    if create_time_field:
        item = record.get(create_time_field)
        if item is not None:
            if isinstance(item.value, datetime):
                return _to_nanos(item.value)
            if isinstance(item.value, date):
                return _to_nanos(datetime(item.value.year, item.value.month, item.value.day))
    return time.time_ns()


def build_log_entry(
    record: DataRecord,
    fmt: OutputFormat,
    create_time_field: str | None = None,
) -> dict[str, Any]:
    """Every visible field as text, plus ``_msg`` and ``_time``."""
    entry: dict[str, Any] = {item.name: item.render() for item in record.visible()}
    entry["_msg"] = format_record(record, fmt)
    entry["_time"] = str(resolve_timestamp(record, create_time_field))
    return entry


class VictoriaLogsSink(StructuredSinkMixin, RecordSink, BaseSink):
    """
    Record sink for VictoriaLogs.

    Each record becomes one JSON line; a batch is posted as a single
    newline-delimited request. 5xx responses, connect errors and timeouts
    are retried by the RetryPolicy; other failures surface immediately.

    Usage:
        sink = VictoriaLogsSink(VictoriaLogsConfig(endpoint="http://vl:9428"), "logs")
        await sink.connect()
        await sink.sink_records(batch)
        await sink.stop()
    """

    def __init__(
        self,
        config: VictoriaLogsConfig,
        name: str,
        metrics: MetricsSink | None = None,
        tags: dict[str, str] | None = None,
        retry: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(KIND, name, metrics=metrics, tags=tags)
        self._config = config
        self._retry = retry or RetryPolicy()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def config(self) -> VictoriaLogsConfig:
        return self._config

    async def _do_connect(self) -> None:
        self._client = self._new_client()
        logger.info("victorialogs_sink_connected", name=self.name, url=self._config.insert_url)

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._config.request_timeout_secs,
            transport=self._transport,
        )

    async def _do_disconnect(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        await client.aclose()

    async def _do_health_check(self) -> bool:
        return self._client is not None and not self._client.is_closed

    async def sink_record(self, record: DataRecord) -> None:
        await self._post([record])

    async def sink_records(self, batch: Sequence[DataRecord]) -> None:
        if batch:
            await self._post(batch)

    def _encode(self, batch: Sequence[DataRecord]) -> bytes:
        return b"\n".join(
            orjson.dumps(build_log_entry(record, self._config.fmt, self._config.create_time_field))
            for record in batch
        )

    async def _post(self, batch: Sequence[DataRecord]) -> None:
        client = self._client
        if client is None:
            raise ConnectorError(
                f"{KIND} sink {self.name} is not connected",
                connector_type=KIND,
                operation="write",
            )
        body = self._encode(batch)

        async def attempt() -> httpx.Response:
            try:
                response = await client.post(self._config.insert_url, content=body)
            except httpx.HTTPError as e:
                raise classify_exception(e, KIND, "write") from e
            return classify_response(response, KIND, "write")

        async with self.metrics.track_write(KIND, self.name):
            await self._retry.run(attempt, connector_type=KIND, operation="write", metrics=self.metrics)

        self._touch()
        self.metrics.records_written(KIND, self.name, len(batch))
        logger.debug("victorialogs_sink_posted", name=self.name, records=len(batch))
