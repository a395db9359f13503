"""
VictoriaMetrics exporter sink.

Provides:
- VictoriaMetricsExporter, a record sink that folds stat records into
  StageMetrics and pushes the Prometheus text exposition periodically
"""

import asyncio
import contextlib
from typing import Sequence

import httpx
import structlog
from prometheus_client import generate_latest

from ferry.connectors.victoriametrics.config import KIND, VictoriaMetricsConfig
from ferry.connectors.victoriametrics.metrics import StageMetrics
from ferry.core.exceptions import ConnectorError
from ferry.core.metrics import MetricsSink
from ferry.core.record import DataRecord
from ferry.core.retry import RetryPolicy, classify_exception, classify_response
from ferry.core.sink import BaseSink, RecordSink, StructuredSinkMixin

logger = structlog.get_logger()


class VictoriaMetricsExporter(StructuredSinkMixin, RecordSink, BaseSink):
    """
    Periodic Prometheus push exporter.

    ``sink_records`` only updates in-memory series. A background task pushes
    the whole registry every ``flush_interval_secs``; a failed periodic push
    is logged and the next tick tries again. ``stop`` pushes one final time,
    then cancels and awaits the task.

    Usage:
        exporter = VictoriaMetricsExporter(VictoriaMetricsConfig(), "vm")
        await exporter.connect()
        await exporter.sink_records(stat_records)
        await exporter.stop()
    """

    def __init__(
        self,
        config: VictoriaMetricsConfig,
        name: str,
        metrics: MetricsSink | None = None,
        tags: dict[str, str] | None = None,
        stage_metrics: StageMetrics | None = None,
        retry: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(KIND, name, metrics=metrics, tags=tags)
        self._config = config
        self._stage_metrics = stage_metrics or StageMetrics()
        self._retry = retry or RetryPolicy()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._flush_task: asyncio.Task[None] | None = None

    @property
    def stage_metrics(self) -> StageMetrics:
        return self._stage_metrics

    @property
    def is_flushing(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    async def _do_connect(self) -> None:
        self._client = httpx.AsyncClient(
            timeout=self._config.request_timeout_secs,
            transport=self._transport,
        )
        self._flush_task = asyncio.create_task(self._flush_loop(), name=f"{self.name}-flush")
        logger.info(
            "victoriametrics_exporter_started",
            name=self.name,
            url=self._config.insert_url,
            interval=self._config.flush_interval_secs,
        )

    async def _do_disconnect(self) -> None:
        task, self._flush_task = self._flush_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    async def _do_health_check(self) -> bool:
        return self.is_flushing

    async def _flush_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.flush_interval_secs)
            try:
                await self.push()
            except ConnectorError as e:
                logger.warning("victoriametrics_push_failed", name=self.name, error=str(e))

    async def sink_record(self, record: DataRecord) -> None:
        self._stage_metrics.observe(record)
        self._touch()

    async def sink_records(self, batch: Sequence[DataRecord]) -> None:
        for record in batch:
            self._stage_metrics.observe(record)
        self._touch()

    async def flush(self) -> None:
        await self.push()

    async def push(self) -> None:
        """
        Push the current exposition once.

        Raises:
            TerminalIOError: If the server rejects the payload.
            RetryExhaustedError: If every attempt failed transiently.
        """
        client = self._client
        if client is None:
            raise ConnectorError(
                f"{KIND} exporter {self.name} is not connected",
                connector_type=KIND,
                operation="push",
            )

        body = generate_latest(self._stage_metrics.registry)
        if not body:
            logger.debug("victoriametrics_nothing_to_push", name=self.name)
            return

        async def attempt() -> httpx.Response:
            try:
                response = await client.post(self._config.insert_url, content=body)
            except httpx.HTTPError as e:
                raise classify_exception(e, KIND, "push") from e
            return classify_response(response, KIND, "push")

        async with self.metrics.track_write(KIND, self.name):
            await self._retry.run(attempt, connector_type=KIND, operation="push", metrics=self.metrics)
        logger.debug("victoriametrics_pushed", name=self.name, bytes=len(body))
