"""
Kafka sink.

Provides:
- KafkaSink, accepting records (rendered with the configured format) and
  raw text or bytes
- Topic creation on connect, flush on stop, producer rebuild on reconnect
"""

import asyncio
from typing import Sequence

import structlog
from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError as AIOKafkaError

from ferry.connectors.kafka.admin import ensure_topics
from ferry.connectors.kafka.config import KIND, KafkaSinkConfig
from ferry.core.exceptions import KafkaError
from ferry.core.formats import format_record
from ferry.core.metrics import MetricsSink
from ferry.core.record import DataRecord
from ferry.core.sink import BaseSink, RawDataSink, RecordSink

logger = structlog.get_logger()


class KafkaSink(RecordSink, RawDataSink, BaseSink):
    """
    Kafka producer sink.

    Records are rendered with ``fmt`` and published as one line each
    (trailing newline included). Raw payloads are published unchanged.

    Usage:
        config = KafkaSinkConfig.from_params({"brokers": "localhost:9092", "topic": "out"})
        sink = KafkaSink(config, "out_sink")
        await sink.connect()
        await sink.sink_records(batch)
        await sink.stop()
    """

    def __init__(
        self,
        config: KafkaSinkConfig,
        name: str,
        metrics: MetricsSink | None = None,
    ) -> None:
        super().__init__(KIND, name, metrics=metrics)
        self._config = config
        self._producer: AIOKafkaProducer | None = None

    @property
    def config(self) -> KafkaSinkConfig:
        return self._config

    async def _do_connect(self) -> None:
        await ensure_topics(
            self._config.client,
            [self._config.topic],
            num_partitions=self._config.num_partitions,
            replication=self._config.replication,
        )
        self._producer = await self._start_producer()
        logger.info("kafka_sink_connected", name=self.name, topic=self._config.topic)

    async def _start_producer(self) -> AIOKafkaProducer:
        producer = AIOKafkaProducer(**self._config.producer_config())
        try:
            await producer.start()
        except AIOKafkaError as e:
            raise KafkaError(
                f"Failed to connect to Kafka: {e}",
                topic=self._config.topic,
                operation="connect",
                details={"brokers": self._config.client.brokers},
            ) from e
        return producer

    async def _do_disconnect(self) -> None:
        if self._producer is None:
            return
        try:
            await self._producer.stop()
        except AIOKafkaError as e:
            logger.warning("kafka_sink_disconnect_error", name=self.name, error=str(e))
        finally:
            self._producer = None

    async def _do_health_check(self) -> bool:
        if self._producer is None:
            return False
        await asyncio.wait_for(self._producer.client.fetch_all_metadata(), timeout=5.0)
        return True

    async def flush(self) -> None:
        """Wait for in-flight messages, bounded by ``flush_timeout_secs``."""
        if self._producer is None:
            return
        try:
            await asyncio.wait_for(self._producer.flush(), timeout=self._config.flush_timeout_secs)
        except (AIOKafkaError, asyncio.TimeoutError) as e:
            raise KafkaError(
                f"kafka stop fail: {e}",
                topic=self._config.topic,
                operation="flush",
            ) from e

    async def reconnect(self) -> None:
        """Replace the producer with a fresh one built from the same config."""
        old = self._producer
        self._producer = await self._start_producer()
        if old is not None:
            try:
                await old.stop()
            except AIOKafkaError as e:
                logger.warning("kafka_sink_old_producer_stop_failed", name=self.name, error=str(e))
        logger.info("kafka_sink_reconnected", name=self.name, topic=self._config.topic)

    async def _publish(self, payloads: Sequence[bytes]) -> None:
        if self._producer is None:
            raise KafkaError(
                "kafka sink is not connected",
                topic=self._config.topic,
                operation="send",
            )
        if not payloads:
            return

        async with self.metrics.track_write(KIND, self.name):
            try:
                futures = [await self._producer.send(self._config.topic, value) for value in payloads]
                await asyncio.gather(*futures)
            except AIOKafkaError as e:
                raise KafkaError(
                    f"kafka send fail: {e}",
                    topic=self._config.topic,
                    operation="send",
                ) from e

        self._touch()
        self.metrics.records_written(KIND, self.name, len(payloads))

    def _line(self, record: DataRecord) -> bytes:
        return (format_record(record, self._config.fmt) + "\n").encode("utf-8")

    async def sink_record(self, record: DataRecord) -> None:
        await self._publish([self._line(record)])

    async def sink_records(self, batch: Sequence[DataRecord]) -> None:
        await self._publish([self._line(record) for record in batch])

    async def sink_str(self, data: str) -> None:
        await self._publish([data.encode("utf-8")])

    async def sink_bytes(self, data: bytes) -> None:
        await self._publish([data])

    async def sink_str_batch(self, data: Sequence[str]) -> None:
        await self._publish([item.encode("utf-8") for item in data])

    async def sink_bytes_batch(self, data: Sequence[bytes]) -> None:
        await self._publish(list(data))
