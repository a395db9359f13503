"""
Kafka source.

Provides:
- KafkaSource, a DataSource backed by AIOKafkaConsumer
- Topic creation before subscribing
- Per-event topic tagging and a wrapping event sequence
"""

import structlog
from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaError as AIOKafkaError
from aiokafka.structs import ConsumerRecord

from ferry.connectors.kafka.admin import ensure_topics
from ferry.connectors.kafka.config import KIND, KafkaSourceConfig
from ferry.core.exceptions import KafkaError, NotData, SupplierError
from ferry.core.metrics import MetricsSink
from ferry.core.source import SOURCE_TAG, DataSource, SourceEvent

logger = structlog.get_logger()

_SEQ_MODULUS = 1 << 64


class KafkaSource(DataSource):
    """
    Kafka consumer source.

    Offsets are committed by the consumer group (``enable.auto.commit``), so
    no local checkpoint is kept. Each event carries the topic it came from
    under the ``access_source`` tag.

    Usage:
        config = KafkaSourceConfig.from_params({
            "brokers": "localhost:9092",
            "topic": "orders",
            "group_id": "ferry",
        })
        async with KafkaSource(config, "orders_src") as source:
            events = await source.receive()
    """

    def __init__(
        self,
        config: KafkaSourceConfig,
        name: str,
        metrics: MetricsSink | None = None,
        tags: dict[str, str] | None = None,
    ) -> None:
        """
        Initialize the Kafka source.

        Args:
            config: Validated source configuration.
            name: Source identifier.
            metrics: Metrics handle.
            tags: Labels copied onto every event.
        """
        super().__init__(KIND, name, metrics=metrics, tags=tags)
        self._config = config
        self._consumer: AIOKafkaConsumer | None = None
        self._event_seq = 0

    @property
    def config(self) -> KafkaSourceConfig:
        return self._config

    async def _do_connect(self) -> None:
        await ensure_topics(self._config.client, self._config.topics)

        logger.info(
            "kafka_source_connecting",
            name=self.name,
            topics=list(self._config.topics),
            group_id=self._config.group_id,
        )

        consumer = AIOKafkaConsumer(*self._config.topics, **self._config.consumer_config())
        try:
            await consumer.start()
        except AIOKafkaError as e:
            raise KafkaError(
                f"Failed to connect consumer: {e}",
                operation="connect",
                details={"brokers": self._config.client.brokers},
            ) from e

        self._consumer = consumer
        logger.info("kafka_source_connected", name=self.name)

    async def _do_disconnect(self) -> None:
        if self._consumer is None:
            return

        logger.info("kafka_source_disconnecting", name=self.name, events=self._event_seq)
        try:
            await self._consumer.stop()
        except AIOKafkaError as e:
            logger.warning("kafka_source_disconnect_error", name=self.name, error=str(e))
        finally:
            self._consumer = None

    async def _do_health_check(self) -> bool:
        if self._consumer is None:
            return False
        return len(self._consumer.subscription()) > 0

    async def receive(self) -> list[SourceEvent]:
        if self._consumer is None:
            raise SupplierError(
                "kafka source is not connected",
                connector_type=KIND,
                operation="receive",
            )

        try:
            batches = await self._consumer.getmany(
                timeout_ms=self._config.poll_timeout_ms,
                max_records=self._config.max_records,
            )
        except AIOKafkaError as e:
            raise SupplierError(
                f"kafka receive failed: {e}",
                connector_type=KIND,
                operation="receive",
            ) from e

        events = [
            self._event(record)
            for records in batches.values()
            for record in records
        ]
        if not events:
            raise NotData(
                "kafka poll returned no message",
                connector_type=KIND,
                operation="receive",
            )

        self._touch()
        self.metrics.events_received(KIND, self.name, len(events))
        return events

    def try_receive(self) -> list[SourceEvent] | None:
        return None

    def _event(self, record: ConsumerRecord) -> SourceEvent:
        self._event_seq = (self._event_seq + 1) % _SEQ_MODULUS
        tags = dict(self.metadata.tags)
        tags[SOURCE_TAG] = record.topic
        return SourceEvent(
            event_id=self._event_seq,
            source=self.name,
            payload=record.value or b"",
            tags=tags,
        )
