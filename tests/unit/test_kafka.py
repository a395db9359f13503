"""Tests for the Kafka source and sink with mocked aiokafka clients."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiokafka.errors import KafkaConnectionError

from ferry.connectors.kafka.config import KafkaSinkConfig, KafkaSourceConfig, SecurityProtocol
from ferry.connectors.kafka.consumer import KafkaSource
from ferry.connectors.kafka.producer import KafkaSink
from ferry.core.exceptions import ConfigurationError, KafkaError, NotData, SupplierError
from ferry.core.formats import OutputFormat
from ferry.core.record import DataRecord
from ferry.core.source import SOURCE_TAG


class TestKafkaConfig:
    def test_source_config_translates_entries(self):
        config = KafkaSourceConfig.from_params({
            "brokers": "k1:9092,k2:9092",
            "topic": "a, b",
            "group_id": "g",
            "config": ["auto.offset.reset=earliest", "enable.auto.commit=false", "client.id=ferry-test"],
        })

        consumer = config.consumer_config()
        assert config.topics == ("a", "b")
        assert consumer["bootstrap_servers"] == "k1:9092,k2:9092"
        assert consumer["auto_offset_reset"] == "earliest"
        assert consumer["enable_auto_commit"] is False
        assert consumer["client_id"] == "ferry-test"
        assert consumer["group_id"] == "g"

    def test_sasl_settings(self):
        config = KafkaSinkConfig.from_params({
            "brokers": "k:9092",
            "topic": "out",
            "config": [
                "security.protocol=sasl_plaintext",
                "sasl.mechanism=SCRAM-SHA-256",
                "sasl.username=u",
                "sasl.password=p",
                "acks=all",
            ],
        })

        producer = config.producer_config()
        assert config.client.security_protocol is SecurityProtocol.SASL_PLAINTEXT
        assert producer["sasl_mechanism"] == "SCRAM-SHA-256"
        assert producer["sasl_plain_username"] == "u"
        assert producer["sasl_plain_password"] == "p"
        assert producer["acks"] == "all"

    def test_admin_config_excludes_role_options(self):
        config = KafkaSinkConfig.from_params({"brokers": "k", "topic": "t", "config": ["linger.ms=5"]})
        assert "linger_ms" not in config.client.to_aiokafka_config(include_role=False)
        assert config.producer_config()["linger_ms"] == 5

    def test_librdkafka_only_keys_ignored(self):
        config = KafkaSourceConfig.from_params({
            "brokers": "k",
            "topic": "t",
            "group_id": "g",
            "config": ["enable.partition.eof=false"],
        })
        assert "enable_partition_eof" not in config.consumer_config()

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError, match="kafka.config key 'bogus.key' is not supported"):
            KafkaSinkConfig.from_params({"brokers": "k", "topic": "t", "config": ["bogus.key=1"]})

    def test_consumer_key_rejected_for_producer(self):
        with pytest.raises(ConfigurationError):
            KafkaSinkConfig.from_params({"brokers": "k", "topic": "t", "config": ["auto.offset.reset=latest"]})

    def test_bad_value_rejected(self):
        with pytest.raises(ConfigurationError, match="invalid value"):
            KafkaSourceConfig.from_params({
                "brokers": "k",
                "topic": "t",
                "group_id": "g",
                "config": ["session.timeout.ms=soon"],
            })

    def test_empty_topic_rejected(self):
        with pytest.raises(ConfigurationError, match="kafka.topic must not be empty"):
            KafkaSourceConfig.from_params({"brokers": "k", "topic": " , ", "group_id": "g"})

    def test_sink_defaults(self):
        config = KafkaSinkConfig.from_params({"brokers": "k", "topic": "t"})
        assert config.fmt is OutputFormat.JSON
        assert config.num_partitions == 1
        assert config.replication == 1


@pytest.fixture
def source_config() -> KafkaSourceConfig:
    return KafkaSourceConfig.from_params({"brokers": "k:9092", "topic": "events", "group_id": "g"})


def consumer_record(topic: str, value: bytes) -> SimpleNamespace:
    return SimpleNamespace(topic=topic, value=value)


class TestKafkaSource:
    @pytest.mark.asyncio
    async def test_events_tagged_with_topic(self, source_config):
        source = KafkaSource(source_config, "kafka_src", tags={SOURCE_TAG: "kafka", "team": "data"})
        source._consumer = MagicMock()
        source._consumer.getmany = AsyncMock(return_value={
            "tp0": [consumer_record("events", b"one"), consumer_record("events", b"two")],
            "tp1": [consumer_record("audit", b"three")],
        })

        events = await source.receive()

        assert [event.payload for event in events] == [b"one", b"two", b"three"]
        assert [event.event_id for event in events] == [1, 2, 3]
        assert events[2].tags == {SOURCE_TAG: "audit", "team": "data"}
        assert events[0].source == "kafka_src"

    @pytest.mark.asyncio
    async def test_idle_poll_is_not_data(self, source_config):
        source = KafkaSource(source_config, "kafka_src")
        source._consumer = MagicMock()
        source._consumer.getmany = AsyncMock(return_value={})

        with pytest.raises(NotData):
            await source.receive()

    @pytest.mark.asyncio
    async def test_client_error_is_supplier_error(self, source_config):
        source = KafkaSource(source_config, "kafka_src")
        source._consumer = MagicMock()
        source._consumer.getmany = AsyncMock(side_effect=KafkaConnectionError("down"))

        with pytest.raises(SupplierError):
            await source.receive()

    @pytest.mark.asyncio
    async def test_receive_before_connect(self, source_config):
        with pytest.raises(SupplierError, match="not connected"):
            await KafkaSource(source_config, "kafka_src").receive()

    def test_try_receive_never_suspends(self, source_config):
        assert KafkaSource(source_config, "kafka_src").try_receive() is None


def mock_producer() -> MagicMock:
    async def send(topic, value):
        future = asyncio.get_running_loop().create_future()
        future.set_result(None)
        return future

    producer = MagicMock()
    producer.send = AsyncMock(side_effect=send)
    producer.flush = AsyncMock()
    producer.stop = AsyncMock()
    return producer


async def connected_sink(fmt: str = "json") -> tuple[KafkaSink, MagicMock]:
    config = KafkaSinkConfig.from_params({"brokers": "k:9092", "topic": "out", "fmt": fmt})
    sink = KafkaSink(config, "kafka_sink")
    producer = mock_producer()
    sink._do_connect = AsyncMock()
    await sink.connect()
    sink._producer = producer
    return sink, producer


class TestKafkaSink:
    @pytest.mark.asyncio
    async def test_records_published_as_lines(self):
        sink, producer = await connected_sink()

        await sink.sink_records([DataRecord.from_dict({"a": 1}), DataRecord.from_dict({"a": 2})])

        sent = [call.args for call in producer.send.await_args_list]
        assert sent == [("out", b'{"a":1}\n'), ("out", b'{"a":2}\n')]

    @pytest.mark.asyncio
    async def test_raw_published_unchanged(self):
        sink, producer = await connected_sink()

        await sink.sink_str("hello")
        await sink.sink_bytes_batch([b"x", b"y"])

        sent = [call.args[1] for call in producer.send.await_args_list]
        assert sent == [b"hello", b"x", b"y"]

    @pytest.mark.asyncio
    async def test_stop_flushes_producer(self):
        sink, producer = await connected_sink()

        await sink.stop()
        await sink.stop()

        producer.flush.assert_awaited_once()
        producer.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_flush_timeout_is_kafka_error(self):
        sink, producer = await connected_sink()

        async def hang():
            await asyncio.sleep(10)

        producer.flush = AsyncMock(side_effect=hang)
        sink._config = sink.config.model_copy(update={"flush_timeout_secs": 0.01})

        with pytest.raises(KafkaError, match="kafka stop fail"):
            await sink.flush()

    @pytest.mark.asyncio
    async def test_reconnect_replaces_producer(self):
        sink, old = await connected_sink()
        new = mock_producer()
        sink._start_producer = AsyncMock(return_value=new)

        await sink.reconnect()

        old.stop.assert_awaited_once()
        assert sink._producer is new

    @pytest.mark.asyncio
    async def test_send_before_connect(self):
        config = KafkaSinkConfig.from_params({"brokers": "k", "topic": "out"})
        with pytest.raises(KafkaError, match="not connected"):
            await KafkaSink(config, "kafka_sink").sink_str("x")
