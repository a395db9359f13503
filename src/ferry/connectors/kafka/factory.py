"""
Kafka source and sink factories.
"""

from typing import Any, Mapping

from ferry.connectors.base import BuildContext, ConnectorDef, ConnectorFactory, source_tags
from ferry.connectors.kafka.config import KIND, KafkaSinkConfig, KafkaSourceConfig
from ferry.connectors.kafka.consumer import KafkaSource
from ferry.connectors.kafka.producer import KafkaSink
from ferry.core.config import ConnectorScope, ConnectorSpec


class KafkaSourceFactory(ConnectorFactory[KafkaSourceConfig, KafkaSource]):
    kind = KIND
    scope = ConnectorScope.SOURCE

    def definition(self) -> ConnectorDef:
        return ConnectorDef(
            id="kafka_src",
            kind=KIND,
            scope=self.scope,
            allow_override=("brokers", "topic", "group_id", "config"),
            default_params={
                "brokers": "localhost:9092",
                "topic": "wp_events",
                "group_id": "wp_events_group",
                "config": ["auto.offset.reset=latest", "enable.auto.commit=true"],
            },
        )

    def parse(self, params: Mapping[str, Any]) -> KafkaSourceConfig:
        return KafkaSourceConfig.from_params(params)

    def create(self, spec: ConnectorSpec, config: KafkaSourceConfig, ctx: BuildContext) -> KafkaSource:
        return KafkaSource(config, spec.name, metrics=ctx.metrics, tags=source_tags(spec))


class KafkaSinkFactory(ConnectorFactory[KafkaSinkConfig, KafkaSink]):
    kind = KIND
    scope = ConnectorScope.SINK

    def definition(self) -> ConnectorDef:
        return ConnectorDef(
            id="kafka_sink",
            kind=KIND,
            scope=self.scope,
            allow_override=("brokers", "topic", "fmt", "num_partitions", "replication", "config"),
            default_params={
                "brokers": "localhost:9092",
                "topic": "wp_events",
                "fmt": "json",
                "num_partitions": 1,
                "replication": 1,
            },
        )

    def parse(self, params: Mapping[str, Any]) -> KafkaSinkConfig:
        return KafkaSinkConfig.from_params(params)

    def create(self, spec: ConnectorSpec, config: KafkaSinkConfig, ctx: BuildContext) -> KafkaSink:
        return KafkaSink(config, spec.name, metrics=ctx.metrics)
