"""
Kafka connector module - Async Kafka source and sink.
"""

from ferry.connectors.kafka.config import (
    KafkaClientSettings,
    KafkaSinkConfig,
    KafkaSourceConfig,
    SASLMechanism,
    SecurityProtocol,
)
from ferry.connectors.kafka.consumer import KafkaSource
from ferry.connectors.kafka.factory import KafkaSinkFactory, KafkaSourceFactory
from ferry.connectors.kafka.producer import KafkaSink

__all__ = [
    "KafkaSource",
    "KafkaSink",
    "KafkaSourceFactory",
    "KafkaSinkFactory",
    "KafkaSourceConfig",
    "KafkaSinkConfig",
    "KafkaClientSettings",
    "SecurityProtocol",
    "SASLMechanism",
]
