"""
Kafka configuration models.

Connector parameters carry client options as a list of ``key=value``
strings using the familiar librdkafka names (``security.protocol``,
``auto.offset.reset`` ...). They are translated here into aiokafka keyword
arguments; keys with no aiokafka counterpart are either ignored with a
warning (known librdkafka tuning knobs) or rejected at build time.
"""

import ssl
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping

import structlog
from pydantic import BaseModel, ConfigDict, Field, SecretStr

from ferry.core.exceptions import ConfigurationError
from ferry.core.formats import OutputFormat, parse_format
from ferry.core.params import parse_kv_config, positive_int, required_str, str_list

logger = structlog.get_logger()

KIND = "kafka"


class SecurityProtocol(str, Enum):
    """Kafka security protocols."""

    PLAINTEXT = "PLAINTEXT"
    SSL = "SSL"
    SASL_PLAINTEXT = "SASL_PLAINTEXT"
    SASL_SSL = "SASL_SSL"


class SASLMechanism(str, Enum):
    """SASL authentication mechanisms."""

    PLAIN = "PLAIN"
    SCRAM_SHA_256 = "SCRAM-SHA-256"
    SCRAM_SHA_512 = "SCRAM-SHA-512"
    GSSAPI = "GSSAPI"


def _as_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValueError(f"expected a boolean, got {value!r}")


def _as_acks(value: str) -> int | str:
    return "all" if value.strip().lower() in ("all", "-1") else int(value)


Converter = Callable[[str], Any]

_SECURITY_KEYS: dict[str, str] = {
    "security.protocol": "security_protocol",
    "sasl.mechanism": "sasl_mechanism",
    "sasl.mechanisms": "sasl_mechanism",
    "sasl.username": "sasl_username",
    "sasl.password": "sasl_password",
    "ssl.ca.location": "ssl_cafile",
    "ssl.certificate.location": "ssl_certfile",
    "ssl.key.location": "ssl_keyfile",
    "ssl.key.password": "ssl_password",
    "ssl.endpoint.identification.algorithm": "ssl_check_hostname",
}

_COMMON_KEYS: dict[str, tuple[str, Converter]] = {
    "client.id": ("client_id", str),
    "request.timeout.ms": ("request_timeout_ms", int),
    "metadata.max.age.ms": ("metadata_max_age_ms", int),
    "connections.max.idle.ms": ("connections_max_idle_ms", int),
    "retry.backoff.ms": ("retry_backoff_ms", int),
}

_CONSUMER_KEYS: dict[str, tuple[str, Converter]] = {
    "auto.offset.reset": ("auto_offset_reset", str),
    "enable.auto.commit": ("enable_auto_commit", _as_bool),
    "auto.commit.interval.ms": ("auto_commit_interval_ms", int),
    "session.timeout.ms": ("session_timeout_ms", int),
    "heartbeat.interval.ms": ("heartbeat_interval_ms", int),
    "max.poll.interval.ms": ("max_poll_interval_ms", int),
    "max.poll.records": ("max_poll_records", int),
    "fetch.min.bytes": ("fetch_min_bytes", int),
    "fetch.max.bytes": ("fetch_max_bytes", int),
    "fetch.wait.max.ms": ("fetch_max_wait_ms", int),
    "max.partition.fetch.bytes": ("max_partition_fetch_bytes", int),
    "isolation.level": ("isolation_level", str),
}

_PRODUCER_KEYS: dict[str, tuple[str, Converter]] = {
    "acks": ("acks", _as_acks),
    "linger.ms": ("linger_ms", int),
    "compression.type": ("compression_type", str),
    "compression.codec": ("compression_type", str),
    "message.max.bytes": ("max_request_size", int),
    "batch.size": ("max_batch_size", int),
    "enable.idempotence": ("enable_idempotence", _as_bool),
}

# librdkafka tuning knobs without an aiokafka equivalent
_IGNORED_KEYS = frozenset({
    "enable.partition.eof",
    "enable.auto.offset.store",
    "receive.message.max.bytes",
    "queue.buffering.max.messages",
    "queue.buffering.max.kbytes",
    "queue.buffering.max.ms",
    "socket.keepalive.enable",
})


class KafkaClientSettings(BaseModel):
    """
    Connection and authentication settings shared by consumer, producer and
    admin clients.
    """

    model_config = ConfigDict(frozen=True)

    brokers: str = Field(description="Comma-separated list of bootstrap servers")
    security_protocol: SecurityProtocol = Field(
        default=SecurityProtocol.PLAINTEXT,
        description="Security protocol to use",
    )
    sasl_mechanism: SASLMechanism | None = Field(default=None, description="SASL mechanism")
    sasl_username: str | None = Field(default=None, description="SASL username")
    sasl_password: SecretStr | None = Field(default=None, description="SASL password")
    ssl_cafile: str | None = Field(default=None, description="Path to CA certificate file")
    ssl_certfile: str | None = Field(default=None, description="Path to client certificate file")
    ssl_keyfile: str | None = Field(default=None, description="Path to client private key file")
    ssl_password: SecretStr | None = Field(default=None, description="Password for private key")
    ssl_check_hostname: bool = Field(default=True, description="Verify server hostname")
    common: dict[str, Any] = Field(default_factory=dict, description="Translated client options")
    role: dict[str, Any] = Field(
        default_factory=dict,
        description="Translated consumer or producer options",
    )

    @classmethod
    def from_entries(
        cls,
        brokers: str,
        entries: list[str] | None,
        role_keys: Mapping[str, tuple[str, Converter]],
    ) -> "KafkaClientSettings":
        """
        Translate ``key=value`` entries for one client role.

        Raises:
            ConfigurationError: On an unsupported key or an unparsable value.
        """
        values: dict[str, Any] = {"brokers": brokers}
        common: dict[str, Any] = {}
        role: dict[str, Any] = {}

        for key, raw in parse_kv_config(entries).items():
            field = f"{KIND}.config"
            try:
                if key in _SECURITY_KEYS:
                    name = _SECURITY_KEYS[key]
                    if name == "ssl_check_hostname":
                        values[name] = raw.lower() not in ("", "none")
                    elif name == "security_protocol":
                        values[name] = SecurityProtocol(raw.upper())
                    elif name == "sasl_mechanism":
                        values[name] = SASLMechanism(raw.upper())
                    else:
                        values[name] = raw
                elif key in _COMMON_KEYS:
                    name, convert = _COMMON_KEYS[key]
                    common[name] = convert(raw)
                elif key in role_keys:
                    name, convert = role_keys[key]
                    role[name] = convert(raw)
                elif key in _IGNORED_KEYS:
                    logger.warning("kafka_config_key_ignored", key=key, value=raw)
                else:
                    raise ConfigurationError(
                        f"{field} key '{key}' is not supported",
                        field=field,
                        details={"key": key},
                    )
            except ValueError as e:
                raise ConfigurationError(
                    f"{field} key '{key}' has invalid value '{raw}': {e}",
                    field=field,
                ) from e

        return cls(**values, common=common, role=role)

    def _build_ssl_context(self) -> ssl.SSLContext | None:
        if self.security_protocol not in (SecurityProtocol.SSL, SecurityProtocol.SASL_SSL):
            return None

        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
        if self.ssl_cafile:
            ca_path = Path(self.ssl_cafile)
            if not ca_path.exists():
                raise ConfigurationError(
                    f"CA certificate file not found: {ca_path}",
                    field=f"{KIND}.config",
                )
            context.load_verify_locations(cafile=str(ca_path))
        if self.ssl_certfile and self.ssl_keyfile:
            context.load_cert_chain(
                certfile=self.ssl_certfile,
                keyfile=self.ssl_keyfile,
                password=self.ssl_password.get_secret_value() if self.ssl_password else None,
            )
        context.check_hostname = self.ssl_check_hostname
        return context

    def to_aiokafka_config(self, include_role: bool = True) -> dict[str, Any]:
        """
        Convert to aiokafka keyword arguments.

        Args:
            include_role: Include consumer/producer specific options. Admin
                clients only accept the common subset.
        """
        config: dict[str, Any] = {
            "bootstrap_servers": self.brokers,
            "security_protocol": self.security_protocol.value,
            "client_id": "ferry",
        }
        config.update(self.common)

        ssl_context = self._build_ssl_context()
        if ssl_context is not None:
            config["ssl_context"] = ssl_context

        if self.security_protocol in (SecurityProtocol.SASL_PLAINTEXT, SecurityProtocol.SASL_SSL):
            config["sasl_mechanism"] = (self.sasl_mechanism or SASLMechanism.PLAIN).value
            if self.sasl_username:
                config["sasl_plain_username"] = self.sasl_username
            if self.sasl_password:
                config["sasl_plain_password"] = self.sasl_password.get_secret_value()

        if include_role:
            config.update(self.role)
        return config


def _topics(params: Mapping[str, Any]) -> tuple[str, ...]:
    topics = str_list(params, KIND, "topic", split_commas=True)
    if not topics:
        raise ConfigurationError(f"{KIND}.topic must not be empty", field=f"{KIND}.topic")
    return tuple(topics)


def _config_entries(params: Mapping[str, Any]) -> list[str] | None:
    return str_list(params, KIND, "config")


class KafkaSourceConfig(BaseModel):
    """Validated kafka source parameters."""

    model_config = ConfigDict(frozen=True)

    topics: tuple[str, ...] = Field(description="Topics to subscribe to (created if missing)")
    group_id: str = Field(description="Consumer group ID")
    client: KafkaClientSettings = Field(description="Client connection settings")
    poll_timeout_ms: int = Field(default=1000, description="Wait per poll before reporting no data")
    max_records: int = Field(default=500, description="Max records returned per receive")

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "KafkaSourceConfig":
        """
        Build from a flat parameter map.

        Raises:
            ConfigurationError: If brokers, topic or group_id are missing, or a
                config entry is invalid.
        """
        brokers = required_str(params, KIND, "brokers")
        topics = _topics(params)
        group_id = required_str(params, KIND, "group_id")
        client = KafkaClientSettings.from_entries(brokers, _config_entries(params), _CONSUMER_KEYS)
        return cls(topics=topics, group_id=group_id, client=client)

    def consumer_config(self) -> dict[str, Any]:
        config = self.client.to_aiokafka_config()
        config["group_id"] = self.group_id
        return config


class KafkaSinkConfig(BaseModel):
    """Validated kafka sink parameters."""

    model_config = ConfigDict(frozen=True)

    topic: str = Field(description="Target topic (created if missing)")
    fmt: OutputFormat = Field(default=OutputFormat.JSON, description="Record output format")
    num_partitions: int = Field(default=1, description="Partitions when creating the topic")
    replication: int = Field(default=1, description="Replication factor when creating the topic")
    client: KafkaClientSettings = Field(description="Client connection settings")
    flush_timeout_secs: float = Field(default=3.0, description="Producer flush timeout on stop")

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "KafkaSinkConfig":
        """
        Build from a flat parameter map.

        Raises:
            ConfigurationError: If brokers or topic are missing, a numeric field
                is not positive, fmt is unknown, or a config entry is invalid.
        """
        brokers = required_str(params, KIND, "brokers")
        topic = required_str(params, KIND, "topic")
        num_partitions = positive_int(params, KIND, "num_partitions") or 1
        replication = positive_int(params, KIND, "replication") or 1
        fmt = parse_format(params.get("fmt"), KIND)
        client = KafkaClientSettings.from_entries(brokers, _config_entries(params), _PRODUCER_KEYS)
        return cls(
            topic=topic,
            fmt=fmt,
            num_partitions=num_partitions,
            replication=replication,
            client=client,
        )

    def producer_config(self) -> dict[str, Any]:
        return self.client.to_aiokafka_config()
