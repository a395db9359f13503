"""
Connector registry.

Provides:
- ConnectorKind, the closed set of supported connector kinds
- ConnectorRegistry, mapping (kind, scope) to a factory
- build_source / build_sink helpers over the default registry
"""

from enum import Enum
from typing import Any, Iterator

import structlog

from ferry.connectors.base import BuildContext, ConnectorDef, ConnectorFactory
from ferry.connectors.doris.factory import DorisSinkFactory
from ferry.connectors.kafka.factory import KafkaSinkFactory, KafkaSourceFactory
from ferry.connectors.mysql.factory import MysqlSinkFactory, MysqlSourceFactory
from ferry.connectors.victorialogs.factory import VictoriaLogsSinkFactory
from ferry.connectors.victoriametrics.factory import VictoriaMetricsSinkFactory
from ferry.core.base import AbstractConnector
from ferry.core.checkpoint import CheckpointStore
from ferry.core.config import ConnectorScope, ConnectorSpec
from ferry.core.exceptions import ConfigurationError
from ferry.core.metrics import MetricsSink
from ferry.core.sink import BaseSink
from ferry.core.source import DataSource

logger = structlog.get_logger()


class ConnectorKind(str, Enum):
    """Connector kinds ferry can build."""

    KAFKA = "kafka"
    MYSQL = "mysql"
    DORIS = "doris"
    VICTORIALOGS = "victorialogs"
    VICTORIAMETRICS = "victoriametrics"

    @classmethod
    def allowed(cls) -> str:
        return ",".join(member.value for member in cls)

    @classmethod
    def parse(cls, value: str) -> "ConnectorKind":
        """
        Raises:
            ConfigurationError: If ``value`` names no known kind.
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"unknown connector kind: '{value}'; allowed: {cls.allowed()}",
                field="kind",
                details={"allowed": [member.value for member in cls]},
            ) from None


FactoryKey = tuple[ConnectorKind, ConnectorScope]


class ConnectorRegistry:
    """
    Lookup table from (kind, scope) to a connector factory.

    Usage:
        registry = default_registry()
        registry.validate(spec)
        sink = await registry.build_sink(spec, BuildContext(metrics=metrics))
    """

    def __init__(self) -> None:
        self._factories: dict[FactoryKey, ConnectorFactory[Any, Any]] = {}

    def register(self, factory: ConnectorFactory[Any, Any]) -> None:
        """
        Register ``factory`` under its kind and scope.

        Raises:
            ConfigurationError: If the kind/scope pair is already taken.
        """
        key = (ConnectorKind.parse(factory.kind), factory.scope)
        if key in self._factories:
            raise ConfigurationError(
                f"{factory.kind} {factory.scope.value} factory already registered",
                field="kind",
            )
        self._factories[key] = factory
        logger.debug("factory_registered", kind=factory.kind, scope=factory.scope.value)

    def lookup(self, kind: str, scope: ConnectorScope) -> ConnectorFactory[Any, Any]:
        """
        Find the factory for ``kind`` in ``scope``.

        Raises:
            ConfigurationError: If the kind is unknown or has no factory for
                the scope.
        """
        parsed = ConnectorKind.parse(kind)
        factory = self._factories.get((parsed, scope))
        if factory is None:
            supported = sorted(k.value for k, s in self._factories if s == scope)
            raise ConfigurationError(
                f"{parsed.value} has no {scope.value} connector; "
                f"{scope.value} kinds: {','.join(supported)}",
                field="kind",
                details={"supported": supported},
            )
        return factory

    def definitions(self, scope: ConnectorScope | None = None) -> list[ConnectorDef]:
        """Definitions of every registered factory, optionally for one scope."""
        return [
            factory.definition()
            for (_, factory_scope), factory in self._factories.items()
            if scope is None or factory_scope == scope
        ]

    def validate(self, spec: ConnectorSpec) -> Any:
        """
        Validate ``spec`` without acquiring resources.

        Returns:
            The parsed connector configuration.

        Raises:
            ConfigurationError: On any invalid kind or parameter.
        """
        return self.lookup(spec.kind, spec.scope).validate(spec)

    async def build(self, spec: ConnectorSpec, ctx: BuildContext | None = None) -> AbstractConnector:
        """Build and connect the connector described by ``spec``."""
        return await self.lookup(spec.kind, spec.scope).build(spec, ctx)

    async def build_source(self, spec: ConnectorSpec, ctx: BuildContext | None = None) -> DataSource:
        """
        Raises:
            ConfigurationError: If ``spec`` is not a source spec or is invalid.
            ConnectorError: If connecting fails.
        """
        self._require_scope(spec, ConnectorScope.SOURCE)
        return await self.build(spec, ctx)  # type: ignore[return-value]

    async def build_sink(self, spec: ConnectorSpec, ctx: BuildContext | None = None) -> BaseSink:
        """
        Raises:
            ConfigurationError: If ``spec`` is not a sink spec or is invalid.
            ConnectorError: If connecting fails.
        """
        self._require_scope(spec, ConnectorScope.SINK)
        return await self.build(spec, ctx)  # type: ignore[return-value]

    @staticmethod
    def _require_scope(spec: ConnectorSpec, scope: ConnectorScope) -> None:
        if spec.scope != scope:
            raise ConfigurationError(
                f"{spec.kind} spec '{spec.name}' has scope {spec.scope.value}, expected {scope.value}",
                field="scope",
            )

    def __len__(self) -> int:
        return len(self._factories)

    def __contains__(self, key: FactoryKey) -> bool:
        return key in self._factories

    def __iter__(self) -> Iterator[ConnectorFactory[Any, Any]]:
        return iter(self._factories.values())


def default_registry() -> ConnectorRegistry:
    """Registry holding every built-in factory."""
    registry = ConnectorRegistry()
    for factory in (
        KafkaSourceFactory(),
        KafkaSinkFactory(),
        MysqlSourceFactory(),
        MysqlSinkFactory(),
        DorisSinkFactory(),
        VictoriaLogsSinkFactory(),
        VictoriaMetricsSinkFactory(),
    ):
        registry.register(factory)
    return registry


def _context(
    metrics: MetricsSink | None,
    checkpoints: CheckpointStore | None,
) -> BuildContext:
    if metrics is None:
        return BuildContext(checkpoints=checkpoints)
    return BuildContext(metrics=metrics, checkpoints=checkpoints)


async def build_source(
    spec: ConnectorSpec,
    metrics: MetricsSink | None = None,
    checkpoints: CheckpointStore | None = None,
) -> DataSource:
    """Build a source from the built-in factories."""
    return await default_registry().build_source(spec, _context(metrics, checkpoints))


async def build_sink(spec: ConnectorSpec, metrics: MetricsSink | None = None) -> BaseSink:
    """Build a sink from the built-in factories."""
    return await default_registry().build_sink(spec, _context(metrics, None))
