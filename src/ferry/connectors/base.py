"""
Factory contract shared by every connector kind.

Provides:
- ConnectorDef, a kind's default parameters and overridable keys
- BuildContext, the collaborators injected into built connectors
- ConnectorFactory, parse-then-create-then-connect with cleanup on failure
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Generic, Mapping, TypeVar

import structlog
from pydantic import BaseModel

from ferry.core.base import AbstractConnector
from ferry.core.checkpoint import CheckpointStore
from ferry.core.config import ConnectorScope, ConnectorSpec
from ferry.core.exceptions import ConfigurationError
from ferry.core.metrics import MetricsSink, NullMetrics
from ferry.core.params import ParamMap, merge_defaults
from ferry.core.source import SOURCE_TAG

logger = structlog.get_logger()

ConfigT = TypeVar("ConfigT", bound=BaseModel)
ConnectorT = TypeVar("ConnectorT", bound=AbstractConnector)


@dataclass(frozen=True)
class ConnectorDef:
    """
    Static description of a connector kind for one scope.

    Attributes:
        id: Stable definition identifier, e.g. ``mysql_sink``.
        kind: Connector kind.
        scope: Source or sink.
        allow_override: Parameter keys a spec may set.
        default_params: Values used for keys a spec leaves out.
    """

    id: str
    kind: str
    scope: ConnectorScope
    allow_override: tuple[str, ...]
    default_params: Mapping[str, Any] = field(default_factory=dict)

    def merge(self, params: Mapping[str, Any]) -> ParamMap:
        """
        Overlay spec parameters on the defaults.

        Raises:
            ConfigurationError: If a key is not overridable for this kind.
        """
        unknown = sorted(set(params) - set(self.allow_override))
        if unknown:
            raise ConfigurationError(
                f"{self.kind}.{unknown[0]} is not a recognized {self.scope.value} parameter; "
                f"allowed: {','.join(self.allow_override)}",
                field=f"{self.kind}.{unknown[0]}",
                details={"unknown": unknown},
            )
        return merge_defaults(self.default_params, params)


@dataclass(frozen=True)
class BuildContext:
    """
    Collaborators handed to factories.

    A single ConnectorMetrics and CheckpointStore are normally shared by all
    connectors of a process.
    """

    metrics: MetricsSink = field(default_factory=NullMetrics)
    checkpoints: CheckpointStore | None = None

    def checkpoint_store(self) -> CheckpointStore:
        return self.checkpoints or CheckpointStore(metrics=self.metrics)


def source_tags(spec: ConnectorSpec) -> dict[str, str]:
    """Spec tags plus the ``access_source`` tag naming the connector kind."""
    tags = dict(spec.tags)
    tags[SOURCE_TAG] = spec.kind
    return tags


class ConnectorFactory(ABC, Generic[ConfigT, ConnectorT]):
    """
    Builds connectors of one kind and scope from a ConnectorSpec.

    ``validate`` only parses parameters. ``build`` parses, creates the
    connector and connects it; if connecting fails, whatever the connector
    acquired is released before the error propagates.

    Subclasses implement:
    - definition(): Defaults and overridable keys
    - parse(): Flat parameters to a validated config model
    - create(): Config to an unconnected connector
    """

    kind: ClassVar[str]
    scope: ClassVar[ConnectorScope]

    @abstractmethod
    def definition(self) -> ConnectorDef:
        ...

    @abstractmethod
    def parse(self, params: Mapping[str, Any]) -> ConfigT:
        """
        Validate flat parameters.

        Raises:
            ConfigurationError: On any invalid or missing value.
        """
        ...

    @abstractmethod
    def create(self, spec: ConnectorSpec, config: ConfigT, ctx: BuildContext) -> ConnectorT:
        """Instantiate the connector without performing I/O."""
        ...

    def validate(self, spec: ConnectorSpec) -> ConfigT:
        """Validate ``spec`` against this kind; no resources are acquired."""
        return self.parse(self.definition().merge(spec.params))

    async def build(self, spec: ConnectorSpec, ctx: BuildContext | None = None) -> ConnectorT:
        """
        Build and connect a connector.

        Raises:
            ConfigurationError: If the spec is invalid.
            ConnectorError: If connecting or preparing the target fails.
        """
        ctx = ctx or BuildContext()
        config = self.validate(spec)
        connector = self.create(spec, config, ctx)

        try:
            await connector.connect()
        except Exception:
            await self._release(connector)
            raise

        logger.info(
            "connector_built",
            kind=self.kind,
            scope=self.scope.value,
            name=spec.name,
        )
        return connector

    async def _release(self, connector: AbstractConnector) -> None:
        try:
            await connector.disconnect()
        except Exception as e:
            logger.warning(
                "connector_release_failed",
                kind=self.kind,
                name=connector.name,
                error=str(e),
            )
