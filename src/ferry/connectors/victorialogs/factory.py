"""
VictoriaLogs sink factory.
"""

from typing import Any, Mapping

from ferry.connectors.base import BuildContext, ConnectorDef, ConnectorFactory
from ferry.connectors.victorialogs.config import (
    DEFAULT_ENDPOINT,
    DEFAULT_INSERT_PATH,
    DEFAULT_REQUEST_TIMEOUT_SECS,
    KIND,
    VictoriaLogsConfig,
)
from ferry.connectors.victorialogs.sink import VictoriaLogsSink
from ferry.core.config import ConnectorScope, ConnectorSpec


class VictoriaLogsSinkFactory(ConnectorFactory[VictoriaLogsConfig, VictoriaLogsSink]):
    kind = KIND
    scope = ConnectorScope.SINK

    def definition(self) -> ConnectorDef:
        return ConnectorDef(
            id="victorialogs_sink",
            kind=KIND,
            scope=self.scope,
            allow_override=(
                "endpoint",
                "insert_path",
                "fmt",
                "request_timeout_secs",
                "create_time_field",
            ),
            default_params={
                "endpoint": DEFAULT_ENDPOINT,
                "insert_path": DEFAULT_INSERT_PATH,
                "fmt": "json",
                "request_timeout_secs": DEFAULT_REQUEST_TIMEOUT_SECS,
            },
        )

    def parse(self, params: Mapping[str, Any]) -> VictoriaLogsConfig:
        return VictoriaLogsConfig.from_params(params)

    def create(
        self,
        spec: ConnectorSpec,
        config: VictoriaLogsConfig,
        ctx: BuildContext,
    ) -> VictoriaLogsSink:
        return VictoriaLogsSink(config, spec.name, metrics=ctx.metrics, tags=dict(spec.tags))
