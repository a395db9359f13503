"""
Doris sink factory.
"""

from typing import Any, Mapping

from ferry.connectors.base import BuildContext, ConnectorDef, ConnectorFactory
from ferry.connectors.doris.config import DEFAULT_BATCH, DEFAULT_POOL_SIZE, KIND, DorisSinkConfig
from ferry.connectors.doris.sink import DorisSink
from ferry.core.config import ConnectorScope, ConnectorSpec


class DorisSinkFactory(ConnectorFactory[DorisSinkConfig, DorisSink]):
    kind = KIND
    scope = ConnectorScope.SINK

    def definition(self) -> ConnectorDef:
        return ConnectorDef(
            id="doris_sink",
            kind=KIND,
            scope=self.scope,
            allow_override=(
                "endpoint",
                "database",
                "table",
                "user",
                "password",
                "pool",
                "batch",
                "create_table",
            ),
            default_params={
                "endpoint": "mysql://localhost:9030",
                "database": "wp_data",
                "table": "wp_events",
                "user": "root",
                "password": "",
                "pool": DEFAULT_POOL_SIZE,
                "batch": DEFAULT_BATCH,
            },
        )

    def parse(self, params: Mapping[str, Any]) -> DorisSinkConfig:
        return DorisSinkConfig.from_params(params)

    def create(self, spec: ConnectorSpec, config: DorisSinkConfig, ctx: BuildContext) -> DorisSink:
        return DorisSink(config, spec.name, metrics=ctx.metrics, tags=dict(spec.tags))
