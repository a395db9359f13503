"""
VictoriaMetrics exporter factory.
"""

from typing import Any, Mapping

from ferry.connectors.base import BuildContext, ConnectorDef, ConnectorFactory
from ferry.connectors.victoriametrics.config import (
    DEFAULT_FLUSH_INTERVAL_SECS,
    DEFAULT_INSERT_URL,
    DEFAULT_REQUEST_TIMEOUT_SECS,
    KIND,
    VictoriaMetricsConfig,
)
from ferry.connectors.victoriametrics.exporter import VictoriaMetricsExporter
from ferry.core.config import ConnectorScope, ConnectorSpec


class VictoriaMetricsSinkFactory(ConnectorFactory[VictoriaMetricsConfig, VictoriaMetricsExporter]):
    kind = KIND
    scope = ConnectorScope.SINK

    def definition(self) -> ConnectorDef:
        return ConnectorDef(
            id="victoriametrics_sink",
            kind=KIND,
            scope=self.scope,
            allow_override=("insert_url", "flush_interval_secs", "request_timeout_secs"),
            default_params={
                "insert_url": DEFAULT_INSERT_URL,
                "flush_interval_secs": DEFAULT_FLUSH_INTERVAL_SECS,
                "request_timeout_secs": DEFAULT_REQUEST_TIMEOUT_SECS,
            },
        )

    def parse(self, params: Mapping[str, Any]) -> VictoriaMetricsConfig:
        return VictoriaMetricsConfig.from_params(params)

    def create(
        self,
        spec: ConnectorSpec,
        config: VictoriaMetricsConfig,
        ctx: BuildContext,
    ) -> VictoriaMetricsExporter:
        return VictoriaMetricsExporter(config, spec.name, metrics=ctx.metrics, tags=dict(spec.tags))
