"""
VictoriaMetrics connector module - Pipeline stat exporter.
"""

from ferry.connectors.victoriametrics.config import VictoriaMetricsConfig
from ferry.connectors.victoriametrics.exporter import VictoriaMetricsExporter
from ferry.connectors.victoriametrics.factory import VictoriaMetricsSinkFactory
from ferry.connectors.victoriametrics.metrics import Stage, StageMetrics

__all__ = [
    "VictoriaMetricsExporter",
    "VictoriaMetricsConfig",
    "VictoriaMetricsSinkFactory",
    "StageMetrics",
    "Stage",
]
