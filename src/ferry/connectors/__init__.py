"""
Connectors module - Kafka, MySQL, Doris, VictoriaLogs and VictoriaMetrics adapters.
"""

from ferry.connectors.base import BuildContext, ConnectorDef, ConnectorFactory
from ferry.connectors.registry import (
    ConnectorKind,
    ConnectorRegistry,
    build_sink,
    build_source,
    default_registry,
)

__all__ = [
    "BuildContext",
    "ConnectorDef",
    "ConnectorFactory",
    "ConnectorKind",
    "ConnectorRegistry",
    "default_registry",
    "build_source",
    "build_sink",
]
