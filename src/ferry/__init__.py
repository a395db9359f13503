"""
Ferry - Async data-movement connectors.

This library adapts external systems to two uniform contracts:
- Incremental, checkpointed sources (Kafka, MySQL)
- Batched record sinks (Kafka, MySQL, Doris, VictoriaLogs, VictoriaMetrics)
- Injection-safe SQL statement construction
- Bounded retry with backoff for HTTP sinks
- YAML + Jinja2 connector configuration
"""

from ferry.connectors.registry import ConnectorKind, build_sink, build_source, default_registry
from ferry.core.checkpoint import CheckpointStore
from ferry.core.config import ConfigManager, ConnectorScope, ConnectorSpec
from ferry.core.logging import configure_logging
from ferry.core.metrics import ConnectorMetrics
from ferry.core.record import DataField, DataRecord

__version__ = "0.1.0"
__all__ = [
    "ConfigManager",
    "ConnectorSpec",
    "ConnectorScope",
    "ConnectorKind",
    "ConnectorMetrics",
    "CheckpointStore",
    "DataField",
    "DataRecord",
    "build_source",
    "build_sink",
    "default_registry",
    "configure_logging",
    "__version__",
]
