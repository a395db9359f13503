"""
VictoriaLogs connector module - JSON-lines log sink over HTTP.
"""

from ferry.connectors.victorialogs.config import VictoriaLogsConfig
from ferry.connectors.victorialogs.factory import VictoriaLogsSinkFactory
from ferry.connectors.victorialogs.sink import VictoriaLogsSink, build_log_entry

__all__ = [
    "VictoriaLogsSink",
    "VictoriaLogsConfig",
    "VictoriaLogsSinkFactory",
    "build_log_entry",
]
