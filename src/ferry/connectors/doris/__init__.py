"""
Doris connector module - Batched sink over the MySQL protocol.
"""

from ferry.connectors.doris.config import DorisSinkConfig
from ferry.connectors.doris.factory import DorisSinkFactory
from ferry.connectors.doris.sink import DorisSink

__all__ = ["DorisSink", "DorisSinkConfig", "DorisSinkFactory"]
