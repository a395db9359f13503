"""
MySQL connector module - Async MySQL table source and sink.
"""

from ferry.connectors.mysql.config import (
    MysqlConnectionSettings,
    MysqlSinkConfig,
    MysqlSourceConfig,
)
from ferry.connectors.mysql.executor import MysqlExecutor
from ferry.connectors.mysql.factory import MysqlSinkFactory, MysqlSourceFactory
from ferry.connectors.mysql.sink import MysqlSink
from ferry.connectors.mysql.source import MysqlSource

__all__ = [
    "MysqlSource",
    "MysqlSink",
    "MysqlSourceFactory",
    "MysqlSinkFactory",
    "MysqlSourceConfig",
    "MysqlSinkConfig",
    "MysqlConnectionSettings",
    "MysqlExecutor",
]
