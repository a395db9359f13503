"""
Core module - Connector runtime contracts, configuration, SQL safety, checkpoints and metrics.
"""

from ferry.core.base import AbstractConnector, ConnectorState
from ferry.core.checkpoint import CheckpointStore, PersistErrorPolicy
from ferry.core.config import ConfigManager, ConnectorScope, ConnectorSpec
from ferry.core.exceptions import (
    CheckpointError,
    ConfigurationError,
    ConnectorConnectionError,
    ConnectorError,
    FerryError,
    NotData,
    RetryExhaustedError,
    SchemaError,
    SourceEOF,
    SupplierError,
    TemplateError,
    TerminalIOError,
    TransientIOError,
    UnsupportedOperationError,
)
from ferry.core.formats import OutputFormat, format_record
from ferry.core.metrics import ConnectorMetrics, MetricsSink, NullMetrics
from ferry.core.record import DataField, DataRecord, DataType
from ferry.core.retry import RetryPolicy
from ferry.core.sink import BaseSink, BatchedSqlSink, RawDataSink, RecordSink, SinkControl
from ferry.core.source import CheckpointedSource, DataSource, SourceEvent
from ferry.core.templating import TemplateEngine

__all__ = [
    "AbstractConnector",
    "ConnectorState",
    "CheckpointStore",
    "PersistErrorPolicy",
    "ConfigManager",
    "ConnectorScope",
    "ConnectorSpec",
    "TemplateEngine",
    "ConnectorMetrics",
    "MetricsSink",
    "NullMetrics",
    "DataField",
    "DataRecord",
    "DataType",
    "OutputFormat",
    "format_record",
    "RetryPolicy",
    "DataSource",
    "CheckpointedSource",
    "SourceEvent",
    "RecordSink",
    "RawDataSink",
    "SinkControl",
    "BaseSink",
    "BatchedSqlSink",
    "FerryError",
    "ConfigurationError",
    "TemplateError",
    "ConnectorError",
    "ConnectorConnectionError",
    "SchemaError",
    "TransientIOError",
    "TerminalIOError",
    "RetryExhaustedError",
    "UnsupportedOperationError",
    "CheckpointError",
    "SourceEOF",
    "SupplierError",
    "NotData",
]
