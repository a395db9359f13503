"""
Custom exceptions for the Ferry library.

All exceptions inherit from FerryError for easy catching. Connector
failures carry the connector kind and the operation that failed so an
operator can map a message straight back to a configuration key.
"""

from typing import Any


class FerryError(Exception):
    """Base exception for all Ferry errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(FerryError):
    """Raised when connector parameters or a config file fail validation."""

    def __init__(
        self,
        message: str,
        config_path: str | None = None,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.config_path = config_path
        self.field = field


class TemplateError(FerryError):
    """Raised when template rendering fails."""

    def __init__(
        self,
        message: str,
        template_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.template_name = template_name


class ConnectorError(FerryError):
    """Raised when a connector operation fails."""

    def __init__(
        self,
        message: str,
        connector_type: str | None = None,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.connector_type = connector_type
        self.operation = operation


class ConnectorConnectionError(ConnectorError):
    """Raised when a session to the external system cannot be (re)established."""


class SchemaError(ConnectorError):
    """Raised when a target table yields no usable column list."""

    def __init__(
        self,
        message: str,
        connector_type: str | None = None,
        table: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, connector_type, "load_schema", details)
        self.table = table


class TransientIOError(ConnectorError):
    """Network or timeout failure that is eligible for retry."""

    def __init__(
        self,
        message: str,
        connector_type: str | None = None,
        operation: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, connector_type, operation, details)
        self.status_code = status_code


class TerminalIOError(ConnectorError):
    """Rejected request or malformed data; never retried."""

    def __init__(
        self,
        message: str,
        connector_type: str | None = None,
        operation: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, connector_type, operation, details)
        self.status_code = status_code


class RetryExhaustedError(TerminalIOError):
    """Raised when every attempt of a retry policy failed transiently."""

    def __init__(
        self,
        message: str,
        attempts: int,
        connector_type: str | None = None,
        operation: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(
            message,
            connector_type,
            operation,
            status_code,
            details={"attempts": attempts},
        )
        self.attempts = attempts


class UnsupportedOperationError(ConnectorError):
    """Raised when a connector kind does not implement a capability."""


class CheckpointError(ConnectorError):
    """Raised when a checkpoint cannot be persisted and the policy is strict."""

    def __init__(
        self,
        message: str,
        source_id: str,
        checkpoint: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, None, "persist_checkpoint", details)
        self.source_id = source_id
        self.checkpoint = checkpoint


class KafkaError(ConnectorError):
    """Raised when a Kafka operation fails."""

    def __init__(
        self,
        message: str,
        topic: str | None = None,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, "kafka", operation, details)
        self.topic = topic


class SourceError(ConnectorError):
    """Base class for failures surfaced by ``DataSource.receive``."""


class SourceEOF(SourceError):
    """No more data available right now; the caller may poll again later."""


class SupplierError(SourceError):
    """Upstream I/O or protocol failure while fetching source data."""


class NotData(SourceError):
    """Upstream reported an idle poll: no message this time, not an error."""
