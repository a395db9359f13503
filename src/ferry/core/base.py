"""
Connector lifecycle shared by every source and sink.

Provides:
- ConnectorState, the lifecycle states a connector moves through
- ConnectorMetadata, identity, tags and activity timestamps
- AbstractConnector, idempotent connect/disconnect around subclass hooks
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Self

import structlog

from ferry.core.metrics import MetricsSink, NullMetrics

logger = structlog.get_logger()


class ConnectorState(Enum):
    """Lifecycle state of a connector."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class ConnectorMetadata:
    """Identity of a connector instance plus its activity timestamps."""

    connector_type: str
    name: str
    created_at: datetime = field(default_factory=datetime.now)
    connected_at: datetime | None = None
    last_activity: datetime | None = None
    tags: dict[str, str] = field(default_factory=dict)


class AbstractConnector(ABC):
    """
    Base class for sources and sinks.

    ``connect`` is a no-op on a connected instance and ``disconnect`` is a
    no-op on a disconnected or stopped one, so both may be called again
    during cleanup. A failing hook leaves the connector in ERROR with the
    exception kept in ``last_error``.

    Subclasses must implement:
    - _do_connect(): Open sessions and prepare the target
    - _do_disconnect(): Release everything _do_connect acquired
    - _do_health_check(): Cheap liveness probe

    Usage:
        async with MysqlSink(config, "orders") as sink:
            await sink.sink_records(batch)
    """

    def __init__(
        self,
        connector_type: str,
        name: str,
        metrics: MetricsSink | None = None,
        tags: dict[str, str] | None = None,
    ) -> None:
        self._state = ConnectorState.DISCONNECTED
        self._metadata = ConnectorMetadata(
            connector_type=connector_type,
            name=name,
            tags=dict(tags or {}),
        )
        self._metrics = metrics or NullMetrics()
        self._error: Exception | None = None

    @property
    def connector_type(self) -> str:
        return self._metadata.connector_type

    @property
    def name(self) -> str:
        return self._metadata.name

    @property
    def state(self) -> ConnectorState:
        return self._state

    @property
    def metadata(self) -> ConnectorMetadata:
        return self._metadata

    @property
    def metrics(self) -> MetricsSink:
        return self._metrics

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectorState.CONNECTED

    @property
    def last_error(self) -> Exception | None:
        """Exception raised by the last failed lifecycle hook."""
        return self._error

    async def connect(self) -> None:
        """
        Open the connector.

        Raises:
            ConnectorError: If the target cannot be reached or prepared.
        """
        if self._state == ConnectorState.CONNECTED:
            return

        self._state = ConnectorState.CONNECTING
        self._error = None

        try:
            await self._do_connect()
        except Exception as e:
            self._state = ConnectorState.ERROR
            self._error = e
            raise

        self._state = ConnectorState.CONNECTED
        self._metadata.connected_at = datetime.now()
        logger.debug("connector_connected", connector_type=self.connector_type, name=self.name)

    async def disconnect(self) -> None:
        """
        Release the connector's sessions.

        Raises:
            ConnectorError: If releasing fails.
        """
        if self._state in (ConnectorState.DISCONNECTED, ConnectorState.STOPPED):
            return

        self._state = ConnectorState.DISCONNECTING

        try:
            await self._do_disconnect()
        except Exception as e:
            self._state = ConnectorState.ERROR
            self._error = e
            raise

        self._state = ConnectorState.DISCONNECTED

    async def health_check(self) -> bool:
        """False when not connected or when the probe raises."""
        if self._state != ConnectorState.CONNECTED:
            return False

        try:
            result = await self._do_health_check()
        except Exception as e:
            logger.warning(
                "health_check_failed",
                connector_type=self.connector_type,
                name=self.name,
                error=str(e),
            )
            return False

        self._touch()
        return result

    async def reconnect(self) -> None:
        """Tear down the current session and open a new one from the same config."""
        await self.disconnect()
        await self.connect()

    def _touch(self) -> None:
        self._metadata.last_activity = datetime.now()

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.disconnect()

    @abstractmethod
    async def _do_connect(self) -> None:
        """
        Raises:
            ConnectorError: If connecting fails.
        """
        ...

    @abstractmethod
    async def _do_disconnect(self) -> None:
        ...

    @abstractmethod
    async def _do_health_check(self) -> bool:
        ...
