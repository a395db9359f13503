"""
Connector metrics.

Provides:
- A MetricsSink protocol injected into sources, sinks and the checkpoint store
- ConnectorMetrics, backed by a caller-owned prometheus CollectorRegistry
- Per-connector totals and a rich console summary
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Protocol, runtime_checkable

import structlog
from prometheus_client import CollectorRegistry, Counter, Histogram
from rich.console import Console
from rich.table import Table

logger = structlog.get_logger()


@runtime_checkable
class MetricsSink(Protocol):
    """Observations a connector reports. Implementations must not raise."""

    def events_received(self, connector_type: str, name: str, count: int) -> None:
        ...

    def records_written(self, connector_type: str, name: str, count: int) -> None:
        ...

    def write_failed(self, connector_type: str, name: str) -> None:
        ...

    def retry_attempted(self, connector_type: str, operation: str) -> None:
        ...

    def checkpoint_failed(self, source_id: str) -> None:
        ...

    def track_write(self, connector_type: str, name: str) -> Any:
        """Async context manager timing one write round trip."""
        ...


class NullMetrics:
    """MetricsSink that records nothing."""

    def events_received(self, connector_type: str, name: str, count: int) -> None:
        pass

    def records_written(self, connector_type: str, name: str, count: int) -> None:
        pass

    def write_failed(self, connector_type: str, name: str) -> None:
        pass

    def retry_attempted(self, connector_type: str, operation: str) -> None:
        pass

    def checkpoint_failed(self, source_id: str) -> None:
        pass

    @asynccontextmanager
    async def track_write(self, connector_type: str, name: str) -> AsyncIterator[None]:
        yield


@dataclass
class ConnectorStats:
    """Running totals for one connector instance."""

    connector_type: str
    name: str
    events_received: int = 0
    records_written: int = 0
    write_failures: int = 0
    writes: int = 0
    write_time_ms: float = 0.0
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def average_write_ms(self) -> float:
        """Average duration of a write round trip."""
        if self.writes == 0:
            return 0.0
        return self.write_time_ms / self.writes

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "connector_type": self.connector_type,
            "name": self.name,
            "events_received": self.events_received,
            "records_written": self.records_written,
            "write_failures": self.write_failures,
            "writes": self.writes,
            "average_write_ms": self.average_write_ms,
            "started_at": self.started_at.isoformat(),
        }


class ConnectorMetrics:
    """
    Prometheus-backed MetricsSink.

    Construct once at process start and pass it to every connector; the
    registry is owned by this object rather than the prometheus default
    registry, so several instances can coexist (e.g. in tests).

    Usage:
        metrics = ConnectorMetrics()
        sink = await build_sink(spec, metrics=metrics)
        ...
        metrics.print_summary()
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        namespace: str = "ferry",
    ) -> None:
        self._registry = registry or CollectorRegistry()
        self._stats: dict[tuple[str, str], ConnectorStats] = {}
        self._retries: dict[tuple[str, str], int] = {}
        self._checkpoint_failures: dict[str, int] = {}
        self._console = Console()

        self._events_received = Counter(
            "events_received_total",
            "Events handed to the pipeline by sources",
            ["connector_type", "name"],
            namespace=namespace,
            registry=self._registry,
        )
        self._records_written = Counter(
            "records_written_total",
            "Records persisted by sinks",
            ["connector_type", "name"],
            namespace=namespace,
            registry=self._registry,
        )
        self._write_failures = Counter(
            "write_failures_total",
            "Sink writes that raised",
            ["connector_type", "name"],
            namespace=namespace,
            registry=self._registry,
        )
        self._retry_attempts = Counter(
            "retry_attempts_total",
            "Retries performed after transient failures",
            ["connector_type", "operation"],
            namespace=namespace,
            registry=self._registry,
        )
        self._checkpoint_failures_total = Counter(
            "checkpoint_persist_failures_total",
            "Checkpoint writes that failed",
            ["source_id"],
            namespace=namespace,
            registry=self._registry,
        )
        self._write_duration = Histogram(
            "write_duration_seconds",
            "Sink write round-trip duration in seconds",
            ["connector_type"],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
            namespace=namespace,
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def stats_for(self, connector_type: str, name: str) -> ConnectorStats:
        """Running totals for one connector, created on first use."""
        key = (connector_type, name)
        if key not in self._stats:
            self._stats[key] = ConnectorStats(connector_type=connector_type, name=name)
        return self._stats[key]

    @property
    def all_stats(self) -> list[ConnectorStats]:
        return list(self._stats.values())

    def retries(self, connector_type: str, operation: str) -> int:
        return self._retries.get((connector_type, operation), 0)

    def checkpoint_failures(self, source_id: str) -> int:
        return self._checkpoint_failures.get(source_id, 0)

    def events_received(self, connector_type: str, name: str, count: int) -> None:
        self._events_received.labels(connector_type, name).inc(count)
        self.stats_for(connector_type, name).events_received += count

    def records_written(self, connector_type: str, name: str, count: int) -> None:
        self._records_written.labels(connector_type, name).inc(count)
        self.stats_for(connector_type, name).records_written += count

    def write_failed(self, connector_type: str, name: str) -> None:
        self._write_failures.labels(connector_type, name).inc()
        self.stats_for(connector_type, name).write_failures += 1

    def retry_attempted(self, connector_type: str, operation: str) -> None:
        self._retry_attempts.labels(connector_type, operation).inc()
        key = (connector_type, operation)
        self._retries[key] = self._retries.get(key, 0) + 1

    def checkpoint_failed(self, source_id: str) -> None:
        self._checkpoint_failures_total.labels(source_id).inc()
        self._checkpoint_failures[source_id] = self._checkpoint_failures.get(source_id, 0) + 1

    @asynccontextmanager
    async def track_write(self, connector_type: str, name: str) -> AsyncIterator[None]:
        """
        Time a single write round trip.

        Args:
            connector_type: Connector kind label.
            name: Connector instance name.
        """
        stats = self.stats_for(connector_type, name)
        start = datetime.now()
        try:
            yield
        except Exception:
            self.write_failed(connector_type, name)
            raise
        finally:
            elapsed = (datetime.now() - start).total_seconds()
            self._write_duration.labels(connector_type).observe(elapsed)
            stats.writes += 1
            stats.write_time_ms += elapsed * 1000

            logger.debug(
                "write_complete",
                connector_type=connector_type,
                name=name,
                duration_ms=elapsed * 1000,
            )

    def print_summary(self) -> None:
        """Print a per-connector summary table to console."""
        self._console.print("\n[bold cyan]Connector Summary[/bold cyan]")
        table = Table(show_header=True)
        table.add_column("Connector")
        table.add_column("Kind")
        table.add_column("Received", justify="right")
        table.add_column("Written", justify="right")
        table.add_column("Failed", justify="right")
        table.add_column("Avg write (ms)", justify="right")

        for (_, _), stats in sorted(self._stats.items()):
            table.add_row(
                stats.name,
                stats.connector_type,
                str(stats.events_received),
                str(stats.records_written),
                str(stats.write_failures),
                f"{stats.average_write_ms:.2f}",
            )

        self._console.print(table)

        if self._checkpoint_failures:
            self._console.print("[red]Checkpoint persist failures:[/red]")
            for source_id, count in sorted(self._checkpoint_failures.items()):
                self._console.print(f"  {source_id}: {count}")
