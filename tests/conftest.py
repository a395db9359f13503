"""
Shared fixtures for the ferry test suite.

Provides an in-memory SQL executor, a checkpoint store rooted in a temporary
directory and small record builders.
"""

from pathlib import Path
from typing import Any

import pytest

from ferry.core.checkpoint import CheckpointStore
from ferry.core.exceptions import ConnectorError
from ferry.core.metrics import ConnectorMetrics
from ferry.core.record import DataRecord


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests against a live MySQL server")


def pytest_collection_modifyitems(config, items):
    """tests/integration/** => integration, everything else => unit."""
    for item in items:
        path = str(item.fspath)
        if "/tests/integration/" in path:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


class FakeSqlExecutor:
    """
    In-memory stand-in for MysqlExecutor.

    Queries are answered from ``responses``: the first key contained in the
    SQL text selects the rows returned. Every statement is recorded.
    """

    def __init__(self, responses: dict[str, list[tuple[Any, ...]]] | None = None) -> None:
        self.responses = responses or {}
        self.queries: list[tuple[str, Any]] = []
        self.executed: list[str] = []
        self.is_open = False
        self.open_calls = 0
        self.close_calls = 0
        self.fail_execute: Exception | None = None
        self.fail_ping: Exception | None = None
        self.fail_open: Exception | None = None

    async def open(self) -> None:
        self.open_calls += 1
        if self.fail_open is not None:
            raise self.fail_open
        self.is_open = True

    async def close(self) -> None:
        self.close_calls += 1
        self.is_open = False

    async def ping(self) -> None:
        if self.fail_ping is not None:
            error, self.fail_ping = self.fail_ping, None
            raise error

    async def fetch_all(self, sql: str, args: Any = None) -> list[tuple[Any, ...]]:
        self.queries.append((sql, args))
        for key, rows in self.responses.items():
            if key in sql:
                return list(rows)
        return []

    async def execute(self, sql: str, args: Any = None) -> int:
        if self.fail_execute is not None:
            error, self.fail_execute = self.fail_execute, None
            raise error
        self.executed.append(sql)
        return 1

    @property
    def inserts(self) -> list[str]:
        return [sql for sql in self.executed if sql.startswith("INSERT")]


def columns_response(*names: str) -> dict[str, list[tuple[Any, ...]]]:
    """Responses for load_columns returning ``names``."""
    return {"information_schema.COLUMNS": [(name,) for name in names]}


@pytest.fixture
def fake_executor() -> FakeSqlExecutor:
    return FakeSqlExecutor()


@pytest.fixture
def checkpoint_dir(tmp_path: Path) -> Path:
    return tmp_path / ".checkpoints"


@pytest.fixture
def checkpoints(checkpoint_dir: Path) -> CheckpointStore:
    return CheckpointStore(checkpoint_dir)


@pytest.fixture
def metrics() -> ConnectorMetrics:
    return ConnectorMetrics()


@pytest.fixture
def people() -> tuple[DataRecord, ...]:
    return (
        DataRecord.from_dict({"id": 1, "name": "Alice", "score": "98.5"}),
        DataRecord.from_dict({"id": 2, "name": "Bob", "score": "87.0"}),
    )


@pytest.fixture
def transient_error() -> ConnectorError:
    return ConnectorError("connection lost", connector_type="mysql", operation="ping")
