"""Tests for the batched SQL sinks (MySQL and Doris) against a fake executor."""

import pytest

from ferry.connectors.doris.config import DorisSinkConfig
from ferry.connectors.doris.sink import DorisSink
from ferry.connectors.mysql.config import MysqlSinkConfig
from ferry.connectors.mysql.sink import MysqlSink
from ferry.core.base import ConnectorState
from ferry.core.exceptions import (
    ConnectorConnectionError,
    ConnectorError,
    SchemaError,
    TransientIOError,
    UnsupportedOperationError,
)
from ferry.core.record import DataRecord
from ferry.core.sql import unescape_sql_string
from tests.conftest import FakeSqlExecutor, columns_response


def mysql_config(**overrides) -> MysqlSinkConfig:
    params = {
        "endpoint": "mysql://db.local:3307",
        "database": "shop",
        "table": "people",
        "batch": 3,
    }
    params.update(overrides)
    return MysqlSinkConfig.from_params(params)


async def connected_sink(executor: FakeSqlExecutor, **overrides) -> MysqlSink:
    sink = MysqlSink(mysql_config(**overrides), "people_sink", executor=executor)
    await sink.connect()
    return sink


@pytest.fixture
def executor() -> FakeSqlExecutor:
    return FakeSqlExecutor(columns_response("id", "name", "score"))


class TestMysqlSink:
    @pytest.mark.asyncio
    async def test_connect_introspects_columns(self, executor):
        sink = await connected_sink(executor)
        assert sink.schema.column_order == ("id", "name", "score")
        assert executor.open_calls == 1

    @pytest.mark.asyncio
    async def test_explicit_columns_skip_introspection(self, executor):
        sink = await connected_sink(executor, columns=["payload"])
        assert sink.schema.column_order == ("payload", "wp_event_id")
        assert executor.queries == []

    @pytest.mark.asyncio
    async def test_table_defaults_to_sink_name(self, executor):
        config = mysql_config(table=None)
        sink = MysqlSink(config, "fallback", executor=executor)
        await sink.connect()
        assert sink.table == "fallback"

    @pytest.mark.asyncio
    async def test_two_records_one_insert(self, executor, people):
        sink = await connected_sink(executor)

        await sink.sink_records(people)

        assert executor.inserts == [
            "INSERT INTO `people` (`id`, `name`, `score`) VALUES "
            "('1', 'Alice', '98.5'), ('2', 'Bob', '87.0')"
        ]

    @pytest.mark.asyncio
    async def test_apostrophe_round_trip(self, executor):
        sink = await connected_sink(executor)

        await sink.sink_records([DataRecord.from_dict({"id": 3, "name": "O'Reilly"})])

        insert = executor.inserts[0]
        assert "'O''Reilly'" in insert
        assert unescape_sql_string("O''Reilly") == "O'Reilly"

    @pytest.mark.asyncio
    async def test_records_without_columns_skipped(self, executor):
        sink = await connected_sink(executor)
        await sink.sink_records([DataRecord.from_dict({"unknown": 1})])
        assert executor.inserts == []

    @pytest.mark.asyncio
    async def test_sink_record_buffers_until_batch(self, executor):
        sink = await connected_sink(executor)

        await sink.sink_record(DataRecord.from_dict({"id": 1}))
        await sink.sink_record(DataRecord.from_dict({"id": 2}))
        assert executor.inserts == []
        assert sink.pending == 2

        await sink.sink_record(DataRecord.from_dict({"id": 3}))
        assert len(executor.inserts) == 1
        assert sink.pending == 0

    @pytest.mark.asyncio
    async def test_sink_records_includes_pending(self, executor, people):
        sink = await connected_sink(executor)
        await sink.sink_record(DataRecord.from_dict({"id": 0, "name": "Zero"}))

        await sink.sink_records(people)

        assert len(executor.inserts) == 1
        assert executor.inserts[0].index("'Zero'") < executor.inserts[0].index("'Alice'")
        assert sink.pending == 0

    @pytest.mark.asyncio
    async def test_failed_flush_keeps_pending(self, executor):
        sink = await connected_sink(executor)
        await sink.sink_record(DataRecord.from_dict({"id": 1}))
        executor.fail_execute = TransientIOError("gone away", "mysql", "execute")

        with pytest.raises(TransientIOError):
            await sink.flush()
        assert sink.pending == 1

        await sink.flush()
        assert len(executor.inserts) == 1
        assert sink.pending == 0

    @pytest.mark.asyncio
    async def test_stop_flushes_and_is_idempotent(self, executor):
        sink = await connected_sink(executor)
        await sink.sink_record(DataRecord.from_dict({"id": 1}))

        await sink.stop()
        await sink.stop()

        assert len(executor.inserts) == 1
        assert executor.close_calls == 1
        assert sink.state == ConnectorState.STOPPED

    @pytest.mark.asyncio
    async def test_raw_writes_rejected(self, executor):
        sink = await connected_sink(executor)
        with pytest.raises(UnsupportedOperationError, match="mysql sink does not accept raw input"):
            await sink.sink_str("raw")
        with pytest.raises(UnsupportedOperationError):
            await sink.sink_bytes_batch([b"raw"])

    @pytest.mark.asyncio
    async def test_reconnect_reopens_pool_after_failed_ping(self, executor, transient_error):
        sink = await connected_sink(executor)
        executor.fail_ping = transient_error

        await sink.reconnect()

        assert executor.close_calls == 1
        assert executor.open_calls == 2
        assert sink.is_connected

    @pytest.mark.asyncio
    async def test_reconnect_failure_is_connection_error(self, executor, transient_error):
        sink = await connected_sink(executor)
        executor.fail_ping = transient_error
        executor.fail_open = ConnectorConnectionError("refused", "mysql", "connect")

        with pytest.raises(ConnectorConnectionError):
            await sink.reconnect()
        assert sink.state == ConnectorState.ERROR

    @pytest.mark.asyncio
    async def test_stop_after_failed_reconnect_flushes(self, executor, transient_error):
        sink = await connected_sink(executor)
        await sink.sink_record(DataRecord.from_dict({"id": 1}))
        executor.fail_ping = transient_error
        executor.fail_open = ConnectorConnectionError("refused", "mysql", "connect")
        with pytest.raises(ConnectorConnectionError):
            await sink.reconnect()

        await sink.stop()

        assert len(executor.inserts) == 1
        assert sink.pending == 0
        assert sink.state == ConnectorState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_reports_unwritten_rows(self, executor, transient_error):
        sink = await connected_sink(executor)
        await sink.sink_record(DataRecord.from_dict({"id": 1}))
        executor.fail_ping = transient_error
        executor.fail_open = ConnectorConnectionError("refused", "mysql", "connect")
        with pytest.raises(ConnectorConnectionError):
            await sink.reconnect()
        executor.fail_execute = TransientIOError("gone away", "mysql", "execute")

        with pytest.raises(TransientIOError):
            await sink.stop()

        assert executor.inserts == []
        assert sink.pending == 0
        assert sink.state == ConnectorState.STOPPED
        assert executor.close_calls == 2

    @pytest.mark.asyncio
    async def test_stop_after_disconnect_reports_pending(self, executor):
        sink = await connected_sink(executor)
        await sink.sink_record(DataRecord.from_dict({"id": 1}))
        await sink.disconnect()

        with pytest.raises(ConnectorError, match="stopped with 1 unwritten rows"):
            await sink.stop()

        assert executor.inserts == []
        assert sink.is_stopped
        await sink.stop()

    @pytest.mark.asyncio
    async def test_schema_requires_connection(self, executor):
        sink = MysqlSink(mysql_config(), "people_sink", executor=executor)
        with pytest.raises(ConnectorError):
            sink.schema

    @pytest.mark.asyncio
    async def test_metrics_count_written_records(self, executor, people, metrics):
        sink = MysqlSink(mysql_config(), "people_sink", metrics=metrics, executor=executor)
        await sink.connect()
        await sink.sink_records(people)
        assert metrics.stats_for("mysql", "people_sink").records_written == 2


def doris_config(**overrides) -> DorisSinkConfig:
    params = {
        "endpoint": "mysql://doris.local:9030",
        "database": "wp_data",
        "table": "events",
        "user": "loader",
        "create_table": "CREATE TABLE {table} (id INT, msg STRING)",
    }
    params.update(overrides)
    return DorisSinkConfig.from_params(params)


class TestDorisSink:
    @pytest.mark.asyncio
    async def test_connect_prepares_database_and_table(self):
        admin = FakeSqlExecutor()
        executor = FakeSqlExecutor({
            "information_schema.TABLES": [(0,)],
            "information_schema.COLUMNS": [("id",), ("msg",)],
        })
        sink = DorisSink(doris_config(), "events_doris", executor=executor, admin_executor=admin)

        await sink.connect()

        assert admin.executed == ["CREATE DATABASE IF NOT EXISTS `wp_data`"]
        assert admin.close_calls == 1
        assert executor.executed == ["CREATE TABLE events (id INT, msg STRING)"]
        assert sink.schema.quoted_table == "`wp_data`.`events`"

        await sink.sink_records([DataRecord.from_dict({"id": 1, "msg": "it's"})])
        assert executor.inserts == [
            "INSERT INTO `wp_data`.`events` (`id`, `msg`) VALUES ('1', 'it''s')"
        ]

    @pytest.mark.asyncio
    async def test_missing_table_without_template_fails(self):
        executor = FakeSqlExecutor({"information_schema.TABLES": [(0,)]})
        sink = DorisSink(
            doris_config(create_table=None),
            "events_doris",
            executor=executor,
            admin_executor=FakeSqlExecutor(),
        )

        with pytest.raises(SchemaError):
            await sink.connect()
        assert sink.state == ConnectorState.ERROR

    def test_user_and_pool_parameters(self):
        config = doris_config(pool=4)
        assert config.connection.username == "loader"
        assert config.connection.pool_size == 4
        assert config.connection.port == 9030
