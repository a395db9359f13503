"""Tests for MySQL configuration, the paging statement and MysqlSource."""

import pytest
from pydantic import SecretStr

from ferry.connectors.mysql.config import (
    MysqlConnectionSettings,
    MysqlSinkConfig,
    MysqlSourceConfig,
    parse_endpoint,
)
from ferry.connectors.mysql.source import MysqlSource, build_select_statement
from ferry.core.exceptions import ConfigurationError, SchemaError, SourceEOF, SupplierError, TerminalIOError
from tests.conftest import FakeSqlExecutor

SOURCE_PARAMS = {
    "endpoint": "mysql://db.local:3307",
    "database": "shop",
    "table": "orders",
    "username": "reader",
    "password": "pw",
    "batch": 2,
}


class TestEndpoint:
    def test_scheme_optional(self):
        assert parse_endpoint("db.local") == ("db.local", 3306)
        assert parse_endpoint("mysql://db.local:3310") == ("db.local", 3310)

    def test_missing_host(self):
        with pytest.raises(ConfigurationError, match="mysql.endpoint must include a host"):
            parse_endpoint("mysql://:3306")

    def test_bad_port(self):
        with pytest.raises(ConfigurationError, match="mysql.endpoint is invalid"):
            parse_endpoint("mysql://db:notaport")


class TestMysqlConfig:
    def test_aiomysql_config(self):
        settings = MysqlSourceConfig.from_params(SOURCE_PARAMS).connection
        config = settings.to_aiomysql_config()

        assert config["host"] == "db.local"
        assert config["port"] == 3307
        assert config["user"] == "reader"
        assert config["password"] == "pw"
        assert config["db"] == "shop"
        assert config["charset"] == "utf8mb4"
        assert config["autocommit"] is True

    def test_without_database(self):
        settings = MysqlConnectionSettings(
            endpoint="x",
            host="x",
            password=SecretStr("p"),
            database="d",
            pool_size=10,
        )
        bare = settings.without_database()
        assert "db" not in bare.to_aiomysql_config()
        assert bare.pool_size == 1

    @pytest.mark.parametrize("missing", ["endpoint", "database", "table"])
    def test_source_required(self, missing):
        params = {**SOURCE_PARAMS, missing: ""}
        with pytest.raises(ConfigurationError, match=f"mysql.{missing} must not be empty"):
            MysqlSourceConfig.from_params(params)

    def test_sink_columns_get_event_id(self):
        config = MysqlSinkConfig.from_params({**SOURCE_PARAMS, "columns": ["payload"]})
        assert config.columns == ("payload", "wp_event_id")

    def test_sink_empty_columns_means_introspect(self):
        config = MysqlSinkConfig.from_params({**SOURCE_PARAMS, "columns": []})
        assert config.columns is None

    def test_password_hidden_in_repr(self):
        config = MysqlSourceConfig.from_params(SOURCE_PARAMS)
        assert "pw" not in repr(config.connection.password)


class TestSelectStatement:
    def test_json_object_with_base64_blobs(self):
        sql = build_select_statement(
            "orders",
            [("id", "int"), ("body", "BLOB"), ("it's", "varchar")],
            100,
        )
        assert sql == (
            "SELECT CAST(JSON_OBJECT('id', `id`, 'body', TO_BASE64(`body`), 'it''s', `it's`) "
            "AS CHAR CHARACTER SET utf8mb4) FROM `orders` LIMIT 100 OFFSET %s"
        )


def source_executor(rows: list[str]) -> FakeSqlExecutor:
    executor = FakeSqlExecutor()
    executor.rows = rows

    async def fetch_all(sql, args=None):
        executor.queries.append((sql, args))
        if "INFORMATION_SCHEMA" in sql:
            return [("id", "int"), ("name", "varchar")]
        offset = args[0]
        return [(row,) for row in executor.rows[offset:offset + 2]]

    executor.fetch_all = fetch_all
    return executor


class TestMysqlSource:
    @pytest.mark.asyncio
    async def test_pages_with_checkpoint_offset(self, checkpoints):
        executor = source_executor(['{"id": 1}', '{"id": 2}', '{"id": 3}'])
        source = MysqlSource(MysqlSourceConfig.from_params(SOURCE_PARAMS), "orders_src", checkpoints, executor=executor)
        await source.connect()

        first = await source.receive()
        second = await source.receive()
        with pytest.raises(SourceEOF):
            await source.receive()

        assert [event.payload for event in first + second] == ['{"id": 1}', '{"id": 2}', '{"id": 3}']
        assert [sql_args[1] for sql_args in executor.queries[1:]] == [(0,), (2,), (3,)]
        assert source.statement.endswith("LIMIT 2 OFFSET %s")
        assert source.checkpoint == 3

    @pytest.mark.asyncio
    async def test_columns_query_is_parameterized(self, checkpoints):
        executor = source_executor([])
        source = MysqlSource(MysqlSourceConfig.from_params(SOURCE_PARAMS), "orders_src", checkpoints, executor=executor)
        await source.connect()

        sql, args = executor.queries[0]
        assert "ORDER BY ORDINAL_POSITION" in sql
        assert args == ("shop", "orders")

    @pytest.mark.asyncio
    async def test_missing_table_fails_connect(self, checkpoints):
        executor = FakeSqlExecutor()
        source = MysqlSource(MysqlSourceConfig.from_params(SOURCE_PARAMS), "orders_src", checkpoints, executor=executor)
        with pytest.raises(SchemaError):
            await source.connect()

    @pytest.mark.asyncio
    async def test_driver_error_is_supplier_error(self, checkpoints):
        executor = source_executor([])
        source = MysqlSource(MysqlSourceConfig.from_params(SOURCE_PARAMS), "orders_src", checkpoints, executor=executor)
        await source.connect()

        async def broken(sql, args=None):
            raise TerminalIOError("mysql query fail: syntax", "mysql", "query")

        executor.fetch_all = broken
        with pytest.raises(SupplierError, match="offset 0"):
            await source.receive()
