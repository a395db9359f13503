"""
Schema cache for SQL sinks.

The column order of a target table is introspected once when a connector is
built and reused for every INSERT it emits. The cache is never refreshed: a
schema change on the external table is only observed after the connector
is rebuilt.
"""

from dataclasses import dataclass
from typing import Any, Protocol, Sequence, runtime_checkable

import structlog

from ferry.core.exceptions import SchemaError
from ferry.core.record import DataRecord
from ferry.core.sql import escape_sql_string, quote_identifier, sql_literal

logger = structlog.get_logger()


@runtime_checkable
class SqlExecutor(Protocol):
    """Minimal async surface a SQL connector exposes to the schema layer."""

    async def fetch_all(self, sql: str) -> list[tuple[Any, ...]]:
        """Run a query and return every row."""
        ...

    async def execute(self, sql: str) -> int:
        """Run a statement and return the affected row count."""
        ...


async def load_columns(
    executor: SqlExecutor,
    database: str,
    table: str,
    connector_type: str | None = None,
) -> list[str]:
    """
    Read the ordered column list of ``database.table``.

    Args:
        executor: Connection to run the introspection query on.
        database: Schema name.
        table: Table name.
        connector_type: Connector kind used in error messages.

    Returns:
        Column names ordered by ordinal position.

    Raises:
        SchemaError: If the table has no columns or does not exist.
    """
    sql = (
        "SELECT COLUMN_NAME FROM information_schema.COLUMNS "
        f"WHERE TABLE_SCHEMA='{escape_sql_string(database)}' "
        f"AND TABLE_NAME='{escape_sql_string(table)}' "
        "ORDER BY ORDINAL_POSITION"
    )
    rows = await executor.fetch_all(sql)
    columns = [str(row[0]) for row in rows]
    if not columns:
        raise SchemaError(
            f"{connector_type or 'sql'}.table `{table}` has no columns",
            connector_type=connector_type,
            table=table,
            details={"database": database},
        )

    logger.debug(
        "schema_columns_loaded",
        connector_type=connector_type,
        database=database,
        table=table,
        columns=columns,
    )
    return columns


async def ensure_table_exists(
    executor: SqlExecutor,
    database: str,
    table: str,
    create_template: str | None = None,
    connector_type: str | None = None,
) -> bool:
    """
    Make sure ``database.table`` exists, creating it from a template.

    The template is trusted operator input: ``{table}`` is replaced with the
    table name and the result is executed verbatim.

    Returns:
        True if the table had to be created.

    Raises:
        SchemaError: If the table is missing and no template was supplied.
    """
    sql = (
        "SELECT COUNT(1) AS cnt FROM information_schema.TABLES "
        f"WHERE TABLE_SCHEMA='{escape_sql_string(database)}' "
        f"AND TABLE_NAME='{escape_sql_string(table)}'"
    )
    rows = await executor.fetch_all(sql)
    if rows and int(rows[0][0]) > 0:
        return False

    if not create_template:
        raise SchemaError(
            f"{connector_type or 'sql'}.table `{table}` not found and "
            "create_table statement not provided",
            connector_type=connector_type,
            table=table,
            details={"database": database},
        )

    await executor.execute(create_template.replace("{table}", table))
    logger.info(
        "schema_table_created",
        connector_type=connector_type,
        database=database,
        table=table,
    )
    return True


async def create_database_if_missing(executor: SqlExecutor, database: str) -> None:
    """Run ``CREATE DATABASE IF NOT EXISTS`` for ``database``."""
    await executor.execute(f"CREATE DATABASE IF NOT EXISTS {quote_identifier(database)}")


@dataclass(frozen=True)
class TableSchema:
    """
    Cached column order of a write target.

    Builds the value tuples and the single multi-row INSERT used by every
    structured SQL sink.
    """

    quoted_table: str
    column_order: tuple[str, ...]
    quoted_columns: tuple[str, ...]
    column_set: frozenset[str]

    @classmethod
    def from_columns(cls, table: str, columns: Sequence[str]) -> "TableSchema":
        """
        Build a schema for ``table`` (optionally ``schema.table``).

        Raises:
            SchemaError: If ``columns`` is empty.
        """
        if not columns:
            raise SchemaError(f"table `{table}` has no columns", table=table)
        order = tuple(columns)
        return cls(
            quoted_table=quote_identifier(table),
            column_order=order,
            quoted_columns=tuple(quote_identifier(name) for name in order),
            column_set=frozenset(order),
        )

    def insert_prefix(self) -> str:
        return f"INSERT INTO {self.quoted_table} ({', '.join(self.quoted_columns)}) VALUES "

    def format_values_tuple(self, record: DataRecord) -> str | None:
        """
        Render one record as ``('v1', NULL, ...)`` in cached column order.

        Fields tagged IGNORE and fields unknown to the cache are skipped.
        Columns with no field, and fields holding None, are written as NULL.

        Returns:
            The tuple text, or None when the record has no known column.
        """
        field_map: dict[str, str | None] = {}
        for item in record.visible():
            if item.name in self.column_set and item.name not in field_map:
                field_map[item.name] = None if item.value is None else item.render()
        if not field_map:
            return None

        values = [sql_literal(field_map.get(column)) for column in self.column_order]
        return f"({', '.join(values)})"

    def build_insert(self, tuples: Sequence[str]) -> str | None:
        """Join value tuples under one INSERT; None when there is nothing to write."""
        if not tuples:
            return None
        return self.insert_prefix() + ", ".join(tuples)
