"""
MySQL source and sink factories.
"""

from typing import Any, Mapping

from ferry.connectors.base import BuildContext, ConnectorDef, ConnectorFactory, source_tags
from ferry.connectors.mysql.config import EVENT_ID_COLUMN, KIND, MysqlSinkConfig, MysqlSourceConfig
from ferry.connectors.mysql.sink import MysqlSink
from ferry.connectors.mysql.source import MysqlSource
from ferry.core.config import ConnectorScope, ConnectorSpec

_CONNECTION_KEYS = ("endpoint", "database", "table", "username", "password", "batch")


class MysqlSourceFactory(ConnectorFactory[MysqlSourceConfig, MysqlSource]):
    kind = KIND
    scope = ConnectorScope.SOURCE

    def definition(self) -> ConnectorDef:
        return ConnectorDef(
            id="mysql_src",
            kind=KIND,
            scope=self.scope,
            allow_override=_CONNECTION_KEYS,
            default_params={
                "endpoint": "mysql://localhost:3306",
                "database": "wp_data",
                "table": "wp_events",
                "username": "root",
                "password": "",
                "batch": 1024,
            },
        )

    def parse(self, params: Mapping[str, Any]) -> MysqlSourceConfig:
        return MysqlSourceConfig.from_params(params)

    def create(self, spec: ConnectorSpec, config: MysqlSourceConfig, ctx: BuildContext) -> MysqlSource:
        return MysqlSource(
            config,
            spec.name,
            checkpoints=ctx.checkpoint_store(),
            metrics=ctx.metrics,
            tags=source_tags(spec),
        )


class MysqlSinkFactory(ConnectorFactory[MysqlSinkConfig, MysqlSink]):
    kind = KIND
    scope = ConnectorScope.SINK

    def definition(self) -> ConnectorDef:
        return ConnectorDef(
            id="mysql_sink",
            kind=KIND,
            scope=self.scope,
            allow_override=_CONNECTION_KEYS + ("columns",),
            default_params={
                "endpoint": "mysql://localhost:3306",
                "database": "wp_data",
                "table": "wp_events",
                "username": "root",
                "password": "",
                "batch": 1000,
                "columns": [EVENT_ID_COLUMN, "payload"],
            },
        )

    def parse(self, params: Mapping[str, Any]) -> MysqlSinkConfig:
        return MysqlSinkConfig.from_params(params)

    def create(self, spec: ConnectorSpec, config: MysqlSinkConfig, ctx: BuildContext) -> MysqlSink:
        return MysqlSink(config, spec.name, metrics=ctx.metrics, tags=dict(spec.tags))
