"""Tests for connector spec files and templating."""

from pathlib import Path

import pytest

from ferry.core.config import ConfigManager, ConnectorScope, ConnectorSpec
from ferry.core.exceptions import ConfigurationError, TemplateError
from ferry.core.templating import TemplateEngine

SPEC_FILE = """
connectors:
  - name: orders_src
    kind: MySQL
    scope: source
    params:
      endpoint: "mysql://{{ MYSQL_HOST }}:3306"
      database: shop
      table: orders
      password: "{{ MYSQL_PASSWORD }}"
  - name: orders_kafka
    kind: kafka
    scope: sink
    params:
      topic: orders
      config: {{ KAFKA_CONFIG | to_json }}
    tags:
      team: data
"""


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    (tmp_path / "connectors.yaml").write_text(SPEC_FILE)
    (tmp_path / ".env").write_text("MYSQL_HOST=db.internal\nMYSQL_PASSWORD=s3cret\n")
    return tmp_path


@pytest.fixture
def manager(config_dir: Path) -> ConfigManager:
    return ConfigManager(config_dir=config_dir, env_file=config_dir / ".env", load_system_env=False)


class TestConfigManager:
    def test_load_connector_specs(self, manager):
        specs = manager.load_connector_specs(
            "connectors.yaml",
            extra_context={"KAFKA_CONFIG": ["acks=all"]},
        )

        source = manager.find_spec(specs, "orders_src")
        assert source.kind == "mysql"
        assert source.scope is ConnectorScope.SOURCE
        assert source.params["endpoint"] == "mysql://db.internal:3306"
        assert source.params["password"] == "s3cret"

        sink = manager.find_spec(specs, "orders_kafka")
        assert sink.params["config"] == ["acks=all"]
        assert sink.tags == {"team": "data"}

    def test_undefined_variable_is_configuration_error(self, config_dir):
        manager = ConfigManager(config_dir=config_dir, load_system_env=False)
        with pytest.raises(ConfigurationError, match="Failed to render"):
            manager.load_connector_specs("connectors.yaml")

    def test_missing_file(self, manager):
        with pytest.raises(ConfigurationError, match="not found"):
            manager.load_yaml("missing.yaml")

    def test_duplicate_names_rejected(self, tmp_path):
        (tmp_path / "dup.yaml").write_text(
            "connectors:\n"
            "  - {name: a, kind: mysql, scope: sink}\n"
            "  - {name: a, kind: doris, scope: sink}\n"
        )
        manager = ConfigManager(config_dir=tmp_path, load_system_env=False)
        with pytest.raises(ConfigurationError, match="Duplicate connector name: a"):
            manager.load_connector_specs("dup.yaml")

    def test_invalid_entry_rejected(self, tmp_path):
        (tmp_path / "bad.yaml").write_text("connectors:\n  - {name: a, kind: mysql, scope: middle}\n")
        manager = ConfigManager(config_dir=tmp_path, load_system_env=False)
        with pytest.raises(ConfigurationError) as exc_info:
            manager.load_connector_specs("bad.yaml")
        assert exc_info.value.field == "connectors[0]"

    def test_root_must_be_mapping(self, tmp_path):
        (tmp_path / "list.yaml").write_text("- a\n- b\n")
        manager = ConfigManager(config_dir=tmp_path, load_system_env=False)
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            manager.load_yaml("list.yaml")

    def test_require_env(self, manager):
        assert manager.require_env("MYSQL_HOST") == "db.internal"
        with pytest.raises(ConfigurationError):
            manager.require_env("NOPE")

    def test_find_spec_missing(self, manager):
        with pytest.raises(ConfigurationError, match="Connector not found"):
            manager.find_spec([], "x")


class TestConnectorSpec:
    def test_blank_name_rejected(self):
        with pytest.raises(ValueError):
            ConnectorSpec(name=" ", kind="mysql", scope="sink")

    def test_extra_keys_forbidden(self):
        with pytest.raises(ValueError):
            ConnectorSpec(name="a", kind="mysql", scope="sink", unknown=1)


class TestTemplateEngine:
    def test_render_with_extra_context(self):
        engine = TemplateEngine({"A": "1"})
        assert engine.render_string("{{ A }}-{{ B }}", {"B": "2"}) == "1-2"
        assert "B" not in engine.context

    def test_filters(self):
        engine = TemplateEngine()
        assert engine.render_string("{{ 'my-env' | env_upper }}") == "MY_ENV"
        assert engine.render_string("{{ '' | default_empty('x') }}") == "x"

    def test_syntax_error(self):
        with pytest.raises(TemplateError, match="syntax error"):
            TemplateEngine().render_string("{{ unclosed", template_name="t.yaml")

    def test_undefined(self):
        with pytest.raises(TemplateError) as exc_info:
            TemplateEngine().render_string("{{ missing }}", template_name="t.yaml")
        assert exc_info.value.template_name == "t.yaml"

    def test_globals(self):
        engine = TemplateEngine()
        group = engine.render_string("group-{{ uuid4() }}")
        assert len(group) == len("group-") + 36
        assert engine.render_string("{{ utcnow().tzname() }}") == "UTC"
