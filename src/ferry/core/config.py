"""
Connector spec files with Jinja templating and .env integration.

Provides:
- ConnectorSpec, the validated description of one connector instance
- ConfigManager, loading YAML spec files rendered against the environment
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ferry.core.exceptions import ConfigurationError, TemplateError
from ferry.core.templating import TemplateEngine


class ConnectorScope(str, Enum):
    """Which side of a pipeline a connector serves."""

    SOURCE = "source"
    SINK = "sink"


class ConnectorSpec(BaseModel):
    """
    One connector instance as declared in a spec file.

    ``params`` is the flat parameter map validated by the connector kind's
    factory at build time.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(description="Instance name; also the checkpoint identifier for sources")
    kind: str = Field(description="Connector kind, e.g. mysql or kafka")
    scope: ConnectorScope = Field(description="source or sink")
    params: dict[str, Any] = Field(default_factory=dict, description="Kind-specific parameters")
    tags: dict[str, str] = Field(default_factory=dict, description="Labels attached to events")

    @field_validator("name", "kind")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("kind")
    @classmethod
    def normalize_kind(cls, v: str) -> str:
        return v.lower()


class ConfigManager:
    """
    Load connector specs from YAML with environment variable substitution.

    The template context is the process environment overlaid by the
    optional ``.env`` file. Variables are referenced as ``{{ NAME }}``.

    Usage:
        manager = ConfigManager(config_dir=Path("config"), env_file=Path(".env"))
        specs = manager.load_connector_specs("connectors.yaml")
        sink_spec = manager.find_spec(specs, "orders_sink")
    """

    def __init__(
        self,
        config_dir: Path | None = None,
        env_file: Path | None = None,
        load_system_env: bool = True,
    ) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_dir: Directory relative paths are resolved against.
            env_file: Path to .env file.
            load_system_env: Whether to include process environment variables.
        """
        self._config_dir = config_dir or Path("config")
        self._env_file = env_file
        self._env_vars: dict[str, str] = {}
        self._load_environment_variables(load_system_env)
        self._template_engine = TemplateEngine(self._env_vars)

    def _load_environment_variables(self, load_system_env: bool) -> None:
        if load_system_env:
            self._env_vars.update(os.environ)
        if self._env_file and self._env_file.exists():
            self._env_vars.update(
                {key: value for key, value in dotenv_values(self._env_file).items() if value is not None}
            )

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    @property
    def env_vars(self) -> dict[str, str]:
        """Get loaded environment variables (copy)."""
        return self._env_vars.copy()

    @property
    def template_engine(self) -> TemplateEngine:
        return self._template_engine

    def get_env(self, key: str, default: str | None = None) -> str | None:
        return self._env_vars.get(key, default)

    def require_env(self, key: str) -> str:
        """
        Get a required environment variable.

        Raises:
            ConfigurationError: If variable not found.
        """
        value = self._env_vars.get(key)
        if value is None:
            raise ConfigurationError(
                f"Required environment variable not found: {key}",
                details={"variable": key},
            )
        return value

    def load_yaml(
        self,
        file_path: Path | str,
        extra_context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Load a YAML file after Jinja rendering.

        Args:
            file_path: Path to the YAML file (relative to config_dir or absolute).
            extra_context: Additional context for rendering.

        Returns:
            Parsed YAML content as dictionary.

        Raises:
            ConfigurationError: If the file is missing, fails to render or parse.
        """
        path = self._resolve_path(file_path)

        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                config_path=str(path),
            ) from e

        try:
            rendered = self._template_engine.render_string(
                content, extra_context, template_name=str(path)
            )
            data = yaml.safe_load(rendered)
        except TemplateError as e:
            raise ConfigurationError(
                f"Failed to render configuration: {e.message}",
                config_path=str(path),
            ) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML: {e}",
                config_path=str(path),
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                "Configuration root must be a mapping",
                config_path=str(path),
            )
        return data

    def load_connector_specs(
        self,
        file_path: Path | str,
        extra_context: dict[str, Any] | None = None,
    ) -> list[ConnectorSpec]:
        """
        Load every connector declared under the ``connectors`` key.

        Example file:

            connectors:
              - name: orders_sink
                kind: mysql
                scope: sink
                params:
                  endpoint: "mysql://{{ MYSQL_HOST }}:3306"
                  database: shop
                  table: orders

        Raises:
            ConfigurationError: If the file is invalid, a spec fails
                validation, or two specs share a name.
        """
        data = self.load_yaml(file_path, extra_context)
        entries = data.get("connectors") or []
        if not isinstance(entries, list):
            raise ConfigurationError(
                "'connectors' must be a list",
                config_path=str(file_path),
                field="connectors",
            )

        specs: list[ConnectorSpec] = []
        seen: set[str] = set()
        for index, entry in enumerate(entries):
            try:
                spec = ConnectorSpec.model_validate(entry)
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid connector spec at index {index}: {e}",
                    config_path=str(file_path),
                    field=f"connectors[{index}]",
                ) from e
            if spec.name in seen:
                raise ConfigurationError(
                    f"Duplicate connector name: {spec.name}",
                    config_path=str(file_path),
                    field=f"connectors[{index}].name",
                )
            seen.add(spec.name)
            specs.append(spec)
        return specs

    @staticmethod
    def find_spec(specs: list[ConnectorSpec], name: str) -> ConnectorSpec:
        """
        Return the spec called ``name``.

        Raises:
            ConfigurationError: If no spec has that name.
        """
        for spec in specs:
            if spec.name == name:
                return spec
        raise ConfigurationError(
            f"Connector not found: {name}",
            details={"available": [spec.name for spec in specs]},
        )

    def _resolve_path(self, file_path: Path | str) -> Path:
        path = Path(file_path)
        if path.is_absolute():
            return path

        config_path = self._config_dir / path
        if config_path.exists():
            return config_path
        return path
