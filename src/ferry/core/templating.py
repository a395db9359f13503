"""
Jinja2 rendering for connector spec files.

Provides:
- String template rendering with StrictUndefined
- A small set of filters and globals useful in YAML connector specs
"""

import uuid
from datetime import datetime, timezone
from typing import Any

import orjson
from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, UndefinedError

from ferry.core.exceptions import TemplateError


class TemplateEngine:
    """
    Jinja2 engine rendering config text against a fixed base context.

    Undefined variables are an error: a connector spec that references a
    missing environment variable fails at load time, not at connect time.

    Usage:
        engine = TemplateEngine({"MYSQL_HOST": "db.internal"})
        text = engine.render_string("endpoint: mysql://{{ MYSQL_HOST }}:3306")
    """

    def __init__(self, context: dict[str, Any] | None = None) -> None:
        self._context: dict[str, Any] = dict(context or {})
        self._env = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )
        self._env.filters.update({
            "to_json": self._filter_to_json,
            "env_upper": lambda s: s.upper().replace("-", "_"),
            "default_empty": lambda v, d="": v if v else d,
        })
        self._env.globals.update({
            "utcnow": lambda: datetime.now(timezone.utc),
            "uuid4": lambda: str(uuid.uuid4()),
        })

    @staticmethod
    def _filter_to_json(value: Any) -> str:
        """Convert value to a JSON string (valid YAML flow syntax)."""
        return orjson.dumps(value).decode("utf-8")

    @property
    def context(self) -> dict[str, Any]:
        """Base context (copy); render-time extras are never merged in."""
        return self._context.copy()

    def render_string(
        self,
        template_string: str,
        extra_context: dict[str, Any] | None = None,
        template_name: str | None = None,
    ) -> str:
        """
        Render a template from a string.

        Args:
            template_string: Template content as string.
            extra_context: Additional context to merge (doesn't modify base context).
            template_name: Name used in error messages, usually the file path.

        Returns:
            Rendered string.

        Raises:
            TemplateError: On syntax errors or undefined variables.
        """
        try:
            template = self._env.from_string(template_string)
            return template.render(**{**self._context, **(extra_context or {})})
        except TemplateSyntaxError as e:
            raise TemplateError(
                f"Template syntax error at line {e.lineno}: {e.message}",
                template_name=template_name,
            ) from e
        except UndefinedError as e:
            raise TemplateError(
                f"Undefined template variable: {e.message}",
                template_name=template_name,
            ) from e
