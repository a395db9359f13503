"""
VictoriaLogs sink configuration.
"""

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from ferry.core.formats import OutputFormat, parse_format
from ferry.core.params import optional_str, positive_float, required_str

KIND = "victorialogs"

DEFAULT_ENDPOINT = "http://localhost:8481"
DEFAULT_INSERT_PATH = "/insert/json"
DEFAULT_REQUEST_TIMEOUT_SECS = 60.0


class VictoriaLogsConfig(BaseModel):
    """Validated victorialogs sink parameters."""

    model_config = ConfigDict(frozen=True)

    endpoint: str = Field(default=DEFAULT_ENDPOINT, description="Base URL of the VictoriaLogs server")
    insert_path: str = Field(default=DEFAULT_INSERT_PATH, description="Ingestion path appended to endpoint")
    fmt: OutputFormat = Field(default=OutputFormat.JSON, description="Format of the _msg field")
    request_timeout_secs: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT_SECS,
        description="Per-request timeout in seconds",
    )
    create_time_field: str | None = Field(
        default=None,
        description="Record field holding the event time; now is used when absent",
    )

    @property
    def insert_url(self) -> str:
        return f"{self.endpoint.rstrip('/')}{self.insert_path}"

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "VictoriaLogsConfig":
        """
        Raises:
            ConfigurationError: If endpoint is empty, fmt is unknown, or the
                timeout is not positive.
        """
        insert_path = optional_str(params, KIND, "insert_path") or DEFAULT_INSERT_PATH
        if not insert_path.startswith("/"):
            insert_path = f"/{insert_path}"
        return cls(
            endpoint=required_str(params, KIND, "endpoint"),
            insert_path=insert_path,
            fmt=parse_format(params.get("fmt"), KIND),
            request_timeout_secs=(
                positive_float(params, KIND, "request_timeout_secs") or DEFAULT_REQUEST_TIMEOUT_SECS
            ),
            create_time_field=optional_str(params, KIND, "create_time_field"),
        )
