"""
VictoriaMetrics exporter configuration.
"""

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from ferry.core.params import positive_float, required_str

KIND = "victoriametrics"

DEFAULT_INSERT_URL = "http://localhost:8480/insert/0/prometheus/api/v1/import/prometheus"
DEFAULT_FLUSH_INTERVAL_SECS = 5.0
DEFAULT_REQUEST_TIMEOUT_SECS = 5.0


class VictoriaMetricsConfig(BaseModel):
    """Validated victoriametrics sink parameters."""

    model_config = ConfigDict(frozen=True)

    insert_url: str = Field(default=DEFAULT_INSERT_URL, description="Prometheus text import URL")
    flush_interval_secs: float = Field(
        default=DEFAULT_FLUSH_INTERVAL_SECS,
        description="Seconds between periodic pushes",
    )
    request_timeout_secs: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT_SECS,
        description="Per-push timeout in seconds",
    )

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "VictoriaMetricsConfig":
        """
        Raises:
            ConfigurationError: If insert_url is empty or an interval is not
                positive.
        """
        return cls(
            insert_url=required_str(params, KIND, "insert_url"),
            flush_interval_secs=(
                positive_float(params, KIND, "flush_interval_secs") or DEFAULT_FLUSH_INTERVAL_SECS
            ),
            request_timeout_secs=(
                positive_float(params, KIND, "request_timeout_secs") or DEFAULT_REQUEST_TIMEOUT_SECS
            ),
        )
