"""
Output formats for record-oriented network sinks.

The format is chosen by the ``fmt`` parameter at build time. Unknown
values are rejected with the full allowed set in the error message.
"""

import csv
import io
from enum import Enum
from typing import Any

import orjson

from ferry.core.exceptions import ConfigurationError
from ferry.core.record import DataField, DataRecord, DataType


class OutputFormat(str, Enum):
    """Closed set of text formats a record can be rendered in."""

    JSON = "json"
    CSV = "csv"
    SHOW = "show"
    KV = "kv"
    RAW = "raw"
    PROTO = "proto"
    PROTO_TEXT = "proto-text"

    @classmethod
    def allowed(cls) -> str:
        return ",".join(member.value for member in cls)


def parse_format(
    value: Any,
    connector_type: str,
    default: OutputFormat = OutputFormat.JSON,
) -> OutputFormat:
    """
    Validate a ``fmt`` parameter.

    Args:
        value: Raw parameter value (None selects ``default``).
        connector_type: Connector kind used in error messages.
        default: Format used when the parameter is absent.

    Returns:
        The selected OutputFormat.

    Raises:
        ConfigurationError: If the value is empty, not a string, or unknown.
    """
    field = f"{connector_type}.fmt"
    if value is None:
        return default
    if not isinstance(value, str):
        raise ConfigurationError(f"{field} must be a string", field=field)

    trimmed = value.strip()
    if not trimmed:
        raise ConfigurationError(f"{field} must not be empty", field=field)
    try:
        return OutputFormat(trimmed)
    except ValueError:
        raise ConfigurationError(
            f"invalid fmt: '{trimmed}'; allowed: {OutputFormat.allowed()}",
            field=field,
            details={"allowed": [member.value for member in OutputFormat]},
        ) from None


def _json_value(item: DataField) -> Any:
    if item.value is None or isinstance(item.value, (str, int, float, bool)):
        return item.value
    if item.meta is DataType.JSON and isinstance(item.value, (dict, list)):
        return item.value
    return item.render()


def _quoted(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n") + '"'


def _proto_value(item: DataField) -> str:
    if item.meta in (DataType.DIGIT, DataType.FLOAT) or isinstance(item.value, bool):
        return item.render()
    return _quoted(item.render())


def to_json(record: DataRecord) -> str:
    return orjson.dumps({item.name: _json_value(item) for item in record.visible()}).decode()


def to_csv(record: DataRecord) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="")
    writer.writerow([item.render() for item in record.visible()])
    return buffer.getvalue()


def to_show(record: DataRecord) -> str:
    items = list(record.visible())
    width = max((len(item.name) for item in items), default=0)
    return "\n".join(
        f"{item.name.ljust(width)} : {item.render()}" for item in items
    )


def to_kv(record: DataRecord) -> str:
    parts = []
    for item in record.visible():
        rendered = item.render()
        if item.meta in (DataType.DIGIT, DataType.FLOAT, DataType.BOOL):
            parts.append(f"{item.name}={rendered}")
        else:
            parts.append(f"{item.name}={_quoted(rendered)}")
    return ", ".join(parts)


def to_raw(record: DataRecord) -> str:
    return " ".join(item.render() for item in record.visible())


def to_proto_text(record: DataRecord) -> str:
    return "\n".join(f"{item.name}: {_proto_value(item)}" for item in record.visible())


def to_proto(record: DataRecord) -> str:
    body = " ".join(f"{item.name}: {_proto_value(item)}" for item in record.visible())
    return "{ " + body + " }" if body else "{}"


_FORMATTERS = {
    OutputFormat.JSON: to_json,
    OutputFormat.CSV: to_csv,
    OutputFormat.SHOW: to_show,
    OutputFormat.KV: to_kv,
    OutputFormat.RAW: to_raw,
    OutputFormat.PROTO: to_proto,
    OutputFormat.PROTO_TEXT: to_proto_text,
}


def format_record(record: DataRecord, fmt: OutputFormat) -> str:
    """Render ``record`` in ``fmt``, skipping IGNORE fields."""
    return _FORMATTERS[fmt](record)
