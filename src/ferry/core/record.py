"""
Record model shared by every connector.

A DataRecord is an immutable, ordered collection of typed fields. Batches
are plain tuples of records so they can be shared read-only between
concurrent sink writers.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterator, Sequence


class DataType(str, Enum):
    """Type tag carried by each field."""

    CHARS = "chars"
    DIGIT = "digit"
    FLOAT = "float"
    BOOL = "bool"
    TIME = "time"
    IP = "ip"
    JSON = "json"
    BINARY = "binary"
    IGNORE = "ignore"


def _infer_type(value: Any) -> DataType:
    if isinstance(value, bool):
        return DataType.BOOL
    if isinstance(value, int):
        return DataType.DIGIT
    if isinstance(value, float):
        return DataType.FLOAT
    if isinstance(value, (datetime, date)):
        return DataType.TIME
    if isinstance(value, (bytes, bytearray)):
        return DataType.BINARY
    if isinstance(value, (dict, list)):
        return DataType.JSON
    return DataType.CHARS


@dataclass(frozen=True, slots=True)
class DataField:
    """A single named, typed value."""

    name: str
    value: Any
    meta: DataType = DataType.CHARS

    @classmethod
    def of(cls, name: str, value: Any) -> "DataField":
        """Create a field, inferring the type tag from the Python value."""
        return cls(name=name, value=value, meta=_infer_type(value))

    @classmethod
    def ignored(cls, name: str, value: Any = None) -> "DataField":
        """Create a field that sinks must never materialize."""
        return cls(name=name, value=value, meta=DataType.IGNORE)

    @property
    def is_ignored(self) -> bool:
        return self.meta is DataType.IGNORE

    def render(self) -> str:
        """Render the value as text for SQL literals and text formats."""
        value = self.value
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", errors="replace")
        return str(value)


@dataclass(frozen=True, slots=True)
class DataRecord:
    """Ordered, immutable collection of fields."""

    items: tuple[DataField, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, values: dict[str, Any]) -> "DataRecord":
        """Build a record from a mapping, preserving insertion order."""
        return cls(tuple(DataField.of(name, value) for name, value in values.items()))

    @classmethod
    def from_fields(cls, fields: Sequence[DataField]) -> "DataRecord":
        return cls(tuple(fields))

    def __iter__(self) -> Iterator[DataField]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def get(self, name: str) -> DataField | None:
        """Return the first field called ``name``, or None."""
        for item in self.items:
            if item.name == name:
                return item
        return None

    def visible(self) -> Iterator[DataField]:
        """Iterate over fields that are not tagged IGNORE."""
        return (item for item in self.items if not item.is_ignored)
