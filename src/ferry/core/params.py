"""
Typed access to flat connector parameter maps.

Every helper raises ConfigurationError with a ``<kind>.<field>`` prefix so
a failure points straight at the offending configuration key.
"""

from typing import Any, Mapping

from ferry.core.exceptions import ConfigurationError

ParamMap = dict[str, Any]


def _error(field: str, message: str, value: Any = None) -> ConfigurationError:
    return ConfigurationError(f"{field} {message}", field=field, details={"value": value})


def required_str(params: Mapping[str, Any], kind: str, key: str) -> str:
    """Return a non-empty, stripped string parameter."""
    field = f"{kind}.{key}"
    value = params.get(key)
    if not isinstance(value, str) or not value.strip():
        raise _error(field, "must not be empty", value)
    return value.strip()


def optional_str(params: Mapping[str, Any], kind: str, key: str) -> str | None:
    """Return a stripped string parameter, or None when absent or blank."""
    value = params.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise _error(f"{kind}.{key}", "must be a string", value)
    return value.strip() or None


def positive_int(params: Mapping[str, Any], kind: str, key: str) -> int | None:
    """Return a positive integer parameter, or None when absent."""
    field = f"{kind}.{key}"
    value = params.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise _error(field, "must be an integer", value)
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise _error(field, "must be an integer", value) from None
    if not isinstance(value, int):
        raise _error(field, "must be an integer", value)
    if value <= 0:
        raise _error(field, "must be > 0", value)
    return value


def positive_float(params: Mapping[str, Any], kind: str, key: str) -> float | None:
    """Return a positive number parameter, or None when absent."""
    field = f"{kind}.{key}"
    value = params.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise _error(field, "must be a number", value)
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise _error(field, "must be a number", value) from None
    if not isinstance(value, (int, float)):
        raise _error(field, "must be a number", value)
    if value <= 0:
        raise _error(field, "must be > 0", value)
    return float(value)


def str_list(
    params: Mapping[str, Any],
    kind: str,
    key: str,
    split_commas: bool = False,
) -> list[str] | None:
    """
    Return a list of non-blank strings.

    Accepts either a list of strings or a single string (optionally split on
    commas). Returns None when the parameter is absent or holds nothing.
    """
    field = f"{kind}.{key}"
    value = params.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        raw_items = value.split(",") if split_commas else [value]
    elif isinstance(value, (list, tuple)):
        raw_items = []
        for item in value:
            if not isinstance(item, str):
                raise _error(field, "entries must be strings", value)
            raw_items.append(item)
    else:
        raise _error(field, "must be a string or array", value)

    items = [item.strip() for item in raw_items if item.strip()]
    return items or None


def parse_kv_config(entries: list[str] | None) -> dict[str, str]:
    """
    Parse ``key = value`` strings into a dictionary.

    Entries without ``=`` are ignored; only the first ``=`` splits.
    """
    config: dict[str, str] = {}
    for entry in entries or []:
        key, sep, value = entry.partition("=")
        if sep and key.strip():
            config[key.strip()] = value.strip()
    return config


def merge_defaults(defaults: Mapping[str, Any], params: Mapping[str, Any]) -> ParamMap:
    """Overlay ``params`` on a connector's default parameters."""
    merged: ParamMap = dict(defaults)
    merged.update({key: value for key, value in params.items() if value is not None})
    return merged
