from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TypeAlias, TypeGuard

JsonScalar: TypeAlias = str | int | float | bool | None
JsonValue: TypeAlias = JsonScalar | dict[str, "JsonValue"] | list["JsonValue"]
JsonDict: TypeAlias = dict[str, JsonValue]


def _is_mapping(value: object) -> TypeGuard[dict[object, object]]:
    return isinstance(value, dict)


def _is_sequence(value: object) -> TypeGuard[list[object] | tuple[object, ...]]:
    return isinstance(value, (list, tuple))


def coerce_json_value(value: object) -> JsonValue:
    """Reduce TOML/YAML/JSON-ish data to plain JSON values.

    Enums become their value and datetimes ISO strings; anything else that is
    not JSON is stringified.
    """
    if _is_mapping(value):
        return {str(k): coerce_json_value(v) for k, v in value.items()}
    if _is_sequence(value):
        return [coerce_json_value(item) for item in value]
    if isinstance(value, Enum):
        return coerce_json_value(value.value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def as_json_dict(value: object) -> JsonDict:
    if not _is_mapping(value):
        return {}
    return {str(k): coerce_json_value(v) for k, v in value.items()}


def as_json_list(value: object) -> list[JsonValue]:
    if not _is_sequence(value):
        return []
    return [coerce_json_value(item) for item in value]


def as_str_list(value: object) -> list[str]:
    return [str(item) for item in as_json_list(value) if item is not None]


def optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
