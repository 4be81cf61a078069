"""Schema validator — structural validation of catalog documents.

The catalog JSON Schema is walked by hand. Only the keywords the schema
uses are understood: type, enum, required, properties,
additionalProperties, items, oneOf, minLength, minItems and pattern.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterator

from transmute.catalog.schema import get_schema

JSON_TYPES: dict[str, type | tuple[type, ...]] = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "array": list,
    "object": dict,
    "null": type(None),
}


def validate_schema(data: Any) -> list[str]:
    """Validate a parsed catalog document against the catalog JSON Schema.

    Returns:
        List of error messages. Empty list means valid.
    """
    return list(_check(data, get_schema(), ""))


def _check(data: Any, schema: dict, path: str) -> Iterator[str]:
    where = path or "/"
    if "oneOf" in schema:
        yield from _check_one_of(data, schema["oneOf"], path)
        return

    expected = schema.get("type")
    if expected and not _is_type(data, expected):
        yield f"{where}: expected type '{expected}', got {type(data).__name__}"
        return

    if "enum" in schema and data not in schema["enum"]:
        yield f"{where}: value '{data}' not in allowed values {schema['enum']}"

    checker = _CHECKERS.get(expected)
    if checker is not None:
        yield from checker(data, schema, path)


def _check_string(data: str, schema: dict, path: str) -> Iterator[str]:
    where = path or "/"
    min_len = schema.get("minLength", 0)
    if len(data) < min_len:
        yield f"{where}: string too short (min {min_len}, got {len(data)})"
    if "pattern" in schema and not re.match(schema["pattern"], data):
        yield f"{where}: string '{data}' does not match pattern '{schema['pattern']}'"


def _check_object(data: dict, schema: dict, path: str) -> Iterator[str]:
    where = path or "/"
    for name in schema.get("required", []):
        if name not in data:
            yield f"{where}: missing required property '{name}'"

    properties = schema.get("properties", {})
    closed = schema.get("additionalProperties") is False
    for key, value in data.items():
        if key in properties:
            yield from _check(value, properties[key], f"{path}.{key}")
        elif closed:
            yield f"{where}: unexpected property '{key}'"


def _check_array(data: list, schema: dict, path: str) -> Iterator[str]:
    min_items = schema.get("minItems", 0)
    if len(data) < min_items:
        yield f"{path or '/'}: array too short (min {min_items}, got {len(data)})"
    item_schema = schema.get("items")
    if item_schema:
        for i, item in enumerate(data):
            yield from _check(item, item_schema, f"{path}[{i}]")


_CHECKERS: dict[str, Callable[[Any, dict, str], Iterator[str]]] = {
    "string": _check_string,
    "object": _check_object,
    "array": _check_array,
}


def _check_one_of(data: Any, options: list[dict], path: str) -> Iterator[str]:
    # A single type-compatible option reports its own issues.
    typed = [o for o in options if not o.get("type") or _is_type(data, o["type"])]
    if len(typed) == 1:
        yield from _check(data, typed[0], path)
        return
    if any(not list(_check(data, option, path)) for option in typed):
        return
    yield f"{path or '/'}: value does not match any of the allowed schemas"


def _is_type(data: Any, name: str) -> bool:
    expected = JSON_TYPES.get(name)
    if expected is None:
        return True
    # YAML booleans are ints in Python
    if name in ("integer", "number") and isinstance(data, bool):
        return False
    return isinstance(data, expected)
