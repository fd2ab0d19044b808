"""Argument checks against a tool's declared input schema.

Covers the subset of JSON Schema the tool catalog uses: ``required``,
primitive ``type`` (string, number, integer, boolean, array, object), ``enum``
and the item type of arrays. Properties not declared in the schema pass.
"""

from __future__ import annotations

from typing import Any

from .errors import ValidationError


def _is_type(value: Any, expected: str) -> bool:
    if expected == "string":
        return isinstance(value, str)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "integer":
        if isinstance(value, bool):
            return False
        return isinstance(value, int) or (isinstance(value, float) and value.is_integer())
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "array":
        return isinstance(value, list)
    if expected == "object":
        return isinstance(value, dict)
    if expected == "null":
        return value is None
    return True


def _check_value(tool: str, name: str, value: Any, schema: dict[str, Any]) -> None:
    expected = schema.get("type")
    if expected is not None:
        allowed = expected if isinstance(expected, list) else [expected]
        if not any(_is_type(value, t) for t in allowed):
            raise ValidationError(
                f"Invalid arguments for {tool}: '{name}' must be of type {' or '.join(allowed)}, "
                f"got {type(value).__name__}",
                argument=name,
            )

    if "enum" in schema and value not in schema["enum"]:
        options = ", ".join(repr(o) for o in schema["enum"])
        raise ValidationError(
            f"Invalid arguments for {tool}: '{name}' must be one of {options}, got {value!r}",
            argument=name,
        )

    items = schema.get("items")
    if isinstance(value, list) and isinstance(items, dict):
        for i, item in enumerate(value):
            _check_value(tool, f"{name}[{i}]", item, items)


def validate_arguments(tool: str, schema: dict[str, Any], arguments: Any) -> dict[str, Any]:
    """Check ``arguments`` against ``schema`` and return them.

    ``None`` for an optional property counts as absent.

    Raises:
        ValidationError: on a missing required property, a wrong type or a
            value outside the declared enum
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ValidationError(f"Invalid arguments for {tool}: expected an object")

    properties: dict[str, Any] = schema.get("properties") or {}
    required: list[str] = schema.get("required") or []

    for name in required:
        if arguments.get(name) is None:
            raise ValidationError(
                f"Invalid arguments for {tool}: missing required property '{name}'",
                argument=name,
            )

    for name, value in arguments.items():
        prop = properties.get(name)
        if prop is None or (value is None and name not in required):
            continue
        _check_value(tool, name, value, prop)

    return arguments
