from __future__ import annotations

import pytest

from rn_ios_simulator_mcp.errors import ValidationError
from rn_ios_simulator_mcp.validation import validate_arguments

SCHEMA = {
    "type": "object",
    "properties": {
        "deviceType": {"type": "string", "enum": ["iPhone 15 Pro", "iPad Air"]},
        "x": {"type": "number"},
        "count": {"type": "integer"},
        "verbose": {"type": "boolean"},
        "keys": {"type": "array", "items": {"type": "string"}},
        "userData": {"type": "object"},
    },
    "required": ["deviceType"],
}


def test_valid_arguments_are_returned() -> None:
    args = {"deviceType": "iPad Air", "x": 1.5, "count": 3, "keys": ["a"], "extra": "kept"}
    assert validate_arguments("tool", SCHEMA, args) == args


def test_missing_required_property() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_arguments("create_rn_simulator_session", SCHEMA, {})

    assert exc_info.value.argument == "deviceType"
    assert str(exc_info.value) == (
        "Invalid arguments for create_rn_simulator_session: missing required property 'deviceType'"
    )
    assert exc_info.value.code == -32602


def test_none_counts_as_missing_for_required() -> None:
    with pytest.raises(ValidationError):
        validate_arguments("tool", SCHEMA, {"deviceType": None})


def test_none_skips_optional_property() -> None:
    validate_arguments("tool", SCHEMA, {"deviceType": "iPad Air", "x": None})


@pytest.mark.parametrize(
    "name,value",
    [
        ("x", "12"),
        ("x", True),
        ("count", 1.5),
        ("verbose", "yes"),
        ("keys", "a"),
        ("userData", []),
    ],
)
def test_wrong_type(name, value) -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_arguments("tool", SCHEMA, {"deviceType": "iPad Air", name: value})
    assert exc_info.value.argument == name


def test_value_outside_enum() -> None:
    with pytest.raises(ValidationError, match="must be one of"):
        validate_arguments("tool", SCHEMA, {"deviceType": "Pixel 8"})


def test_array_item_type() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_arguments("tool", SCHEMA, {"deviceType": "iPad Air", "keys": ["a", 2]})
    assert exc_info.value.argument == "keys[1]"


def test_arguments_must_be_an_object() -> None:
    with pytest.raises(ValidationError, match="expected an object"):
        validate_arguments("tool", SCHEMA, ["iPad Air"])
