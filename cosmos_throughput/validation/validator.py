from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..errors import ConfigurationError
from .checks import CUSTOM_CHECKS, check_primitive
from .schema import Custom, FieldType, Predicate, Primitive, Schema


def conforms(field_type: FieldType, value: Any) -> bool:
    if isinstance(field_type, Primitive):
        return check_primitive(field_type.kind, value)
    if isinstance(field_type, Predicate):
        return bool(field_type.fn(value))
    if isinstance(field_type, Custom):
        return CUSTOM_CHECKS[field_type.name](value)
    raise TypeError(f"Unsupported schema field type {field_type!r}")


def collect_violations(
    input: Any,
    schema: Schema,
    *,
    ignore_missing_keys: bool = False,
    check_for_invalid_keys: bool = False,
) -> list[str]:
    if not isinstance(input, Mapping):
        return ["input must be a mapping of options"]

    violations: list[str] = []

    if check_for_invalid_keys:
        for key in input:
            if key not in schema:
                violations.append(f'unknown option "{key}"')

    for key, field in schema.items():
        value = input.get(key)
        if value is None:
            if field.required and not ignore_missing_keys:
                violations.append(f'missing required option "{key}"')
            continue
        if not conforms(field.type, value):
            violations.append(f'option "{key}" is not a valid {field.type.description}')

    return violations


def validate(
    input: Any,
    schema: Schema,
    *,
    ignore_missing_keys: bool = False,
    check_for_invalid_keys: bool = False,
) -> None:
    """Check `input` against `schema`, reporting every violation at once."""
    violations = collect_violations(
        input,
        schema,
        ignore_missing_keys=ignore_missing_keys,
        check_for_invalid_keys=check_for_invalid_keys,
    )
    if violations:
        raise ConfigurationError(
            message="Invalid options - " + "; ".join(violations),
            violations=violations,
        )
