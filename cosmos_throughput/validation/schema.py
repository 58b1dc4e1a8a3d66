"""Declarative option schemas.

A schema maps option names to `SchemaField`s. The type of a field is one of
three variants:

- `Primitive(kind)`: a plain Python type check (`string`, `number`,
  `boolean`, `list`, `mapping`).
- `Predicate(fn, description)`: an arbitrary check supplied by the caller.
- `Custom(name)`: a named check from the registry in `checks.py`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Literal, Mapping

PrimitiveKind = Literal["string", "number", "boolean", "list", "mapping"]


@dataclass(frozen=True, slots=True)
class Primitive:
    kind: PrimitiveKind

    @property
    def description(self) -> str:
        return self.kind


@dataclass(frozen=True, slots=True)
class Predicate:
    fn: Callable[[Any], bool]
    description: str = "custom check"


@dataclass(frozen=True, slots=True)
class Custom:
    name: str

    @property
    def description(self) -> str:
        return self.name


FieldType = Primitive | Predicate | Custom


@dataclass(frozen=True, slots=True)
class SchemaField:
    type: FieldType
    required: bool = False
    mutable: bool = False


Schema = Mapping[str, SchemaField]
