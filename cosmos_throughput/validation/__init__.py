"""Validation of client options against declarative schemas."""

from .schema import Custom, FieldType, Predicate, Primitive, Schema, SchemaField
from .validator import collect_violations, conforms, validate

__all__ = [
    "Custom",
    "FieldType",
    "Predicate",
    "Primitive",
    "Schema",
    "SchemaField",
    "collect_violations",
    "conforms",
    "validate",
]
