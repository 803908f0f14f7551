"""
Schema package.

Static, immutable description of entities: fields, types, relations and
per-field constraints (primary key, uniqueness group, index, optionality,
default). Built once at startup and shared read-only.

Modules of interest:
- models: FieldType, FieldSpec, EntitySpec and value coercion.
- registry: SchemaModel lookup table.
- validation: Write-time checks for required fields, types and uniqueness.
"""

from .models import EntitySpec, FieldSpec, FieldType, Generated, coerce_value
from .registry import SchemaModel
from .validation import ConstraintValidator

__all__ = [
    "ConstraintValidator",
    "EntitySpec",
    "FieldSpec",
    "FieldType",
    "Generated",
    "SchemaModel",
    "coerce_value",
]
