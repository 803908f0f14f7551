"""
Schema data models for the Access Service.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


class FieldType(str, Enum):
    """Field types understood by the schema."""
    UUID = "Uuid"
    STRING = "String"
    INT = "Int"
    BOOLEAN = "Boolean"
    LOCAL_DATE = "LocalDate"
    LOCAL_DATE_TIME = "LocalDateTime"
    ARRAY = "Array"
    REFERENCE = "Reference"
    BACKREF = "Backref"


SCALAR_TYPES = frozenset({
    FieldType.UUID,
    FieldType.STRING,
    FieldType.INT,
    FieldType.BOOLEAN,
    FieldType.LOCAL_DATE,
    FieldType.LOCAL_DATE_TIME,
})


class Generated(str, Enum):
    """Defaults computed at creation time."""
    UUID = "uuid"


def coerce_value(field_type: FieldType, value: Any, item_type: Optional[FieldType] = None) -> Any:
    """Normalize ``value`` to the canonical Python form of ``field_type``.

    Raises ``TypeError`` or ``ValueError`` when the value cannot represent
    the type. Strings are never case folded.
    """
    if field_type == FieldType.UUID:
        if isinstance(value, uuid.UUID):
            return value
        if isinstance(value, str):
            return uuid.UUID(value)
        raise TypeError(f"expected Uuid, got {type(value).__name__}")

    if field_type == FieldType.STRING:
        if isinstance(value, str):
            return value
        raise TypeError(f"expected String, got {type(value).__name__}")

    if field_type == FieldType.INT:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise TypeError(f"expected Int, got {type(value).__name__}")

    if field_type == FieldType.BOOLEAN:
        if isinstance(value, bool):
            return value
        raise TypeError(f"expected Boolean, got {type(value).__name__}")

    if field_type == FieldType.LOCAL_DATE:
        if isinstance(value, datetime):
            raise TypeError("expected LocalDate, got datetime")
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            return date.fromisoformat(value)
        raise TypeError(f"expected LocalDate, got {type(value).__name__}")

    if field_type == FieldType.LOCAL_DATE_TIME:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            return datetime.fromisoformat(value)
        raise TypeError(f"expected LocalDateTime, got {type(value).__name__}")

    if field_type == FieldType.ARRAY:
        if not isinstance(value, (list, tuple)):
            raise TypeError(f"expected Array, got {type(value).__name__}")
        if item_type is None:
            return tuple(value)
        return tuple(coerce_value(item_type, item) for item in value)

    raise TypeError(f"{field_type.value} values cannot be coerced")


@dataclass(frozen=True)
class FieldSpec:
    """Static description of one entity field."""
    name: str
    type: FieldType
    optional: bool = False
    pk: bool = False
    index: bool = False
    unique: Tuple[str, ...] = ()
    default: Any = None
    target: Optional[str] = None
    item_type: Optional[FieldType] = None
    many: bool = True

    @property
    def stored(self) -> bool:
        """Back-references are virtual and never stored on the record."""
        return self.type != FieldType.BACKREF

    @property
    def has_default(self) -> bool:
        return self.default is not None

    @property
    def required(self) -> bool:
        return self.stored and not self.optional and not self.has_default

    def default_value(self) -> Any:
        """Produce the default for a new record."""
        if self.default == Generated.UUID:
            return uuid.uuid4()
        return self.default


@dataclass(frozen=True)
class EntitySpec:
    """Static description of an entity and its fields."""
    name: str
    fields: Tuple[FieldSpec, ...]
    plural: Optional[str] = None
    _by_name: Mapping[str, FieldSpec] = field(init=False, repr=False, compare=False)
    _groups: Mapping[str, Tuple[str, ...]] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        by_name: Dict[str, FieldSpec] = {}
        groups: Dict[str, Tuple[str, ...]] = {}
        for spec in self.fields:
            by_name[spec.name] = spec
            for group in spec.unique:
                groups[group] = groups.get(group, ()) + (spec.name,)
        object.__setattr__(self, "_by_name", MappingProxyType(by_name))
        object.__setattr__(self, "_groups", MappingProxyType(groups))

    @property
    def plural_name(self) -> str:
        return self.plural or f"{self.name.lower()}s"

    @property
    def primary_key(self) -> FieldSpec:
        return next(spec for spec in self.fields if spec.pk)

    @property
    def unique_groups(self) -> Mapping[str, Tuple[str, ...]]:
        return self._groups

    def field(self, name: str) -> Optional[FieldSpec]:
        return self._by_name.get(name)

    def field_names(self) -> Tuple[str, ...]:
        return tuple(self._by_name)

    def stored_fields(self) -> Tuple[FieldSpec, ...]:
        return tuple(spec for spec in self.fields if spec.stored)
