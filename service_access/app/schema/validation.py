"""
Write-time constraint validation for the Access Service.
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from shared.errors import ConstraintViolationError
from shared.logging import get_logger
from .registry import SchemaModel

Record = Mapping[str, Any]


class ConstraintValidator:
    """Checks required fields, types, keys and uniqueness groups of writes."""

    def __init__(self, schema: SchemaModel):
        self.schema = schema
        self.logger = get_logger("access.schema")

    def validate_create(self, entity: str, values: Record,
                        existing: Iterable[Record] = ()) -> Dict[str, Any]:
        """Validate a new record and return it with defaults applied."""
        spec = self.schema.entity(entity)
        self._check_known_fields(entity, values)

        record: Dict[str, Any] = {}
        for field_spec in spec.stored_fields():
            value = values.get(field_spec.name)
            if value is None and field_spec.has_default:
                value = field_spec.default_value()
            if value is None:
                if field_spec.required:
                    raise ConstraintViolationError(
                        f"Field '{entity}.{field_spec.name}' is required",
                        details={"entity": entity, "field": field_spec.name, "constraint": "required"}
                    )
                continue
            record[field_spec.name] = self._coerce(entity, field_spec.name, value)

        existing = list(existing)
        self._check_primary_key(entity, record, existing)
        self._check_unique(entity, record, existing, exclude_key=None)
        return record

    def validate_update(self, entity: str, current: Record, changes: Record,
                        existing: Iterable[Record] = ()) -> Dict[str, Any]:
        """Validate changes to ``current`` and return the merged record."""
        spec = self.schema.entity(entity)
        self._check_known_fields(entity, changes)
        key = spec.primary_key.name

        current_key = current.get(key)
        if current_key is not None:
            current_key = self._coerce(entity, key, current_key)

        if key in changes and self._coerce(entity, key, changes[key]) != current_key:
            raise ConstraintViolationError(
                f"Primary key '{entity}.{key}' cannot change",
                details={"entity": entity, "field": key, "constraint": "immutable"}
            )

        record = dict(current)
        for name, value in changes.items():
            if value is None:
                if self.schema.field(entity, name).optional:
                    record.pop(name, None)
                    continue
                raise ConstraintViolationError(
                    f"Field '{entity}.{name}' is required",
                    details={"entity": entity, "field": name, "constraint": "required"}
                )
            record[name] = self._coerce(entity, name, value)

        self._check_unique(entity, record, existing, exclude_key=current_key)
        return record

    def _check_primary_key(self, entity: str, record: Record, existing: Iterable[Record]):
        """Reject a new record whose primary key is already taken."""
        key = self.schema.entity(entity).primary_key.name
        wanted = self._group_values(entity, (key,), record)
        if wanted is None:
            return
        for other in existing:
            if self._group_values(entity, (key,), other) == wanted:
                self.logger.info("Primary key collision", entity=entity, field=key)
                raise ConstraintViolationError(
                    f"Primary key '{entity}.{key}' already exists",
                    details={"entity": entity, "field": key, "fields": [key], "constraint": "unique"}
                )

    def _check_known_fields(self, entity: str, values: Record):
        spec = self.schema.entity(entity)
        for name in values:
            field_spec = spec.field(name)
            if field_spec is None:
                raise ConstraintViolationError(
                    f"Unknown field '{entity}.{name}'",
                    details={"entity": entity, "field": name, "constraint": "unknown_field"}
                )
            if not field_spec.stored:
                raise ConstraintViolationError(
                    f"Field '{entity}.{name}' is a back-reference and cannot be written",
                    details={"entity": entity, "field": name, "constraint": "read_only"}
                )

    def _coerce(self, entity: str, name: str, value: Any) -> Any:
        try:
            return self.schema.coerce(entity, name, value)
        except (TypeError, ValueError) as e:
            raise ConstraintViolationError(
                f"Invalid value for '{entity}.{name}': {e}",
                details={"entity": entity, "field": name, "constraint": "type"}
            ) from e

    def _group_values(self, entity: str, fields: Tuple[str, ...], record: Record) -> Optional[Tuple[Any, ...]]:
        values = []
        for name in fields:
            value = record.get(name)
            if value is None:
                return None
            try:
                values.append(self.schema.coerce(entity, name, value))
            except (TypeError, ValueError):
                return None
        return tuple(values)

    def _check_unique(self, entity: str, record: Record, existing: Iterable[Record],
                      exclude_key: Any):
        groups = self.schema.unique_groups(entity)
        if not groups:
            return

        key = self.schema.entity(entity).primary_key.name
        wanted = {
            group: self._group_values(entity, fields, record)
            for group, fields in groups.items()
        }

        for other in existing:
            if exclude_key is not None and other.get(key) is not None:
                if self.schema.coerce(entity, key, other[key]) == exclude_key:
                    continue
            for group, fields in groups.items():
                if wanted[group] is None:
                    continue
                if self._group_values(entity, fields, other) == wanted[group]:
                    self.logger.info(
                        "Uniqueness violation",
                        entity=entity,
                        group=group,
                        fields=list(fields)
                    )
                    raise ConstraintViolationError(
                        f"Uniqueness group '{group}' of '{entity}' already has these values",
                        details={
                            "entity": entity,
                            "group": group,
                            "fields": list(fields),
                            "constraint": "unique"
                        }
                    )
