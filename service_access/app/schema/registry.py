"""
Schema model for the Access Service.

Holds the immutable description of every entity built once at startup and
shared read-only across requests.
"""

from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Tuple

from shared.errors import PolicyConfigurationError
from shared.logging import get_logger
from .models import EntitySpec, FieldSpec, FieldType, coerce_value


class SchemaModel:
    """Lookup table of entities and their fields."""

    def __init__(self, entities: Iterable[EntitySpec]):
        self.logger = get_logger("access.schema")
        by_name: Dict[str, EntitySpec] = {}
        for entity in entities:
            if entity.name in by_name:
                raise PolicyConfigurationError(
                    f"Entity '{entity.name}' is declared twice",
                    details={"entity": entity.name}
                )
            by_name[entity.name] = entity
        self._entities: Mapping[str, EntitySpec] = MappingProxyType(by_name)
        self._check_structure()
        self.logger.debug("Schema model built", entities=len(self._entities))

    def _check_structure(self):
        for entity in self._entities.values():
            keys = [spec.name for spec in entity.fields if spec.pk]
            if len(keys) != 1:
                raise PolicyConfigurationError(
                    f"Entity '{entity.name}' must have exactly one primary key",
                    details={"entity": entity.name, "primary_keys": keys}
                )
            for spec in entity.fields:
                if spec.type in (FieldType.REFERENCE, FieldType.BACKREF):
                    if spec.target not in self._entities:
                        raise PolicyConfigurationError(
                            f"Field '{entity.name}.{spec.name}' targets unknown entity '{spec.target}'",
                            details={"entity": entity.name, "field": spec.name, "target": spec.target}
                        )
                if spec.type == FieldType.BACKREF and (spec.pk or spec.unique):
                    raise PolicyConfigurationError(
                        f"Back-reference '{entity.name}.{spec.name}' cannot be a key",
                        details={"entity": entity.name, "field": spec.name}
                    )

    @property
    def entities(self) -> Tuple[EntitySpec, ...]:
        return tuple(self._entities.values())

    def entity_names(self) -> Tuple[str, ...]:
        return tuple(self._entities)

    def has_entity(self, name: str) -> bool:
        return name in self._entities

    def entity(self, name: str) -> EntitySpec:
        """Get an entity by name."""
        try:
            return self._entities[name]
        except KeyError:
            raise PolicyConfigurationError(
                f"Unknown entity '{name}'", details={"entity": name}
            ) from None

    def entity_by_plural(self, plural: str) -> EntitySpec:
        for entity in self._entities.values():
            if entity.plural_name == plural:
                return entity
        raise PolicyConfigurationError(
            f"Unknown entity plural '{plural}'", details={"plural": plural}
        )

    def has_field(self, entity: str, name: str) -> bool:
        return self.entity(entity).field(name) is not None

    def field(self, entity: str, name: str) -> FieldSpec:
        """Get a field of an entity by name."""
        spec = self.entity(entity).field(name)
        if spec is None:
            raise PolicyConfigurationError(
                f"Unknown field '{entity}.{name}'",
                details={"entity": entity, "field": name}
            )
        return spec

    def unique_groups(self, entity: str) -> Mapping[str, Tuple[str, ...]]:
        return self.entity(entity).unique_groups

    def in_unique_group(self, entity: str, name: str, group: str) -> bool:
        """Whether ``entity.name`` participates in uniqueness group ``group``."""
        return name in self.unique_groups(entity).get(group, ())

    def coerce(self, entity: str, name: str, value: Any) -> Any:
        """Normalize a value stored in ``entity.name`` for comparison.

        References compare by the primary key type of their target.
        """
        spec = self.field(entity, name)
        if spec.type == FieldType.REFERENCE:
            target_key = self.entity(spec.target).primary_key
            return coerce_value(target_key.type, value, target_key.item_type)
        return coerce_value(spec.type, value, spec.item_type)
