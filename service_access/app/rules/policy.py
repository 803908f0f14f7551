"""
Policy model for the Access Service.

Per entity, one access declaration plus optional per-field declarations
that override the entity-level predicate for the same operation kind.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple

from shared.errors import PolicyConfigurationError
from shared.logging import get_logger
from .models import Access, Literal, Operation, Predicate


@dataclass(frozen=True)
class EntityPolicy:
    """Access declarations of one entity."""
    entity: str
    access: Access = Access()
    fields: Mapping[str, Access] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))


class PolicyModel:
    """Lookup table of predicates by (entity, field, operation)."""

    def __init__(self, policies: Iterable[EntityPolicy]):
        self.logger = get_logger("access.policy")
        by_entity: Dict[str, EntityPolicy] = {}
        for policy in policies:
            if policy.entity in by_entity:
                raise PolicyConfigurationError(
                    f"Policy for '{policy.entity}' is declared twice",
                    details={"entity": policy.entity}
                )
            by_entity[policy.entity] = policy
        self._policies: Mapping[str, EntityPolicy] = MappingProxyType(by_entity)

    @property
    def policies(self) -> Tuple[EntityPolicy, ...]:
        return tuple(self._policies.values())

    def policy_for(self, entity: str) -> Optional[EntityPolicy]:
        return self._policies.get(entity)

    def entity_predicate(self, entity: str, operation: Operation) -> Optional[Predicate]:
        policy = self._policies.get(entity)
        if policy is None:
            return None
        return policy.access.for_operation(operation)

    def field_predicate(self, entity: str, field_name: str, operation: Operation) -> Optional[Predicate]:
        policy = self._policies.get(entity)
        if policy is None:
            return None
        access = policy.fields.get(field_name)
        if access is None:
            return None
        return access.for_operation(operation)

    def is_sealed(self, entity: str, operation: Operation) -> bool:
        """Whether the entity-level predicate is the literal ``false``."""
        return self.entity_predicate(entity, operation) == Literal(False)

    def validate(self, schema, context_schema) -> None:
        """Check every predicate reference against the schema and context shape.

        Raises PolicyConfigurationError on the first unknown entity, field,
        record reference or context attribute.
        """
        for policy in self._policies.values():
            entity = schema.entity(policy.entity)
            for slot, predicate in policy.access.predicates():
                self._validate_predicate(entity, predicate, context_schema, slot, None)
            for field_name, access in policy.fields.items():
                if entity.field(field_name) is None:
                    raise PolicyConfigurationError(
                        f"Policy names unknown field '{entity.name}.{field_name}'",
                        details={"entity": entity.name, "field": field_name}
                    )
                for slot, predicate in access.predicates():
                    self._validate_predicate(entity, predicate, context_schema, slot, field_name)

        self.logger.info("Policy model validated", entities=len(self._policies))

    def _validate_predicate(self, entity, predicate: Predicate, context_schema,
                            slot: str, field_name: Optional[str]):
        details = {"entity": entity.name, "operation": slot, "field": field_name}
        for name in predicate.record_refs():
            if entity.field(name) is None:
                raise PolicyConfigurationError(
                    f"Predicate references unknown record field '{entity.name}.{name}'",
                    details={**details, "reference": name}
                )
        for name in predicate.context_refs():
            if not context_schema.has_attribute(name):
                raise PolicyConfigurationError(
                    f"Predicate references unknown context attribute '{name}'",
                    details={**details, "reference": name}
                )
