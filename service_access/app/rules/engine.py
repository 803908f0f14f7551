"""
Policy evaluation engine for the Access Service.
"""

from typing import Any, Callable, Mapping, Optional, Tuple, Union

from shared.errors import PolicyConfigurationError
from shared.logging import get_logger
from ..context.models import ContextSchema, RequestContext
from ..schema.models import coerce_value
from ..schema.registry import SchemaModel
from .models import (
    And, Const, ContextRef, Decision, Equals, EvaluationResult, Literal, Not,
    Operand, Operation, Or, PolicySource, Predicate, RecordRef
)
from .policy import PolicyModel

Record = Mapping[str, Any]
Normalizer = Callable[[Any], Any]

_UNRESOLVED = object()


class PolicyEvaluator:
    """Decides whether an operation on an entity or field is permitted.

    Evaluation is synchronous and keeps no state between calls; the schema,
    policy and context tables are read-only after construction.
    """

    def __init__(self, schema: SchemaModel, policy: PolicyModel, context_schema: ContextSchema):
        self.schema = schema
        self.policy = policy
        self.context_schema = context_schema
        self.logger = get_logger("access.evaluator")

    def evaluate(self, operation: Union[Operation, str], entity: str,
                 context: Optional[RequestContext], record: Optional[Record] = None,
                 field: Optional[str] = None) -> Decision:
        """Evaluate access and return ALLOW or DENY."""
        return self.explain(operation, entity, context, record=record, field=field).decision

    def is_allowed(self, operation: Union[Operation, str], entity: str,
                   context: Optional[RequestContext], record: Optional[Record] = None,
                   field: Optional[str] = None) -> bool:
        return self.evaluate(operation, entity, context, record=record, field=field) == Decision.ALLOW

    def explain(self, operation: Union[Operation, str], entity: str,
                context: Optional[RequestContext], record: Optional[Record] = None,
                field: Optional[str] = None) -> EvaluationResult:
        """Evaluate access and report which predicate applied and why."""
        operation = self._operation(operation)
        self.schema.entity(entity)
        if field is not None:
            self.schema.field(entity, field)
        if context is None:
            context = RequestContext.anonymous()

        def result(allowed: bool, source: PolicySource, reason: str) -> EvaluationResult:
            decision = Decision.ALLOW if allowed else Decision.DENY
            self.logger.debug(
                "Policy decision",
                entity=entity,
                field=field,
                operation=operation.value,
                decision=decision.value,
                source=source.value,
                reason=reason
            )
            return EvaluationResult(
                decision=decision,
                source=source,
                reason=reason,
                entity=entity,
                operation=operation,
                field=field
            )

        if self.policy.is_sealed(entity, operation):
            return result(False, PolicySource.SEALED, f"{operation.value} on {entity} is disabled")

        predicate, source = self._select(entity, field, operation)
        if predicate is None:
            return result(False, PolicySource.DEFAULT, "No predicate declared")

        self._check_references(entity, field, operation, predicate)

        if isinstance(predicate, Literal):
            return result(predicate.value, source, "Literal predicate")

        if not context.authenticated:
            return result(False, PolicySource.ANONYMOUS, "Unauthenticated context")

        if record is None and predicate.references_record():
            return result(False, source, "Predicate references a record but none was supplied")

        value = self._evaluate(predicate, entity, context, record)
        if value is None:
            return result(False, source, "Predicate depends on an absent value")
        return result(value, source, "Predicate matched" if value else "Predicate not matched")

    def _operation(self, operation: Union[Operation, str]) -> Operation:
        if isinstance(operation, Operation):
            return operation
        try:
            return Operation(operation)
        except ValueError:
            raise PolicyConfigurationError(
                f"Unknown operation '{operation}'", details={"operation": operation}
            ) from None

    def _select(self, entity: str, field: Optional[str],
                operation: Operation) -> Tuple[Optional[Predicate], PolicySource]:
        """Field-level predicate if declared, else the entity-level one."""
        if field is not None:
            predicate = self.policy.field_predicate(entity, field, operation)
            if predicate is not None:
                return predicate, PolicySource.FIELD
        return self.policy.entity_predicate(entity, operation), PolicySource.ENTITY

    def _check_references(self, entity: str, field: Optional[str], operation: Operation,
                          predicate: Predicate):
        details = {"entity": entity, "field": field, "operation": operation.value}
        for name in predicate.context_refs():
            if not self.context_schema.has_attribute(name):
                self.logger.error("Predicate references unknown context attribute", reference=name, **details)
                raise PolicyConfigurationError(
                    f"Predicate references unknown context attribute '{name}'",
                    details={**details, "reference": name}
                )
        for name in predicate.record_refs():
            if not self.schema.has_field(entity, name):
                self.logger.error("Predicate references unknown record field", reference=name, **details)
                raise PolicyConfigurationError(
                    f"Predicate references unknown record field '{entity}.{name}'",
                    details={**details, "reference": name}
                )

    def _evaluate(self, predicate: Predicate, entity: str, context: RequestContext,
                  record: Optional[Record]) -> Optional[bool]:
        """Three-valued evaluation; ``None`` means unknown because a value is absent."""
        if isinstance(predicate, Literal):
            return predicate.value
        if isinstance(predicate, Equals):
            return self._equals(predicate, entity, context, record)
        if isinstance(predicate, Or):
            unknown = False
            for item in predicate.items:
                value = self._evaluate(item, entity, context, record)
                if value is True:
                    return True
                unknown = unknown or value is None
            return None if unknown else False
        if isinstance(predicate, And):
            unknown = False
            for item in predicate.items:
                value = self._evaluate(item, entity, context, record)
                if value is False:
                    return False
                unknown = unknown or value is None
            return None if unknown else True
        if isinstance(predicate, Not):
            value = self._evaluate(predicate.item, entity, context, record)
            return None if value is None else not value
        raise PolicyConfigurationError(
            f"Unsupported predicate {type(predicate).__name__}",
            details={"entity": entity}
        )

    def _equals(self, predicate: Equals, entity: str, context: RequestContext,
                record: Optional[Record]) -> Optional[bool]:
        left, left_norm = self._resolve(predicate.left, entity, context, record)
        right, right_norm = self._resolve(predicate.right, entity, context, record)
        if left is _UNRESOLVED or right is _UNRESOLVED:
            return None

        # Record field types take precedence over context attribute types.
        normalize = left_norm or right_norm
        if isinstance(predicate.right, RecordRef) and right_norm is not None:
            normalize = right_norm
        if normalize is None:
            return _strict_equal(left, right)
        try:
            return normalize(left) == normalize(right)
        except (TypeError, ValueError):
            return False

    def _resolve(self, operand: Operand, entity: str, context: RequestContext,
                 record: Optional[Record]) -> Tuple[Any, Optional[Normalizer]]:
        if isinstance(operand, Const):
            return (_UNRESOLVED if operand.value is None else operand.value), None

        if isinstance(operand, ContextRef):
            attribute = self.context_schema.attribute(operand.name)
            value = context.get(operand.name)
            if value is None:
                return _UNRESOLVED, None
            return value, lambda v: coerce_value(attribute.type, v)

        if isinstance(operand, RecordRef):
            value = None if record is None else record.get(operand.name)
            if value is None:
                return _UNRESOLVED, None
            return value, lambda v: self.schema.coerce(entity, operand.name, v)

        raise PolicyConfigurationError(
            f"Unsupported operand {type(operand).__name__}", details={"entity": entity}
        )


def _strict_equal(left: Any, right: Any) -> bool:
    """Equality that never equates booleans with numbers."""
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right
