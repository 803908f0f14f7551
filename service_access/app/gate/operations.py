"""
Operation gate for the Access Service.

Asks the evaluator before reads and writes, filters and redacts query
results, and runs schema validation only after access is granted. The gate
holds no records; callers pass the records they loaded.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from shared.errors import AccessDeniedError, ConstraintViolationError, PolicyConfigurationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..context.models import RequestContext
from ..rules.engine import PolicyEvaluator
from ..rules.models import EvaluationResult, Operation
from ..schema.validation import ConstraintValidator

Record = Mapping[str, Any]


class OperationGate:
    """Enforces access decisions around record operations."""

    def __init__(self, evaluator: PolicyEvaluator, validator: ConstraintValidator,
                 metrics: Optional[MetricsCollector] = None):
        self.evaluator = evaluator
        self.validator = validator
        self.metrics = metrics
        self.logger = get_logger("access.gate")

    def check(self, operation: Union[Operation, str], entity: str, context: Optional[RequestContext],
              record: Optional[Record] = None, field: Optional[str] = None) -> EvaluationResult:
        """Raise AccessDeniedError unless the operation is allowed."""
        result = self._explain(operation, entity, context, record, field)
        if not result.allowed:
            self.logger.info(
                "Access denied",
                entity=entity,
                field=field,
                operation=result.operation.value,
                source=result.source.value,
                reason=result.reason
            )
            raise AccessDeniedError(
                f"{result.operation.value} on {entity}{'.' + field if field else ''} is not permitted",
                details={
                    "entity": entity,
                    "field": field,
                    "operation": result.operation.value,
                    "source": result.source.value
                }
            )
        return result

    def filter_readable(self, entity: str, context: Optional[RequestContext],
                        records: Iterable[Record]) -> List[Record]:
        """Keep only the records the context may query."""
        return [
            record for record in records
            if self._explain(Operation.QUERY, entity, context, record, None).allowed
        ]

    def redact(self, entity: str, context: Optional[RequestContext], record: Record) -> Dict[str, Any]:
        """Return the fields of ``record`` whose query decision allows reading."""
        spec = self.evaluator.schema.entity(entity)
        visible: Dict[str, Any] = {}
        for name, value in record.items():
            if spec.field(name) is None:
                continue
            if self._explain(Operation.QUERY, entity, context, record, name).allowed:
                visible[name] = value
        return visible

    def prepare_create(self, entity: str, context: Optional[RequestContext], values: Record,
                       existing: Iterable[Record] = ()) -> Dict[str, Any]:
        """Check create access, then validate and apply defaults."""
        self.check(Operation.CREATE, entity, context)
        for name in values:
            if self.evaluator.schema.entity(entity).field(name) is not None:
                self.check(Operation.CREATE, entity, context, field=name)
        return self._validate(entity, lambda: self.validator.validate_create(entity, values, existing))

    def prepare_update(self, entity: str, context: Optional[RequestContext], current: Record,
                       changes: Record, existing: Iterable[Record] = ()) -> Dict[str, Any]:
        """Check update access on the record and each changed field, then validate."""
        self.check(Operation.UPDATE, entity, context, record=current)
        for name in changes:
            if self.evaluator.schema.entity(entity).field(name) is not None:
                self.check(Operation.UPDATE, entity, context, record=current, field=name)
        return self._validate(
            entity, lambda: self.validator.validate_update(entity, current, changes, existing)
        )

    def check_delete(self, entity: str, context: Optional[RequestContext], record: Record) -> EvaluationResult:
        return self.check(Operation.DELETE, entity, context, record=record)

    def _explain(self, operation, entity, context, record, field) -> EvaluationResult:
        try:
            if self.metrics is None:
                result = self.evaluator.explain(operation, entity, context, record=record, field=field)
            else:
                label = operation.value if isinstance(operation, Operation) else str(operation)
                with self.metrics.time_operation("access_check_duration_seconds", operation=label):
                    result = self.evaluator.explain(operation, entity, context, record=record, field=field)
        except PolicyConfigurationError:
            if self.metrics is not None:
                self.metrics.record_configuration_error()
            raise

        if self.metrics is not None:
            self.metrics.record_decision(entity, result.operation.value, result.allowed)
        return result

    def _validate(self, entity: str, validate):
        try:
            return validate()
        except ConstraintViolationError as e:
            if self.metrics is not None:
                self.metrics.record_constraint_violation(entity)
            self.logger.info("Write rejected", entity=entity, message=e.message, details=e.details)
            raise
