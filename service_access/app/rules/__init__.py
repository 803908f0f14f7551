"""
Rules package.

Defines the predicate tree, the per-entity and per-field policy model, and
the evaluation engine used by the Access Service. Predicates are plain data
(Literal, Equals, And, Or, Not) interpreted by a pure function, returning a
deterministic allow/deny decision and a rationale for observability.

Modules of interest:
- models: Operations, decisions, operands, predicates and access slots.
- policy: PolicyModel lookup by (entity, field, operation).
- engine: Evaluation algorithm with override selection and equality checks.
"""

from .engine import PolicyEvaluator
from .models import (
    ALWAYS, NEVER, Access, And, Const, ContextRef, Decision, Equals,
    EvaluationResult, Literal, Not, Operation, Or, PolicySource, Predicate,
    RecordRef, all_of, any_of, context, eq, negate, record
)
from .policy import EntityPolicy, PolicyModel

__all__ = [
    "ALWAYS",
    "NEVER",
    "Access",
    "And",
    "Const",
    "ContextRef",
    "Decision",
    "EntityPolicy",
    "Equals",
    "EvaluationResult",
    "Literal",
    "Not",
    "Operation",
    "Or",
    "PolicyEvaluator",
    "PolicyModel",
    "PolicySource",
    "Predicate",
    "RecordRef",
    "all_of",
    "any_of",
    "context",
    "eq",
    "negate",
    "record",
]
