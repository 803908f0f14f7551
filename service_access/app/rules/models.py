"""
Predicate and access data models for the Access Service.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union


class Operation(str, Enum):
    """Operation kinds."""
    QUERY = "query"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Decision(str, Enum):
    """Evaluation outcome."""
    ALLOW = "allow"
    DENY = "deny"


class PolicySource(str, Enum):
    """Where the applied predicate came from."""
    FIELD = "field"
    ENTITY = "entity"
    SEALED = "sealed"
    DEFAULT = "default"
    ANONYMOUS = "anonymous"


# Operands

@dataclass(frozen=True)
class Const:
    """A literal value."""
    value: Any

    def to_document(self) -> Any:
        return {"const": self.value}


@dataclass(frozen=True)
class ContextRef:
    """A named attribute of the request context."""
    name: str

    def to_document(self) -> Any:
        return {"context": self.name}


@dataclass(frozen=True)
class RecordRef:
    """A named field of the record being accessed."""
    name: str

    def to_document(self) -> Any:
        return {"record": self.name}


Operand = Union[Const, ContextRef, RecordRef]


# Predicates

class Predicate(ABC):
    """Base class of the predicate tree."""

    def children(self) -> Tuple["Predicate", ...]:
        return ()

    def operands(self) -> Tuple[Operand, ...]:
        return ()

    def walk(self) -> Iterator["Predicate"]:
        yield self
        for child in self.children():
            yield from child.walk()

    def context_refs(self) -> List[str]:
        return [op.name for node in self.walk() for op in node.operands() if isinstance(op, ContextRef)]

    def record_refs(self) -> List[str]:
        return [op.name for node in self.walk() for op in node.operands() if isinstance(op, RecordRef)]

    def references_record(self) -> bool:
        return bool(self.record_refs())

    @abstractmethod
    def to_document(self) -> Any:
        """Render the predicate as a definition document."""


@dataclass(frozen=True)
class Literal(Predicate):
    """Always true or always false."""
    value: bool

    def to_document(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Equals(Predicate):
    """Exact, type-aware equality of two operands."""
    left: Operand
    right: Operand

    def operands(self) -> Tuple[Operand, ...]:
        return (self.left, self.right)

    def to_document(self) -> Any:
        return {"eq": [self.left.to_document(), self.right.to_document()]}


@dataclass(frozen=True)
class And(Predicate):
    """Conjunction; short-circuits on the first false item."""
    items: Tuple[Predicate, ...]

    def children(self) -> Tuple[Predicate, ...]:
        return self.items

    def to_document(self) -> Any:
        return {"and": [item.to_document() for item in self.items]}


@dataclass(frozen=True)
class Or(Predicate):
    """Disjunction; short-circuits on the first true item."""
    items: Tuple[Predicate, ...]

    def children(self) -> Tuple[Predicate, ...]:
        return self.items

    def to_document(self) -> Any:
        return {"or": [item.to_document() for item in self.items]}


@dataclass(frozen=True)
class Not(Predicate):
    """Negation."""
    item: Predicate

    def children(self) -> Tuple[Predicate, ...]:
        return (self.item,)

    def to_document(self) -> Any:
        return {"not": self.item.to_document()}


ALWAYS = Literal(True)
NEVER = Literal(False)


def _operand(value: Any) -> Operand:
    if isinstance(value, (Const, ContextRef, RecordRef)):
        return value
    return Const(value)


def context(name: str) -> ContextRef:
    return ContextRef(name)


def record(name: str) -> RecordRef:
    return RecordRef(name)


def eq(left: Any, right: Any) -> Equals:
    """Equality predicate; bare values become constants."""
    return Equals(_operand(left), _operand(right))


def any_of(*items: Predicate) -> Or:
    return Or(tuple(items))


def all_of(*items: Predicate) -> And:
    return And(tuple(items))


def negate(item: Predicate) -> Not:
    return Not(item)


@dataclass(frozen=True)
class Access:
    """Access declaration for an entity or a single field.

    ``mutation`` applies to create, update and delete unless the specific
    kind is declared.
    """
    query: Optional[Predicate] = None
    mutation: Optional[Predicate] = None
    create: Optional[Predicate] = None
    update: Optional[Predicate] = None
    delete: Optional[Predicate] = None

    def for_operation(self, operation: Operation) -> Optional[Predicate]:
        if operation == Operation.QUERY:
            return self.query
        specific = getattr(self, operation.value)
        return specific if specific is not None else self.mutation

    def predicates(self) -> Iterator[Tuple[str, Predicate]]:
        for slot in ("query", "mutation", "create", "update", "delete"):
            predicate = getattr(self, slot)
            if predicate is not None:
                yield slot, predicate

    def to_document(self) -> Dict[str, Any]:
        return {slot: predicate.to_document() for slot, predicate in self.predicates()}


@dataclass(frozen=True)
class EvaluationResult:
    """Result of a policy evaluation."""
    decision: Decision
    source: PolicySource
    reason: str
    entity: str
    operation: Operation
    field: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.decision == Decision.ALLOW
