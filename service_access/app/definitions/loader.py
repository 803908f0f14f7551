"""
Definition document loader for the Access Service.

A definition document declares the context shape and, per entity, its
fields and access predicates. Documents are plain mappings, usually read
from YAML.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from shared.errors import PolicyConfigurationError
from shared.logging import get_logger
from ..context.models import ContextAttribute, ContextSchema
from ..rules.models import (
    Access, And, Const, ContextRef, Equals, Literal, Not, Operand, Or, Predicate, RecordRef
)
from ..rules.policy import EntityPolicy, PolicyModel
from ..schema.models import EntitySpec, FieldSpec, FieldType, Generated
from ..schema.registry import SchemaModel

logger = get_logger("access.loader")

# "Set" is the document spelling of a one-to-many back-reference.
_TYPE_ALIASES = {"Set": FieldType.BACKREF}


class AccessDocument(BaseModel):
    """Access slots; each value is a predicate document."""
    model_config = ConfigDict(extra="forbid")

    query: Any = None
    mutation: Any = None
    create: Any = None
    update: Any = None
    delete: Any = None


class FieldDocument(BaseModel):
    """Declaration of one field."""
    model_config = ConfigDict(extra="forbid")

    type: str
    optional: bool = False
    pk: bool = False
    index: bool = False
    unique: Union[bool, str, List[str], None] = None
    default: Any = None
    target: Optional[str] = None
    items: Optional[str] = None
    many: Optional[bool] = None
    access: Optional[AccessDocument] = None


class EntityDocument(BaseModel):
    """Declaration of one entity."""
    model_config = ConfigDict(extra="forbid")

    plural: Optional[str] = None
    fields: Dict[str, FieldDocument]
    access: AccessDocument = Field(default_factory=AccessDocument)


class ContextAttributeDocument(BaseModel):
    """Declaration of one context attribute."""
    model_config = ConfigDict(extra="forbid")

    type: str = "String"
    claim: Optional[str] = None
    lookup: Optional[str] = None
    key: Optional[str] = None


class DefinitionDocument(BaseModel):
    """Top-level definition document."""
    model_config = ConfigDict(extra="forbid")

    context: Dict[str, ContextAttributeDocument] = Field(default_factory=dict)
    entities: Dict[str, EntityDocument]


@dataclass(frozen=True)
class Catalog:
    """The three immutable tables consumed by the evaluator."""
    schema: SchemaModel
    policy: PolicyModel
    context_schema: ContextSchema


def parse_operand(document: Any) -> Operand:
    """Parse ``{record: x}``, ``{context: x}``, ``{const: v}`` or a bare constant."""
    if isinstance(document, dict):
        if len(document) != 1:
            raise PolicyConfigurationError(
                "Operand must have exactly one key", details={"operand": document}
            )
        (kind, value), = document.items()
        if kind == "record":
            return RecordRef(str(value))
        if kind == "context":
            return ContextRef(str(value))
        if kind == "const":
            return Const(value)
        raise PolicyConfigurationError(
            f"Unknown operand kind '{kind}'", details={"operand": document}
        )
    if isinstance(document, list):
        raise PolicyConfigurationError(
            "Operand cannot be a list", details={"operand": document}
        )
    return Const(document)


def parse_predicate(document: Any) -> Predicate:
    """Parse a predicate document into a predicate tree."""
    if isinstance(document, bool):
        return Literal(document)
    if not isinstance(document, dict) or len(document) != 1:
        raise PolicyConfigurationError(
            "Predicate must be a boolean or a single-key mapping",
            details={"predicate": document}
        )

    (kind, body), = document.items()
    if kind == "eq":
        if not isinstance(body, list) or len(body) != 2:
            raise PolicyConfigurationError(
                "'eq' takes exactly two operands", details={"predicate": document}
            )
        return Equals(parse_operand(body[0]), parse_operand(body[1]))
    if kind in ("and", "or"):
        if not isinstance(body, list) or not body:
            raise PolicyConfigurationError(
                f"'{kind}' takes a non-empty list", details={"predicate": document}
            )
        items = tuple(parse_predicate(item) for item in body)
        return And(items) if kind == "and" else Or(items)
    if kind == "not":
        return Not(parse_predicate(body))
    raise PolicyConfigurationError(
        f"Unknown predicate kind '{kind}'", details={"predicate": document}
    )


def _parse_access(document: Optional[AccessDocument]) -> Access:
    if document is None:
        return Access()
    slots = {}
    for slot in ("query", "mutation", "create", "update", "delete"):
        value = getattr(document, slot)
        if value is not None:
            slots[slot] = parse_predicate(value)
    return Access(**slots)


def _field_type(name: str) -> FieldType:
    if name in _TYPE_ALIASES:
        return _TYPE_ALIASES[name]
    try:
        return FieldType(name)
    except ValueError:
        raise PolicyConfigurationError(
            f"Unknown field type '{name}'", details={"type": name}
        ) from None


def _parse_field(name: str, document: FieldDocument) -> FieldSpec:
    field_type = _field_type(document.type)

    if document.unique is True:
        unique = (name,)
    elif isinstance(document.unique, str):
        unique = (document.unique,)
    elif isinstance(document.unique, list):
        unique = tuple(document.unique)
    else:
        unique = ()

    default = document.default
    if default == Generated.UUID.value:
        default = Generated.UUID

    many = document.many
    if many is None:
        many = document.type == "Set"

    return FieldSpec(
        name=name,
        type=field_type,
        optional=document.optional,
        pk=document.pk,
        index=document.index,
        unique=unique,
        default=default,
        target=document.target,
        item_type=_field_type(document.items) if document.items else None,
        many=many
    )


def load_definitions(document: Dict[str, Any]) -> Catalog:
    """Build the schema, policy and context tables from a document."""
    try:
        parsed = DefinitionDocument.model_validate(document)
    except ValidationError as e:
        raise PolicyConfigurationError(
            "Malformed definition document", details={"errors": e.errors(include_url=False)}
        ) from e

    attributes = [
        ContextAttribute(
            name=name,
            type=_field_type(attr.type),
            claim=attr.claim,
            lookup=attr.lookup,
            key=attr.key
        )
        for name, attr in parsed.context.items()
    ]

    entities = []
    policies = []
    for entity_name, entity_doc in parsed.entities.items():
        fields = tuple(_parse_field(name, doc) for name, doc in entity_doc.fields.items())
        entities.append(EntitySpec(name=entity_name, fields=fields, plural=entity_doc.plural))
        policies.append(EntityPolicy(
            entity=entity_name,
            access=_parse_access(entity_doc.access),
            fields={
                name: _parse_access(doc.access)
                for name, doc in entity_doc.fields.items()
                if doc.access is not None
            }
        ))

    catalog = Catalog(
        schema=SchemaModel(entities),
        policy=PolicyModel(policies),
        context_schema=ContextSchema(attributes)
    )
    logger.info("Definitions loaded", entities=len(entities), context_attributes=len(attributes))
    return catalog


def load_definitions_file(path: Union[str, Path]) -> Catalog:
    """Load a YAML definition document from disk."""
    try:
        with open(path, 'r') as f:
            document = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise PolicyConfigurationError(
            f"Invalid YAML in {path}: {e}", details={"path": str(path)}
        ) from e

    if not isinstance(document, dict):
        raise PolicyConfigurationError(
            f"Definition document {path} must be a mapping", details={"path": str(path)}
        )
    return load_definitions(document)


def dump_definitions(catalog: Catalog) -> Dict[str, Any]:
    """Render a catalog back into document form."""
    context = {}
    for attribute in catalog.context_schema.attributes:
        entry: Dict[str, Any] = {"type": attribute.type.value}
        if attribute.claim:
            entry["claim"] = attribute.claim
        if attribute.lookup:
            entry["lookup"] = attribute.lookup
            entry["key"] = attribute.key
        context[attribute.name] = entry

    entities = {}
    for entity in catalog.schema.entities:
        policy = catalog.policy.policy_for(entity.name)
        fields = {}
        for spec in entity.fields:
            entry = {"type": spec.type.value}
            if spec.optional:
                entry["optional"] = True
            if spec.pk:
                entry["pk"] = True
            if spec.index:
                entry["index"] = True
            if spec.unique:
                entry["unique"] = list(spec.unique)
            if spec.default is not None:
                entry["default"] = spec.default.value if isinstance(spec.default, Generated) else spec.default
            if spec.target:
                entry["target"] = spec.target
            if spec.item_type:
                entry["items"] = spec.item_type.value
            if spec.type == FieldType.BACKREF:
                entry["many"] = spec.many
            if policy is not None and spec.name in policy.fields:
                entry["access"] = policy.fields[spec.name].to_document()
            fields[spec.name] = entry

        entry = {"fields": fields}
        if entity.plural:
            entry["plural"] = entity.plural
        if policy is not None:
            entry["access"] = policy.access.to_document()
        entities[entity.name] = entry

    return {"context": context, "entities": entities}
