"""
Request context models for the Access Service.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from shared.errors import PolicyConfigurationError
from ..schema.models import FieldType


@dataclass(frozen=True)
class ContextAttribute:
    """A declared attribute of the request context.

    Claim attributes are copied from verified token claims; derived
    attributes are produced by a named lookup keyed by another attribute.
    """
    name: str
    type: FieldType = FieldType.STRING
    claim: Optional[str] = None
    lookup: Optional[str] = None
    key: Optional[str] = None

    @property
    def derived(self) -> bool:
        return self.lookup is not None

    @property
    def claim_name(self) -> str:
        return self.claim or self.name


class ContextSchema:
    """The declared shape of the request context."""

    def __init__(self, attributes: Iterable[ContextAttribute]):
        by_name: Dict[str, ContextAttribute] = {}
        for attribute in attributes:
            if attribute.name in by_name:
                raise PolicyConfigurationError(
                    f"Context attribute '{attribute.name}' is declared twice",
                    details={"attribute": attribute.name}
                )
            by_name[attribute.name] = attribute
        self._attributes: Mapping[str, ContextAttribute] = MappingProxyType(by_name)

        for attribute in self._attributes.values():
            if attribute.derived and attribute.key not in self._attributes:
                raise PolicyConfigurationError(
                    f"Derived attribute '{attribute.name}' is keyed by unknown attribute '{attribute.key}'",
                    details={"attribute": attribute.name, "key": attribute.key}
                )

    @property
    def attributes(self) -> Tuple[ContextAttribute, ...]:
        return tuple(self._attributes.values())

    def has_attribute(self, name: str) -> bool:
        return name in self._attributes

    def attribute(self, name: str) -> ContextAttribute:
        try:
            return self._attributes[name]
        except KeyError:
            raise PolicyConfigurationError(
                f"Unknown context attribute '{name}'", details={"attribute": name}
            ) from None

    @property
    def subject_attribute(self) -> Optional[ContextAttribute]:
        """The attribute carrying the ``sub`` claim, if declared."""
        for attribute in self._attributes.values():
            if not attribute.derived and attribute.claim_name == "sub":
                return attribute
        return None


@dataclass(frozen=True)
class RequestContext:
    """Resolved context of one request.

    An unauthenticated context has no attributes; every lookup fails.
    """
    attributes: Mapping[str, Any] = field(default_factory=dict)
    authenticated: bool = True

    def __post_init__(self):
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @classmethod
    def anonymous(cls) -> "RequestContext":
        return cls(attributes={}, authenticated=False)

    def get(self, name: str) -> Any:
        if not self.authenticated:
            return None
        return self.attributes.get(name)

    @property
    def role(self) -> Optional[str]:
        return self.get("role")

    @property
    def clerk_id(self) -> Optional[str]:
        return self.get("clerk_id")

    @property
    def email(self) -> Optional[str]:
        return self.get("email")

    @property
    def first_name(self) -> Optional[str]:
        return self.get("first_name")

    @property
    def last_name(self) -> Optional[str]:
        return self.get("last_name")

    @property
    def auth_user_id(self) -> Any:
        return self.get("auth_user_id")


class VerifiedClaims(BaseModel):
    """Claims of a token already verified upstream."""
    model_config = ConfigDict(extra="allow")

    sub: str
