"""
Context resolver for the Access Service.

Turns verified token claims into a RequestContext, running any derived
lookups once per request before evaluation.
"""

import inspect
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from pydantic import ValidationError

from shared.errors import AuthenticationError, PolicyConfigurationError
from shared.logging import get_logger, set_subject_context
from .models import ContextSchema, RequestContext, VerifiedClaims

Lookup = Callable[[Any], Union[Any, Awaitable[Any]]]


class ContextResolver:
    """Build request contexts from verified claims."""

    def __init__(self, context_schema: ContextSchema, lookups: Optional[Mapping[str, Lookup]] = None):
        self.context_schema = context_schema
        self.lookups: Dict[str, Lookup] = dict(lookups or {})
        self.logger = get_logger("access.resolver")

    def register_lookup(self, name: str, lookup: Lookup):
        """Register a derived-attribute lookup by name."""
        self.lookups[name] = lookup
        self.logger.info("Lookup registered", lookup=name)

    def claim_attributes(self, claims: Mapping[str, Any]) -> Dict[str, Any]:
        """Map claim values onto declared claim attributes."""
        try:
            verified = VerifiedClaims.model_validate(dict(claims))
        except ValidationError as e:
            self.logger.warning("Claims rejected", error=str(e))
            raise AuthenticationError(
                "Claims are missing the subject", details={"errors": e.errors(include_url=False)}
            ) from e

        data = verified.model_dump()
        attributes: Dict[str, Any] = {}
        for attribute in self.context_schema.attributes:
            if attribute.derived:
                continue
            value = data.get(attribute.claim_name)
            if value is not None:
                attributes[attribute.name] = value
        return attributes

    async def resolve(self, claims: Optional[Mapping[str, Any]]) -> RequestContext:
        """Resolve claims into a context; ``None`` yields the anonymous context."""
        if claims is None:
            return RequestContext.anonymous()

        attributes = self.claim_attributes(claims)
        subject = self.context_schema.subject_attribute
        if subject is not None:
            set_subject_context(attributes.get(subject.name))

        for attribute in self.context_schema.attributes:
            if not attribute.derived:
                continue
            key = attributes.get(attribute.key)
            if key is None:
                continue
            value = await self._run_lookup(attribute.lookup, attribute.name, key)
            if value is not None:
                attributes[attribute.name] = value

        self.logger.debug("Context resolved", attributes=sorted(attributes))
        return RequestContext(attributes=attributes, authenticated=True)

    async def _run_lookup(self, name: str, attribute: str, key: Any) -> Any:
        lookup = self.lookups.get(name)
        if lookup is None:
            raise PolicyConfigurationError(
                f"No lookup registered for '{name}'",
                details={"lookup": name, "attribute": attribute}
            )
        try:
            value = lookup(key)
            if inspect.isawaitable(value):
                value = await value
            return value
        except Exception as e:
            self.logger.error("Context lookup failed", lookup=name, attribute=attribute, error=str(e))
            raise AuthenticationError(
                f"Could not resolve context attribute '{attribute}'",
                details={"lookup": name, "attribute": attribute}
            ) from e
