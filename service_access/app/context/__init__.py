"""
Context package.

Shape of the authenticated request context and the glue that builds it from
verified token claims. Token verification itself happens upstream; this
package only maps claims and runs derived lookups (for example resolving the
internal user id from the external identity).
"""

from .models import ContextAttribute, ContextSchema, RequestContext, VerifiedClaims
from .resolver import ContextResolver

__all__ = [
    "ContextAttribute",
    "ContextResolver",
    "ContextSchema",
    "RequestContext",
    "VerifiedClaims",
]
