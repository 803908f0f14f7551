"""
Shared fixtures for Access Service tests.
"""

import uuid

import pytest

from service_access.app.context.models import RequestContext
from service_access.app.definitions.concerts import build_catalog
from service_access.app.rules.engine import PolicyEvaluator


@pytest.fixture
def catalog():
    """Built-in membership and events catalog."""
    return build_catalog()


@pytest.fixture
def evaluator(catalog):
    """Evaluator over the built-in catalog."""
    return PolicyEvaluator(catalog.schema, catalog.policy, catalog.context_schema)


@pytest.fixture
def member():
    """Authenticated non-admin context."""
    return RequestContext({
        "clerk_id": "u1",
        "role": "member",
        "email": "u1@example.com",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "auth_user_id": uuid.UUID("7f1c2b1e-3c55-4a8e-9a57-3c1f3f8e2d10")
    })


@pytest.fixture
def other_member():
    """Authenticated non-admin context with a different identity."""
    return RequestContext({"clerk_id": "u2", "role": "member"})


@pytest.fixture
def admin():
    """Authenticated admin context."""
    return RequestContext({"clerk_id": "a1", "role": "admin"})
