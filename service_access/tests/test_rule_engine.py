"""
Unit tests for the policy evaluation engine.
"""

import uuid
from datetime import date

import pytest

from shared.errors import PolicyConfigurationError
from service_access.app.context.models import RequestContext
from service_access.app.rules.engine import PolicyEvaluator
from service_access.app.rules.models import (
    ALWAYS, NEVER, Access, Decision, Operation, PolicySource, Predicate,
    all_of, any_of, context, eq, negate, record
)
from service_access.app.rules.policy import EntityPolicy, PolicyModel


class TestPublishedOrAdmin:
    """Concert, Venue and Artist are public when published, otherwise admin only."""

    @pytest.mark.parametrize("entity", ["Concert", "Venue", "Artist"])
    def test_non_admin_denied_unpublished(self, evaluator, member, entity):
        """Test a member cannot query an unpublished record."""
        decision = evaluator.evaluate(Operation.QUERY, entity, member, record={"publish": False})

        assert decision == Decision.DENY

    @pytest.mark.parametrize("entity", ["Concert", "Venue", "Artist"])
    def test_non_admin_allowed_published(self, evaluator, member, entity):
        """Test a member can query a published record."""
        decision = evaluator.evaluate(Operation.QUERY, entity, member, record={"publish": True})

        assert decision == Decision.ALLOW

    @pytest.mark.parametrize("entity", ["Concert", "Venue", "Artist"])
    @pytest.mark.parametrize("published", [True, False])
    def test_admin_allowed_regardless(self, evaluator, admin, entity, published):
        """Test an admin can query whatever the publish state."""
        decision = evaluator.evaluate(Operation.QUERY, entity, admin, record={"publish": published})

        assert decision == Decision.ALLOW

    def test_string_operation_accepted(self, evaluator, member):
        """Test operations can be passed by name."""
        assert evaluator.is_allowed("query", "Concert", member, record={"publish": True}) is True

    def test_mutation_admin_only(self, evaluator, member, admin):
        """Test mutation slot covers create, update and delete."""
        concert = {"publish": True}

        for operation in (Operation.UPDATE, Operation.DELETE):
            assert evaluator.evaluate(operation, "Concert", member, record=concert) == Decision.DENY
            assert evaluator.evaluate(operation, "Concert", admin, record=concert) == Decision.ALLOW
        assert evaluator.evaluate(Operation.CREATE, "Concert", member) == Decision.DENY
        assert evaluator.evaluate(Operation.CREATE, "Concert", admin) == Decision.ALLOW


class TestOwnerOrAdmin:
    """AuthUser records are visible to their owner and to admins."""

    @pytest.fixture
    def auth_user(self):
        return {"clerk_id": "u1", "email": "u1@example.com", "first_name": "Ada", "last_name": "Lovelace"}

    def test_self_access_allowed(self, evaluator, member, auth_user):
        """Test the owner may query their own user record."""
        result = evaluator.explain(Operation.QUERY, "AuthUser", member, record=auth_user)

        assert result.allowed
        assert result.source == PolicySource.ENTITY

    def test_other_identity_denied(self, evaluator, other_member, auth_user):
        """Test a different member is denied."""
        assert evaluator.evaluate(Operation.QUERY, "AuthUser", other_member, record=auth_user) == Decision.DENY

    def test_admin_allowed_regardless_of_identity(self, evaluator, admin, auth_user):
        """Test an admin is allowed without matching identity."""
        assert evaluator.evaluate(Operation.QUERY, "AuthUser", admin, record=auth_user) == Decision.ALLOW

    def test_identity_comparison_is_case_sensitive(self, evaluator, auth_user):
        """Test string equality does no case folding."""
        shouting = RequestContext({"clerk_id": "U1", "role": "member"})

        assert evaluator.evaluate(Operation.QUERY, "AuthUser", shouting, record=auth_user) == Decision.DENY

    def test_owner_cannot_mutate(self, evaluator, member, auth_user):
        """Test self access does not extend to mutation."""
        assert evaluator.evaluate(Operation.UPDATE, "AuthUser", member, record=auth_user) == Decision.DENY


class TestSealedAndDefaults:
    """Literal false and missing predicates."""

    @pytest.mark.parametrize("operation", [Operation.UPDATE, Operation.DELETE])
    @pytest.mark.parametrize("ctx", [
        RequestContext({"clerk_id": "a1", "role": "admin"}),
        RequestContext({"clerk_id": "u1", "role": "member"}),
        RequestContext.anonymous(),
        None,
    ])
    def test_payment_update_delete_never_allowed(self, evaluator, operation, ctx):
        """Test literal false denies every context and record."""
        payment = {"date": "2024-01-01", "note": "dues", "info_only": False}

        result = evaluator.explain(operation, "Payment", ctx, record=payment)

        assert result.decision == Decision.DENY
        assert result.source == PolicySource.SEALED

    def test_sealed_entity_ignores_field_override(self, catalog, admin):
        """Test a field override cannot widen a literal false."""
        policy = PolicyModel([
            EntityPolicy("Payment", Access(update=NEVER), fields={"note": Access(update=ALWAYS)})
        ])
        evaluator = PolicyEvaluator(catalog.schema, policy, catalog.context_schema)

        result = evaluator.explain(Operation.UPDATE, "Payment", admin, record={"note": "x"}, field="note")

        assert result.decision == Decision.DENY
        assert result.source == PolicySource.SEALED

    def test_payment_create_and_query_admin_only(self, evaluator, member, admin):
        """Test Payment create and query require admin."""
        payment = {"note": "dues"}

        assert evaluator.evaluate(Operation.CREATE, "Payment", admin) == Decision.ALLOW
        assert evaluator.evaluate(Operation.CREATE, "Payment", member) == Decision.DENY
        assert evaluator.evaluate(Operation.QUERY, "Payment", admin, record=payment) == Decision.ALLOW
        assert evaluator.evaluate(Operation.QUERY, "Payment", member, record=payment) == Decision.DENY

    @pytest.mark.parametrize("operation", [Operation.CREATE, Operation.UPDATE, Operation.DELETE])
    def test_undeclared_kind_denied_by_default(self, evaluator, admin, operation):
        """Test Notification writes are denied even to admins."""
        result = evaluator.explain(operation, "Notification", admin, record={"subject": "hi"})

        assert result.decision == Decision.DENY
        assert result.source == PolicySource.DEFAULT

    def test_entity_without_policy_denied(self, catalog, admin):
        """Test an entity absent from the policy model is denied."""
        evaluator = PolicyEvaluator(catalog.schema, PolicyModel([]), catalog.context_schema)

        assert evaluator.evaluate(Operation.QUERY, "Advisory", admin, record={}) == Decision.DENY


class TestFieldOverrides:
    """Field-level declarations override entity-level ones."""

    @pytest.fixture
    def membership(self):
        return {
            "auth_user": "7f1c2b1e-3c55-4a8e-9a57-3c1f3f8e2d10",
            "spouse_first_name": "Bo",
            "spouse_last_name": "Lee",
            "expiry": date(2025, 12, 31),
            "type": "family"
        }

    def test_field_override_opens_query(self, evaluator, member, membership):
        """Test expiry is queryable although the entity is admin only."""
        field_result = evaluator.explain(Operation.QUERY, "Membership", member, record=membership, field="expiry")
        entity_result = evaluator.explain(Operation.QUERY, "Membership", member, record=membership)

        assert field_result.allowed
        assert field_result.source == PolicySource.FIELD
        assert not entity_result.allowed

    def test_field_without_override_uses_entity(self, evaluator, member, membership):
        """Test a field with no declaration falls back to the entity predicate."""
        result = evaluator.explain(
            Operation.QUERY, "Membership", member, record=membership, field="spouse_first_name"
        )

        assert not result.allowed
        assert result.source == PolicySource.ENTITY

    def test_field_mutation_stays_admin_only(self, evaluator, member, admin, membership):
        """Test the override restricts mutation to admins."""
        assert evaluator.evaluate(
            Operation.UPDATE, "Membership", member, record=membership, field="type"
        ) == Decision.DENY
        assert evaluator.evaluate(
            Operation.UPDATE, "Membership", admin, record=membership, field="type"
        ) == Decision.ALLOW

    def test_field_override_can_narrow(self, catalog, member):
        """Test an override can also restrict a field of a public entity."""
        policy = PolicyModel([
            EntityPolicy(
                "Advisory",
                Access(query=ALWAYS),
                fields={"footer": Access(query=eq(context("role"), "admin"))}
            )
        ])
        evaluator = PolicyEvaluator(catalog.schema, policy, catalog.context_schema)
        advisory = {"level": "info", "message": "doors at 7", "footer": "internal"}

        assert evaluator.evaluate(Operation.QUERY, "Advisory", member, record=advisory) == Decision.ALLOW
        assert evaluator.evaluate(
            Operation.QUERY, "Advisory", member, record=advisory, field="footer"
        ) == Decision.DENY


class TestContextAndRecordAbsence:
    """Anonymous contexts and create without a record."""

    def test_anonymous_denied_non_literal(self, evaluator):
        """Test an anonymous context fails every non-literal predicate."""
        anonymous = RequestContext.anonymous()

        result = evaluator.explain(Operation.QUERY, "Concert", anonymous, record={"publish": True})

        assert result.decision == Decision.DENY
        assert result.source == PolicySource.ANONYMOUS

    def test_none_context_is_anonymous(self, evaluator):
        """Test a missing context behaves like the anonymous one."""
        assert evaluator.evaluate(Operation.QUERY, "Concert", None, record={"publish": True}) == Decision.DENY

    def test_anonymous_allowed_literal_true(self, evaluator):
        """Test literal true still allows anonymous queries."""
        assert evaluator.evaluate(Operation.QUERY, "Advisory", None, record={"level": "info"}) == Decision.ALLOW
        assert evaluator.evaluate(Operation.QUERY, "ConcertArtist", None, record={"rank": 1}) == Decision.ALLOW

    def test_anonymous_context_hides_attributes(self):
        """Test attribute lookups fail on an unauthenticated context."""
        ctx = RequestContext({"role": "admin"}, authenticated=False)

        assert ctx.role is None

    def test_missing_attribute_does_not_match(self, evaluator):
        """Test a context without a role is not an admin."""
        no_role = RequestContext({"clerk_id": "u1"})

        assert evaluator.evaluate(Operation.CREATE, "Advisory", no_role) == Decision.DENY

    def test_record_predicate_without_record_is_false(self, catalog, admin):
        """Test predicates that reference the record deny when none is supplied."""
        policy = PolicyModel([
            EntityPolicy("Concert", Access(create=any_of(eq(record("publish"), True), eq(context("role"), "admin"))))
        ])
        evaluator = PolicyEvaluator(catalog.schema, policy, catalog.context_schema)

        assert evaluator.evaluate(Operation.CREATE, "Concert", admin) == Decision.DENY
        assert evaluator.evaluate(Operation.CREATE, "Concert", admin, record={"publish": False}) == Decision.ALLOW

    def test_context_only_predicate_on_create(self, evaluator, admin):
        """Test create checks that only reference the context need no record."""
        assert evaluator.evaluate(Operation.CREATE, "Rsvp", admin) == Decision.ALLOW


class TestTypeAwareEquality:
    """Equality normalizes values by declared type."""

    def _evaluator(self, catalog, entity, predicate):
        policy = PolicyModel([EntityPolicy(entity, Access(query=predicate))])
        return PolicyEvaluator(catalog.schema, policy, catalog.context_schema)

    def test_uuid_compares_by_value(self, catalog, member):
        """Test a string id in the record matches a UUID in the context."""
        evaluator = self._evaluator(catalog, "Membership", eq(record("auth_user"), context("auth_user_id")))

        allowed = {"auth_user": "7F1C2B1E-3C55-4A8E-9A57-3C1F3F8E2D10"}
        denied = {"auth_user": str(uuid.uuid4())}

        assert evaluator.evaluate(Operation.QUERY, "Membership", member, record=allowed) == Decision.ALLOW
        assert evaluator.evaluate(Operation.QUERY, "Membership", member, record=denied) == Decision.DENY

    def test_date_compares_by_calendar_value(self, catalog, member):
        """Test an ISO string constant matches a date value."""
        evaluator = self._evaluator(catalog, "Membership", eq(record("expiry"), "2025-12-31"))

        assert evaluator.evaluate(
            Operation.QUERY, "Membership", member, record={"expiry": date(2025, 12, 31)}
        ) == Decision.ALLOW
        assert evaluator.evaluate(
            Operation.QUERY, "Membership", member, record={"expiry": "2026-01-01"}
        ) == Decision.DENY

    def test_boolean_never_equals_integer(self, catalog, member):
        """Test booleans and integers are different types."""
        evaluator = self._evaluator(catalog, "Concert", eq(record("publish"), 1))

        assert evaluator.evaluate(Operation.QUERY, "Concert", member, record={"publish": True}) == Decision.DENY

    def test_unparseable_value_does_not_match(self, catalog, member):
        """Test a value that cannot represent the type compares unequal."""
        evaluator = self._evaluator(catalog, "Membership", eq(record("auth_user"), context("auth_user_id")))

        assert evaluator.evaluate(
            Operation.QUERY, "Membership", member, record={"auth_user": "not-a-uuid"}
        ) == Decision.DENY

    def test_absent_optional_field_does_not_match(self, catalog, member):
        """Test an absent value never equals anything."""
        evaluator = self._evaluator(catalog, "Concert", eq(record("ticket_link"), None))

        assert evaluator.evaluate(Operation.QUERY, "Concert", member, record={}) == Decision.DENY


class TestComposition:
    """And, Or and Not combinators."""

    def _evaluator(self, catalog, predicate):
        policy = PolicyModel([EntityPolicy("Concert", Access(query=predicate))])
        return PolicyEvaluator(catalog.schema, policy, catalog.context_schema)

    def test_and_requires_every_item(self, catalog, member):
        """Test conjunction."""
        evaluator = self._evaluator(catalog, all_of(eq(record("publish"), True), eq(context("role"), "member")))

        assert evaluator.evaluate(Operation.QUERY, "Concert", member, record={"publish": True}) == Decision.ALLOW
        assert evaluator.evaluate(Operation.QUERY, "Concert", member, record={"publish": False}) == Decision.DENY

    def test_not_inverts(self, catalog, member, admin):
        """Test negation."""
        evaluator = self._evaluator(catalog, negate(eq(context("role"), "admin")))

        assert evaluator.evaluate(Operation.QUERY, "Concert", member, record={}) == Decision.ALLOW
        assert evaluator.evaluate(Operation.QUERY, "Concert", admin, record={}) == Decision.DENY

    def test_or_short_circuits_before_record_lookup(self, catalog, admin):
        """Test a true first branch decides without touching later branches."""
        evaluator = self._evaluator(catalog, any_of(eq(context("role"), "admin"), eq(record("publish"), True)))

        assert evaluator.evaluate(Operation.QUERY, "Concert", admin, record={}) == Decision.ALLOW

    def test_not_over_absent_attribute_denies(self, catalog):
        """Test negating a comparison with an unresolved context attribute stays denied."""
        evaluator = self._membership_evaluator(catalog)
        unresolved = RequestContext({"clerk_id": "u9", "role": "member"})

        assert evaluator.evaluate(
            Operation.QUERY, "Membership", unresolved, record={"auth_user": str(uuid.uuid4())}
        ) == Decision.DENY

    def test_not_over_absent_record_field_denies(self, catalog, member):
        """Test negating a comparison with a field missing from the record stays denied."""
        evaluator = self._membership_evaluator(catalog)

        result = evaluator.explain(Operation.QUERY, "Membership", member, record={})

        assert result.decision == Decision.DENY
        assert result.reason == "Predicate depends on an absent value"

    def test_not_over_present_values(self, catalog, member):
        """Test negation still applies when both values are known."""
        evaluator = self._membership_evaluator(catalog)

        assert evaluator.evaluate(
            Operation.QUERY, "Membership", member, record={"auth_user": str(uuid.uuid4())}
        ) == Decision.ALLOW
        assert evaluator.evaluate(
            Operation.QUERY, "Membership", member, record={"auth_user": member.auth_user_id}
        ) == Decision.DENY

    def test_unknown_branch_does_not_block_or(self, catalog, admin):
        """Test a true branch decides a disjunction even when another is unknown."""
        evaluator = self._evaluator(catalog, any_of(eq(record("publish"), True), eq(context("role"), "admin")))

        assert evaluator.evaluate(Operation.QUERY, "Concert", admin, record={}) == Decision.ALLOW

    def test_unknown_branch_in_and_denies(self, catalog, member):
        """Test a conjunction with an unknown item is not satisfied."""
        evaluator = self._evaluator(catalog, negate(all_of(eq(context("role"), "member"), eq(record("publish"), True))))

        assert evaluator.evaluate(Operation.QUERY, "Concert", member, record={}) == Decision.DENY

    def _membership_evaluator(self, catalog):
        predicate = negate(eq(record("auth_user"), context("auth_user_id")))
        policy = PolicyModel([EntityPolicy("Membership", Access(query=predicate))])
        return PolicyEvaluator(catalog.schema, policy, catalog.context_schema)

    def test_evaluation_is_deterministic(self, evaluator, member):
        """Test identical inputs give identical decisions."""
        concert = {"publish": False}

        decisions = {evaluator.evaluate(Operation.QUERY, "Concert", member, record=concert) for _ in range(5)}

        assert decisions == {Decision.DENY}


class TestConfigurationErrors:
    """Unknown references raise instead of denying."""

    def test_unknown_context_attribute(self, catalog, member):
        """Test a predicate naming an undeclared context attribute."""
        policy = PolicyModel([EntityPolicy("Advisory", Access(query=eq(context("tenant"), "t1")))])
        evaluator = PolicyEvaluator(catalog.schema, policy, catalog.context_schema)

        with pytest.raises(PolicyConfigurationError) as exc_info:
            evaluator.evaluate(Operation.QUERY, "Advisory", member, record={})

        assert exc_info.value.details["reference"] == "tenant"

    def test_unknown_context_attribute_raises_for_anonymous(self, catalog):
        """Test configuration errors are not masked by an anonymous context."""
        policy = PolicyModel([EntityPolicy("Advisory", Access(query=eq(context("tenant"), "t1")))])
        evaluator = PolicyEvaluator(catalog.schema, policy, catalog.context_schema)

        with pytest.raises(PolicyConfigurationError):
            evaluator.evaluate(Operation.QUERY, "Advisory", None, record={})

    def test_unknown_record_field(self, catalog, member):
        """Test a predicate naming a field the entity does not have."""
        policy = PolicyModel([EntityPolicy("Advisory", Access(query=eq(record("published"), True)))])
        evaluator = PolicyEvaluator(catalog.schema, policy, catalog.context_schema)

        with pytest.raises(PolicyConfigurationError):
            evaluator.evaluate(Operation.QUERY, "Advisory", member, record={"published": True})

    def test_unknown_entity(self, evaluator, admin):
        """Test evaluating an entity the schema does not declare."""
        with pytest.raises(PolicyConfigurationError):
            evaluator.evaluate(Operation.QUERY, "Ticket", admin, record={})

    def test_unknown_field(self, evaluator, admin):
        """Test evaluating a field the entity does not declare."""
        with pytest.raises(PolicyConfigurationError):
            evaluator.evaluate(Operation.QUERY, "Concert", admin, record={}, field="price")

    def test_unknown_operation(self, evaluator, admin):
        """Test an operation name outside the four kinds."""
        with pytest.raises(PolicyConfigurationError):
            evaluator.evaluate("patch", "Concert", admin, record={})

    def test_static_validation(self, catalog):
        """Test the policy model can be checked before serving."""
        catalog.policy.validate(catalog.schema, catalog.context_schema)

        broken = PolicyModel([EntityPolicy("Venue", Access(query=eq(record("title"), "x")))])
        with pytest.raises(PolicyConfigurationError):
            broken.validate(catalog.schema, catalog.context_schema)

    def test_static_validation_unknown_override_field(self, catalog):
        """Test field overrides must name declared fields."""
        broken = PolicyModel([EntityPolicy("Venue", Access(), fields={"capacity": Access(query=ALWAYS)})])

        with pytest.raises(PolicyConfigurationError):
            broken.validate(catalog.schema, catalog.context_schema)

    def test_duplicate_entity_policy(self):
        """Test an entity cannot have two policies."""
        with pytest.raises(PolicyConfigurationError):
            PolicyModel([EntityPolicy("Venue"), EntityPolicy("Venue")])


class TestPredicateBase:
    """The predicate base class."""

    def test_base_cannot_be_instantiated(self):
        """Test every predicate kind must render itself as a document."""
        with pytest.raises(TypeError):
            Predicate()

    def test_subclass_without_document_rejected(self):
        """Test a subclass missing to_document is abstract."""
        class Incomplete(Predicate):
            pass

        with pytest.raises(TypeError):
            Incomplete()
