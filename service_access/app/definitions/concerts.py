"""
Membership and events catalog.

Entities, fields and access policies of the concerts backend: venues,
concerts, artists and their pairings, RSVPs, notifications, advisories,
users, memberships and payments.
"""

from ..context.models import ContextAttribute, ContextSchema
from ..rules.models import ALWAYS, NEVER, Access, any_of, context, eq, record
from ..rules.policy import EntityPolicy, PolicyModel
from ..schema.models import EntitySpec, FieldSpec, FieldType, Generated
from ..schema.registry import SchemaModel
from .loader import Catalog


def _id() -> FieldSpec:
    return FieldSpec("id", FieldType.UUID, pk=True, default=Generated.UUID)


def _string(name: str, **options) -> FieldSpec:
    return FieldSpec(name, FieldType.STRING, **options)


def _ref(name: str, target: str, **options) -> FieldSpec:
    return FieldSpec(name, FieldType.REFERENCE, target=target, **options)


def _set(name: str, target: str) -> FieldSpec:
    return FieldSpec(name, FieldType.BACKREF, target=target, many=True)


def build_context_schema() -> ContextSchema:
    return ContextSchema([
        ContextAttribute("clerk_id", FieldType.STRING, claim="sub"),
        ContextAttribute("role", FieldType.STRING, claim="role"),
        ContextAttribute("email", FieldType.STRING, claim="email"),
        ContextAttribute("first_name", FieldType.STRING, claim="firstName"),
        ContextAttribute("last_name", FieldType.STRING, claim="lastName"),
        ContextAttribute("auth_user_id", FieldType.UUID, lookup="get_auth_user_id", key="clerk_id"),
    ])


def build_schema() -> SchemaModel:
    return SchemaModel([
        EntitySpec("Concert", (
            _id(),
            _string("title", index=True),
            _string("description"),
            FieldSpec("member_price", FieldType.INT),
            FieldSpec("non_member_price", FieldType.INT),
            _ref("venue", "Venue"),
            _string("ticket_link", optional=True),
            _string("photo_url"),
            FieldSpec("start_time", FieldType.LOCAL_DATE_TIME),
            FieldSpec("end_time", FieldType.LOCAL_DATE_TIME),
            FieldSpec("publish", FieldType.BOOLEAN),
            _set("rsvps", "Rsvp"),
            _set("notifications", "Notification"),
            _set("concert_artists", "ConcertArtist"),
        )),
        EntitySpec("Venue", (
            _id(),
            _string("name", index=True),
            _string("street"),
            _string("city"),
            _string("state"),
            _string("zip"),
            _set("concerts", "Concert"),
            FieldSpec("publish", FieldType.BOOLEAN),
        )),
        EntitySpec("Membership", (
            _id(),
            _ref("auth_user", "AuthUser", index=True),
            _string("spouse_first_name", index=True),
            _string("spouse_last_name", index=True),
            _string("spouse_email", optional=True),
            FieldSpec("expiry", FieldType.LOCAL_DATE, index=True),
            _string("type", index=True),
            _set("payments", "Payment"),
        )),
        EntitySpec("Rsvp", (
            _id(),
            _string("email", unique=("concert_email",)),
            _ref("concert", "Concert", unique=("concert_email",)),
            FieldSpec("num_tickets", FieldType.INT),
        )),
        EntitySpec("Notification", (
            _id(),
            _ref("concert", "Concert", optional=True),
            _string("subject", index=True),
            _string("message"),
            _string("post_message"),
        )),
        EntitySpec("Advisory", (
            _id(),
            _string("level"),
            _string("message"),
            _string("footer", optional=True),
        ), plural="advisories"),
        EntitySpec("AuthUser", (
            _id(),
            _string("clerk_id", unique=("clerk_id",)),
            _string("email", unique=("email",)),
            _string("first_name", index=True),
            _string("last_name", index=True),
            FieldSpec("membership", FieldType.BACKREF, target="Membership", many=False),
        )),
        EntitySpec("Payment", (
            _id(),
            _ref("membership", "Membership"),
            FieldSpec("date", FieldType.LOCAL_DATE),
            _string("note"),
            FieldSpec("info_only", FieldType.BOOLEAN),
        )),
        EntitySpec("Artist", (
            _id(),
            _string("title", optional=True),
            _string("name", index=True),
            _string("bio", optional=True),
            _string("photo_url", optional=True),
            FieldSpec("youtube_video_ids", FieldType.ARRAY, item_type=FieldType.STRING, optional=True),
            FieldSpec("instruments", FieldType.ARRAY, item_type=FieldType.STRING),
            FieldSpec("publish", FieldType.BOOLEAN, index=True),
            _set("artist_concerts", "ConcertArtist"),
        )),
        EntitySpec("ConcertArtist", (
            _id(),
            _ref("concert", "Concert"),
            _ref("artist", "Artist"),
            FieldSpec("is_main", FieldType.BOOLEAN),
            FieldSpec("rank", FieldType.INT),
            _string("instrument"),
        )),
    ])


def build_policy(admin_role: str = "admin") -> PolicyModel:
    is_admin = eq(context("role"), admin_role)
    published_or_admin = any_of(eq(record("publish"), True), is_admin)

    return PolicyModel([
        EntityPolicy("Concert", Access(query=published_or_admin, mutation=is_admin)),
        EntityPolicy("Venue", Access(query=published_or_admin, mutation=is_admin)),
        EntityPolicy("Artist", Access(query=published_or_admin, mutation=is_admin)),
        EntityPolicy("ConcertArtist", Access(query=ALWAYS, mutation=is_admin)),
        EntityPolicy("Advisory", Access(query=ALWAYS, mutation=is_admin)),
        EntityPolicy(
            "Membership",
            Access(query=is_admin, mutation=is_admin, delete=is_admin),
            fields={
                "expiry": Access(query=ALWAYS, mutation=is_admin),
                "type": Access(query=ALWAYS, mutation=is_admin),
            }
        ),
        EntityPolicy("Rsvp", Access(query=is_admin, mutation=is_admin, delete=is_admin)),
        EntityPolicy("Notification", Access(query=is_admin)),
        EntityPolicy("AuthUser", Access(
            query=any_of(eq(record("clerk_id"), context("clerk_id")), is_admin),
            mutation=is_admin
        )),
        EntityPolicy("Payment", Access(query=is_admin, create=is_admin, update=NEVER, delete=NEVER)),
    ])


def build_catalog(admin_role: str = "admin") -> Catalog:
    """Build the membership and events catalog."""
    return Catalog(
        schema=build_schema(),
        policy=build_policy(admin_role),
        context_schema=build_context_schema()
    )
