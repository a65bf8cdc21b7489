"""
test_resolver.py

Unit tests for the identifier resolution plans. No HTTP layer involved:
plans are pure data and ``resolve`` only needs a service double.
"""

import pytest

from hypixel_gateway.core.errors import InvalidRequestError, UpstreamError
from hypixel_gateway.services.resolver import (
    GUILD_PLAN,
    PLAYER_PLAN,
    SKYBLOCK_AUCTION_PLAN,
    SKYBLOCK_PROFILE_PLAN,
    FieldKind,
    IdentityField,
    ResolutionPlan,
    resolve,
)

pytestmark = pytest.mark.unit

TECHNO = "b876ec32e396476ba1158438d83c67d4"


# ---------------------------------------------------------------------------
# Missing-fields messages
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "plan, expected",
    [
        (PLAYER_PLAN, "Missing one or more fields [username, uuid]"),
        (GUILD_PLAN, "Missing one or more fields [id, name, player, username]"),
        (SKYBLOCK_PROFILE_PLAN, "Missing one or more fields [profile]"),
        (SKYBLOCK_AUCTION_PLAN, "Missing one or more fields [player, uuid, profile, username]"),
    ],
)
def test_empty_query_lists_accepted_fields(plan, expected):
    with pytest.raises(InvalidRequestError) as exc_info:
        plan.select({})
    assert exc_info.value.cause == expected


def test_empty_values_count_as_missing():
    with pytest.raises(InvalidRequestError):
        PLAYER_PLAN.select({"uuid": "", "username": None})


def test_unrelated_fields_are_ignored():
    with pytest.raises(InvalidRequestError):
        GUILD_PLAN.select({"uuid": "abc", "profile": "def"})


# ---------------------------------------------------------------------------
# Priority
# ---------------------------------------------------------------------------


def test_guild_priority_order():
    query = {"id": "g1", "name": "Guild", "player": "p1", "username": "Technoblade"}
    field, value = GUILD_PLAN.select(query)
    assert (field.name, value) == ("id", "g1")

    del query["id"]
    assert GUILD_PLAN.select(query)[0].name == "name"

    del query["name"]
    assert GUILD_PLAN.select(query)[0].name == "player"

    del query["player"]
    assert GUILD_PLAN.select(query)[0].name == "username"


def test_auction_priority_prefers_player_then_username():
    field, _ = SKYBLOCK_AUCTION_PLAN.select({"uuid": "a1", "username": "Technoblade"})
    assert field.name == "username"
    field, _ = SKYBLOCK_AUCTION_PLAN.select({"uuid": "a1", "profile": "p1"})
    assert field.name == "uuid"


def test_selection_is_deterministic():
    query = {"username": "Technoblade", "uuid": "abc123"}
    picks = {PLAYER_PLAN.select(query) for _ in range(20)}
    assert len(picks) == 1


# ---------------------------------------------------------------------------
# resolve()
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_direct_id_never_triggers_alias_lookup(service, fake):
    identity = await resolve(PLAYER_PLAN, {"uuid": "abc123", "username": "Technoblade"}, service)
    assert identity.value == "abc123"
    assert identity.kind == "uuid"
    assert fake.calls == []


@pytest.mark.asyncio
async def test_alias_is_looked_up_once(service, fake):
    identity = await resolve(PLAYER_PLAN, {"username": "Technoblade"}, service)
    assert identity.value == TECHNO
    assert fake.calls == [("username_to_uuid", "Technoblade")]


@pytest.mark.asyncio
async def test_guild_username_resolves_to_player_identity(service):
    identity = await resolve(GUILD_PLAN, {"username": "Technoblade"}, service)
    assert identity.kind == "player"
    assert identity.value == TECHNO


@pytest.mark.asyncio
async def test_guild_name_is_not_looked_up(service, fake):
    identity = await resolve(GUILD_PLAN, {"name": "Mineplex Fan Club"}, service)
    assert identity.kind == "name"
    assert identity.value == "Mineplex Fan Club"
    assert fake.calls == []


@pytest.mark.asyncio
async def test_alias_failure_propagates_verbatim(service):
    with pytest.raises(UpstreamError) as exc_info:
        await resolve(PLAYER_PLAN, {"username": "nobody_here"}, service)
    assert exc_info.value.cause == "Unable to resolve the uuid of nobody_here"


def test_custom_plan_uses_declared_order():
    plan = ResolutionPlan(
        fields=(IdentityField("b"), IdentityField("a", FieldKind.ALIAS, target="b")),
        accepted=("a", "b"),
    )
    assert plan.missing_message() == "Missing one or more fields [a, b]"
    field, value = plan.select({"a": "alias", "b": "direct"})
    assert (field.name, value) == ("b", "direct")
    assert plan.fields[1].identity == "b"
