"""
Request handlers, one per endpoint family.

Every handler follows the same shape: validate, resolve an identity when the
family needs one, make exactly one fetch on the collaborator and pass its
payload through. Failures are raised as GatewayError subclasses and rendered
as the error envelope by the app's exception handlers.

Handlers are not decorated with routes here; routes/registry.py decides at
startup which of them become reachable.
"""

import logging
from typing import Optional

from fastapi import Depends, Request

from hypixel_gateway.core.errors import InvalidRequestError
from hypixel_gateway.schemas.responses import ok
from hypixel_gateway.services.gateway import HypixelService
from hypixel_gateway.services.hypixel import RESOURCES
from hypixel_gateway.services.resolver import (
    GUILD_PLAN,
    PLAYER_PLAN,
    SKYBLOCK_AUCTION_PLAN,
    SKYBLOCK_PROFILE_PLAN,
    resolve,
)

logger = logging.getLogger(__name__)

GUILD_OPERATIONS = {
    "id": "get_guild_by_id",
    "name": "get_guild_by_name",
    "player": "get_guild_by_player",
}

AUCTION_OPERATIONS = {
    "player": "get_skyblock_auction_by_player",
    "uuid": "get_skyblock_auction_by_uuid",
    "profile": "get_skyblock_auction_by_profile",
}


def get_service(request: Request) -> HypixelService:
    return request.app.state.hypixel


async def _fetch_for_player(
    operation: str,
    username: Optional[str],
    uuid: Optional[str],
    service: HypixelService,
):
    identity = await resolve(PLAYER_PLAN, {"username": username, "uuid": uuid}, service)
    return ok(await service.call(operation, identity.value))


# ---------------------------------------------------------------------------
# No identity required
# ---------------------------------------------------------------------------


async def key(service: HypixelService = Depends(get_service)):
    return ok(await service.call("get_key"))


async def boosters(service: HypixelService = Depends(get_service)):
    return ok(await service.call("get_boosters"))


async def leaderboards(service: HypixelService = Depends(get_service)):
    return ok(await service.call("get_leaderboards"))


async def punishment_stats(service: HypixelService = Depends(get_service)):
    return ok(await service.call("get_punishment_stats"))


async def counts(service: HypixelService = Depends(get_service)):
    return ok(await service.call("get_counts"))


async def skyblock_news(service: HypixelService = Depends(get_service)):
    return ok(await service.call("get_skyblock_news"))


async def skyblock_auctions(page: int = 0, service: HypixelService = Depends(get_service)):
    """Page defaults to 0; range checking is left to the upstream."""
    return ok(await service.call("get_skyblock_auctions", page))


async def skyblock_auctions_ended(service: HypixelService = Depends(get_service)):
    return ok(await service.call("get_skyblock_auctions_ended"))


async def skyblock_bazaar(service: HypixelService = Depends(get_service)):
    return ok(await service.call("get_skyblock_bazaar"))


async def skyblock_fire_sales(service: HypixelService = Depends(get_service)):
    return ok(await service.call("get_skyblock_fire_sales"))


# ---------------------------------------------------------------------------
# Player identity (uuid > username)
# ---------------------------------------------------------------------------


async def player(
    username: Optional[str] = None,
    uuid: Optional[str] = None,
    service: HypixelService = Depends(get_service),
):
    return await _fetch_for_player("get_player", username, uuid, service)


async def status(
    username: Optional[str] = None,
    uuid: Optional[str] = None,
    service: HypixelService = Depends(get_service),
):
    return await _fetch_for_player("get_status", username, uuid, service)


async def recent_games(
    username: Optional[str] = None,
    uuid: Optional[str] = None,
    service: HypixelService = Depends(get_service),
):
    return await _fetch_for_player("get_recent_games", username, uuid, service)


async def skyblock_profiles(
    username: Optional[str] = None,
    uuid: Optional[str] = None,
    service: HypixelService = Depends(get_service),
):
    return await _fetch_for_player("get_skyblock_profiles", username, uuid, service)


async def skyblock_bingo(
    username: Optional[str] = None,
    uuid: Optional[str] = None,
    service: HypixelService = Depends(get_service),
):
    return await _fetch_for_player("get_skyblock_bingo", username, uuid, service)


# ---------------------------------------------------------------------------
# Other identities
# ---------------------------------------------------------------------------


async def guild(
    id: Optional[str] = None,
    name: Optional[str] = None,
    player: Optional[str] = None,
    username: Optional[str] = None,
    service: HypixelService = Depends(get_service),
):
    query = {"id": id, "name": name, "player": player, "username": username}
    identity = await resolve(GUILD_PLAN, query, service)
    return ok(await service.call(GUILD_OPERATIONS[identity.kind], identity.value))


async def skyblock_profile(
    profile: Optional[str] = None,
    service: HypixelService = Depends(get_service),
):
    identity = await resolve(SKYBLOCK_PROFILE_PLAN, {"profile": profile}, service)
    return ok(await service.call("get_skyblock_profile", identity.value))


async def skyblock_auction(
    player: Optional[str] = None,
    uuid: Optional[str] = None,
    profile: Optional[str] = None,
    username: Optional[str] = None,
    service: HypixelService = Depends(get_service),
):
    query = {"player": player, "uuid": uuid, "profile": profile, "username": username}
    identity = await resolve(SKYBLOCK_AUCTION_PLAN, query, service)
    return ok(await service.call(AUCTION_OPERATIONS[identity.kind], identity.value))


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


def resource_path(resource: Optional[str], sub_resource: Optional[str]) -> str:
    """Build the catalog path for a request, e.g. ``resources/skyblock/items``."""
    if resource is None:
        raise InvalidRequestError("No resource provided")
    if sub_resource is not None:
        return f"resources/{resource}/{sub_resource}"
    return f"resources/{resource}"


async def resources(request: Request, service: HypixelService = Depends(get_service)):
    path = resource_path(
        request.path_params.get("resource"), request.path_params.get("sub_resource")
    )
    endpoint = RESOURCES.get(path)
    if endpoint is None:
        logger.debug(f"Unknown resource requested: {path}")
        raise InvalidRequestError("Unknown resource provided")
    return ok(await service.call("get_resources", endpoint))
