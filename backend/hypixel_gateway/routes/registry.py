"""
Endpoint registry and startup-time route registration.

The registry is a closed table: every endpoint the gateway can serve is listed
in ENDPOINTS exactly once, with its routes and its handler. ``build`` turns the
``SERVER_ENDPOINT.<NAME>`` flags into an APIRouter holding only the enabled
entries; anything not registered falls through to the app's default handler.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Tuple

from fastapi import APIRouter

from hypixel_gateway.core.errors import ConfigurationError
from hypixel_gateway.routes import hypixel
from hypixel_gateway.services.resolver import (
    GUILD_PLAN,
    PLAYER_PLAN,
    SKYBLOCK_AUCTION_PLAN,
    SKYBLOCK_PROFILE_PLAN,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EndpointDescriptor:
    name: str
    routes: Tuple[str, ...]
    handler: Callable
    # Identifier fields accepted by the route, in the order error messages list them.
    fields: Tuple[str, ...] = ()
    is_resource_route: bool = False


ENDPOINTS: Tuple[EndpointDescriptor, ...] = (
    EndpointDescriptor("KEY", ("/key",), hypixel.key),
    EndpointDescriptor("BOOSTERS", ("/boosters",), hypixel.boosters),
    EndpointDescriptor("LEADERBOARDS", ("/leaderboards",), hypixel.leaderboards),
    EndpointDescriptor("PUNISHMENT_STATS", ("/punishmentstats",), hypixel.punishment_stats),
    EndpointDescriptor("PLAYER", ("/player",), hypixel.player, PLAYER_PLAN.accepted),
    EndpointDescriptor("GUILD", ("/guild",), hypixel.guild, GUILD_PLAN.accepted),
    EndpointDescriptor("COUNTS", ("/counts",), hypixel.counts),
    EndpointDescriptor("STATUS", ("/status",), hypixel.status, PLAYER_PLAN.accepted),
    EndpointDescriptor(
        "RECENT_GAMES", ("/recentGames",), hypixel.recent_games, PLAYER_PLAN.accepted
    ),
    EndpointDescriptor(
        "SKYBLOCK_PROFILES",
        ("/skyblock/profiles",),
        hypixel.skyblock_profiles,
        PLAYER_PLAN.accepted,
    ),
    EndpointDescriptor(
        "SKYBLOCK_PROFILE",
        ("/skyblock/profile",),
        hypixel.skyblock_profile,
        SKYBLOCK_PROFILE_PLAN.accepted,
    ),
    EndpointDescriptor(
        "SKYBLOCK_BINGO", ("/skyblock/bingo",), hypixel.skyblock_bingo, PLAYER_PLAN.accepted
    ),
    EndpointDescriptor("SKYBLOCK_NEWS", ("/skyblock/news",), hypixel.skyblock_news),
    EndpointDescriptor(
        "SKYBLOCK_AUCTION",
        ("/skyblock/auction",),
        hypixel.skyblock_auction,
        SKYBLOCK_AUCTION_PLAN.accepted,
    ),
    EndpointDescriptor(
        "SKYBLOCK_AUCTIONS", ("/skyblock/auctions",), hypixel.skyblock_auctions, ("page",)
    ),
    EndpointDescriptor(
        "SKYBLOCK_AUCTIONS_ENDED",
        ("/skyblock/auctions_ended",),
        hypixel.skyblock_auctions_ended,
    ),
    EndpointDescriptor("SKYBLOCK_BAZAAR", ("/skyblock/bazaar",), hypixel.skyblock_bazaar),
    EndpointDescriptor(
        "SKYBLOCK_FIRESALES", ("/skyblock/firesales",), hypixel.skyblock_fire_sales
    ),
    EndpointDescriptor(
        "RESOURCES",
        ("/resources", "/resources/{resource}", "/resources/{resource}/{sub_resource}"),
        hypixel.resources,
        is_resource_route=True,
    ),
)


def index(descriptors: Iterable[EndpointDescriptor]) -> Dict[str, EndpointDescriptor]:
    """Key descriptors by name, rejecting duplicate names or routes."""
    by_name: Dict[str, EndpointDescriptor] = {}
    seen_routes: Dict[str, str] = {}
    for descriptor in descriptors:
        if descriptor.name in by_name:
            raise ConfigurationError(f"Duplicate endpoint name {descriptor.name}")
        for route in descriptor.routes:
            if route in seen_routes:
                raise ConfigurationError(
                    f"Route {route} is claimed by both {seen_routes[route]} and {descriptor.name}"
                )
            seen_routes[route] = descriptor.name
        by_name[descriptor.name] = descriptor
    return by_name


REGISTRY: Dict[str, EndpointDescriptor] = index(ENDPOINTS)


def enabled_names(enabled: Mapping[str, bool]) -> List[str]:
    unknown = sorted(name for name in enabled if name not in REGISTRY)
    if unknown:
        raise ConfigurationError(f"Unable to parse server endpoint from {unknown[0]}")
    return [d.name for d in ENDPOINTS if enabled.get(d.name) is True]


def build(enabled: Mapping[str, bool]) -> APIRouter:
    router = APIRouter()
    names = enabled_names(enabled)
    for name in names:
        descriptor = REGISTRY[name]
        for position, route in enumerate(descriptor.routes):
            route_name = descriptor.name.lower() + (f"_{position}" if position else "")
            router.add_api_route(
                route,
                descriptor.handler,
                methods=["GET"],
                name=route_name,
                operation_id=route_name,
            )
    logger.info(f"Enabled endpoints: {', '.join(names) if names else 'none'}")
    return router
