"""
Upstream collaborator: a small Hypixel API client with a response cache.

The gateway only relies on three things from this module:

* one fetch coroutine per endpoint family (``get_player``, ``get_guild_by_id``...)
* ``username_to_uuid`` for alias lookups
* ``is_cached`` so the rate limiter can tell whether a request is free

Cached payloads are kept per (path, query) for the endpoint's TTL. There is no
retry or backoff; any failure becomes an ``UpstreamError`` whose cause is the
upstream's own message when one is available.
"""

import logging
import time
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

import httpx

from hypixel_gateway.core.errors import UpstreamError

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, Tuple[Tuple[str, str], ...]]


class HypixelEndpoint(Enum):
    """Upstream endpoints with their path and default cache TTL (seconds)."""

    KEY = ("key", 60)
    BOOSTERS = ("boosters", 60)
    LEADERBOARDS = ("leaderboards", 60)
    PUNISHMENT_STATS = ("punishmentstats", 60)
    PLAYER = ("player", 60)
    GUILD = ("guild", 60)
    COUNTS = ("counts", 60)
    STATUS = ("status", 60)
    RECENT_GAMES = ("recentgames", 60)
    SKYBLOCK_PROFILES = ("skyblock/profiles", 90)
    SKYBLOCK_PROFILE = ("skyblock/profile", 90)
    SKYBLOCK_BINGO = ("skyblock/bingo", 60)
    SKYBLOCK_NEWS = ("skyblock/news", 60)
    SKYBLOCK_AUCTION = ("skyblock/auction", 60)
    SKYBLOCK_AUCTIONS = ("skyblock/auctions", 60)
    SKYBLOCK_AUCTIONS_ENDED = ("skyblock/auctions_ended", 60)
    SKYBLOCK_BAZAAR = ("skyblock/bazaar", 60)
    SKYBLOCK_FIRESALES = ("skyblock/firesales", 60)
    RESOURCES_GAMES = ("resources/games", 900)
    RESOURCES_ACHIEVEMENTS = ("resources/achievements", 900)
    RESOURCES_CHALLENGES = ("resources/challenges", 900)
    RESOURCES_QUESTS = ("resources/quests", 900)
    RESOURCES_GUILD_ACHIEVEMENTS = ("resources/guilds/achievements", 900)
    RESOURCES_VANITY_PETS = ("resources/vanity/pets", 900)
    RESOURCES_VANITY_COMPANIONS = ("resources/vanity/companions", 900)
    RESOURCES_SKYBLOCK_COLLECTIONS = ("resources/skyblock/collections", 900)
    RESOURCES_SKYBLOCK_SKILLS = ("resources/skyblock/skills", 900)
    RESOURCES_SKYBLOCK_ITEMS = ("resources/skyblock/items", 900)
    RESOURCES_SKYBLOCK_ELECTION = ("resources/skyblock/election", 900)
    RESOURCES_SKYBLOCK_BINGO = ("resources/skyblock/bingo", 900)

    def __init__(self, path: str, default_ttl: int):
        self.path = path
        self.default_ttl = default_ttl


# Static resource catalog, keyed by the exact path a request must build.
RESOURCES: Dict[str, HypixelEndpoint] = {
    endpoint.path: endpoint
    for endpoint in (
        HypixelEndpoint.RESOURCES_GAMES,
        HypixelEndpoint.RESOURCES_ACHIEVEMENTS,
        HypixelEndpoint.RESOURCES_CHALLENGES,
        HypixelEndpoint.RESOURCES_QUESTS,
        HypixelEndpoint.RESOURCES_GUILD_ACHIEVEMENTS,
        HypixelEndpoint.RESOURCES_VANITY_PETS,
        HypixelEndpoint.RESOURCES_VANITY_COMPANIONS,
        HypixelEndpoint.RESOURCES_SKYBLOCK_COLLECTIONS,
        HypixelEndpoint.RESOURCES_SKYBLOCK_SKILLS,
        HypixelEndpoint.RESOURCES_SKYBLOCK_ITEMS,
        HypixelEndpoint.RESOURCES_SKYBLOCK_ELECTION,
        HypixelEndpoint.RESOURCES_SKYBLOCK_BINGO,
    )
}


# Query values the handlers send when a request leaves them out.
DEFAULT_PARAMS: Dict[str, Dict[str, str]] = {
    HypixelEndpoint.SKYBLOCK_AUCTIONS.path: {"page": "0"},
}

class MinecraftApiType(str, Enum):
    MOJANG = "Mojang"
    ASHCON = "Ashcon"
    PLAYER_DB = "PlayerDb"


_MINECRAFT_LOOKUP_URLS = {
    MinecraftApiType.MOJANG: "https://api.mojang.com/users/profiles/minecraft/{username}",
    MinecraftApiType.ASHCON: "https://api.ashcon.app/mojang/v2/user/{username}",
    MinecraftApiType.PLAYER_DB: "https://playerdb.co/api/player/minecraft/{username}",
}


def _failure_cause(payload: Any) -> Optional[str]:
    """Pick the human readable failure text out of an upstream error body."""
    if not isinstance(payload, dict):
        return None
    for field in ("cause", "message", "errorMessage", "reason", "error"):
        value = payload.get(field)
        if isinstance(value, str) and value:
            return value
    return None


class HypixelClient:
    API_URL = "https://api.hypixel.net"

    def __init__(
        self,
        api_key: str,
        *,
        minecraft_api_type: MinecraftApiType = MinecraftApiType.PLAYER_DB,
        minecraft_cache_ttl: int = 900,
        cache_ttls: Optional[Mapping[str, int]] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.minecraft_api_type = MinecraftApiType(minecraft_api_type)
        self.minecraft_cache_ttl = minecraft_cache_ttl
        self.ttls: Dict[HypixelEndpoint, int] = {
            endpoint: endpoint.default_ttl for endpoint in HypixelEndpoint
        }
        for name, ttl in (cache_ttls or {}).items():
            self.ttls[HypixelEndpoint[name]] = ttl

        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._cache: Dict[CacheKey, Tuple[float, Any]] = {}
        self._uuids: Dict[str, Tuple[float, str]] = {}

    @classmethod
    def from_settings(cls, settings) -> "HypixelClient":
        return cls(
            settings.API_KEY,
            minecraft_api_type=settings.MINECRAFT_API_TYPE,
            minecraft_cache_ttl=settings.MINECRAFT_CACHE_TTL,
            cache_ttls=settings.HYPIXEL_CACHE_TTL,
            timeout=settings.HYPIXEL_TIMEOUT,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    @staticmethod
    def _cache_key(path: str, params: Mapping[str, Any]) -> CacheKey:
        return (
            path.strip("/").lower(),
            tuple(sorted((str(k), str(v)) for k, v in params.items())),
        )

    async def is_cached(self, path: str, params: Mapping[str, Any]) -> bool:
        """True when (path, params) would be answered without an upstream call."""
        defaults = DEFAULT_PARAMS.get(path.strip("/").lower(), {})
        entry = self._cache.get(self._cache_key(path, {**defaults, **params}))
        return entry is not None and entry[0] > time.monotonic()

    def _store(self, key: CacheKey, ttl: int, payload: Any) -> None:
        now = time.monotonic()
        expired = [k for k, (expires, _) in self._cache.items() if expires <= now]
        for k in expired:
            del self._cache[k]
        self._cache[key] = (now + ttl, payload)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _request(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        try:
            response = await self._http.get(url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning(f"Upstream request to {url} failed: {exc!r}")
            raise UpstreamError(f"Request to {url} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"Unable to parse response from {url} (status {response.status_code})"
            ) from exc

        succeeded = response.is_success and not (
            isinstance(payload, dict) and payload.get("success") is False
        )
        if succeeded:
            return payload

        cause = _failure_cause(payload) or (
            f"Request to {url} failed with status {response.status_code}"
        )
        logger.warning(f"Upstream rejected {url}: {cause}")
        raise UpstreamError(cause)

    async def _get(
        self, endpoint: HypixelEndpoint, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        params = params or {}
        key = self._cache_key(endpoint.path, params)
        cached = self._cache.get(key)
        if cached is not None and cached[0] > time.monotonic():
            return cached[1]

        payload = await self._request(
            f"{self.API_URL}/{endpoint.path}",
            params=params,
            headers={"API-Key": self.api_key},
        )
        self._store(key, self.ttls[endpoint], payload)
        return payload

    # ------------------------------------------------------------------
    # Alias lookup
    # ------------------------------------------------------------------

    async def username_to_uuid(self, username: str) -> str:
        """Resolve a Minecraft username to its undashed UUID."""
        cache_key = username.lower()
        cached = self._uuids.get(cache_key)
        if cached is not None and cached[0] > time.monotonic():
            return cached[1]

        url = _MINECRAFT_LOOKUP_URLS[self.minecraft_api_type].format(username=username)
        payload = await self._request(url)

        if self.minecraft_api_type is MinecraftApiType.MOJANG:
            uuid = payload.get("id")
        elif self.minecraft_api_type is MinecraftApiType.ASHCON:
            uuid = payload.get("uuid")
        else:
            uuid = ((payload.get("data") or {}).get("player") or {}).get("raw_id")

        if not uuid:
            raise UpstreamError(f"Unable to resolve the uuid of {username}")

        uuid = uuid.replace("-", "")
        now = time.monotonic()
        expired = [k for k, (expires, _) in self._uuids.items() if expires <= now]
        for k in expired:
            del self._uuids[k]
        self._uuids[cache_key] = (now + self.minecraft_cache_ttl, uuid)
        return uuid

    # ------------------------------------------------------------------
    # Endpoint families
    # ------------------------------------------------------------------

    async def get_key(self) -> Any:
        return await self._get(HypixelEndpoint.KEY)

    async def get_boosters(self) -> Any:
        return await self._get(HypixelEndpoint.BOOSTERS)

    async def get_leaderboards(self) -> Any:
        return await self._get(HypixelEndpoint.LEADERBOARDS)

    async def get_punishment_stats(self) -> Any:
        return await self._get(HypixelEndpoint.PUNISHMENT_STATS)

    async def get_player(self, uuid: str) -> Any:
        return await self._get(HypixelEndpoint.PLAYER, {"uuid": uuid})

    async def get_guild_by_id(self, guild_id: str) -> Any:
        return await self._get(HypixelEndpoint.GUILD, {"id": guild_id})

    async def get_guild_by_name(self, name: str) -> Any:
        return await self._get(HypixelEndpoint.GUILD, {"name": name})

    async def get_guild_by_player(self, uuid: str) -> Any:
        return await self._get(HypixelEndpoint.GUILD, {"player": uuid})

    async def get_counts(self) -> Any:
        return await self._get(HypixelEndpoint.COUNTS)

    async def get_status(self, uuid: str) -> Any:
        return await self._get(HypixelEndpoint.STATUS, {"uuid": uuid})

    async def get_recent_games(self, uuid: str) -> Any:
        return await self._get(HypixelEndpoint.RECENT_GAMES, {"uuid": uuid})

    async def get_skyblock_profiles(self, uuid: str) -> Any:
        return await self._get(HypixelEndpoint.SKYBLOCK_PROFILES, {"uuid": uuid})

    async def get_skyblock_profile(self, profile: str) -> Any:
        return await self._get(HypixelEndpoint.SKYBLOCK_PROFILE, {"profile": profile})

    async def get_skyblock_bingo(self, uuid: str) -> Any:
        return await self._get(HypixelEndpoint.SKYBLOCK_BINGO, {"uuid": uuid})

    async def get_skyblock_news(self) -> Any:
        return await self._get(HypixelEndpoint.SKYBLOCK_NEWS)

    async def get_skyblock_auction_by_player(self, uuid: str) -> Any:
        return await self._get(HypixelEndpoint.SKYBLOCK_AUCTION, {"player": uuid})

    async def get_skyblock_auction_by_uuid(self, uuid: str) -> Any:
        return await self._get(HypixelEndpoint.SKYBLOCK_AUCTION, {"uuid": uuid})

    async def get_skyblock_auction_by_profile(self, profile: str) -> Any:
        return await self._get(HypixelEndpoint.SKYBLOCK_AUCTION, {"profile": profile})

    async def get_skyblock_auctions(self, page: int) -> Any:
        return await self._get(HypixelEndpoint.SKYBLOCK_AUCTIONS, {"page": page})

    async def get_skyblock_auctions_ended(self) -> Any:
        return await self._get(HypixelEndpoint.SKYBLOCK_AUCTIONS_ENDED)

    async def get_skyblock_bazaar(self) -> Any:
        return await self._get(HypixelEndpoint.SKYBLOCK_BAZAAR)

    async def get_skyblock_fire_sales(self) -> Any:
        return await self._get(HypixelEndpoint.SKYBLOCK_FIRESALES)

    async def get_resources(self, endpoint: HypixelEndpoint) -> Any:
        return await self._get(endpoint)
