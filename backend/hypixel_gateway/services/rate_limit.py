"""
Cache-aware rate-limit key extraction.

A request that the collaborator can answer from its cache costs nothing
upstream, so it gets the whitelisted sentinel key and is never throttled.
Everything else is keyed by the caller's peer address.

The cache check here and the handler's later fetch are two independent
questions asked of the same cache; the answer may change in between.
"""

from dataclasses import dataclass
from typing import Mapping, Optional

from hypixel_gateway.core.errors import ExtractionError

SENTINEL_KEY = "__cached__"


@dataclass(frozen=True)
class RateLimitDecision:
    bypass: bool
    key: Optional[str]


class RateLimitKeyExtractor:
    def __init__(self, service):
        self.service = service

    async def extract(
        self, path: str, query: Mapping[str, str], client_host: Optional[str]
    ) -> RateLimitDecision:
        if await self.service.call("is_cached", path, dict(query)):
            return RateLimitDecision(bypass=True, key=SENTINEL_KEY)

        if not client_host:
            raise ExtractionError("Unable to determine the client address")

        return RateLimitDecision(bypass=False, key=client_host)
