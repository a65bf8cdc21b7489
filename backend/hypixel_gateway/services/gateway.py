import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)


class HypixelService:
    """
    Owns the single collaborator instance and the lock in front of it.

    Every collaborator operation goes through ``call`` and holds the lock only
    for that one operation. A handler that resolves and then fetches takes the
    lock twice; other requests may run in between.
    """

    def __init__(self, client):
        self.client = client
        self.lock = asyncio.Lock()

    async def call(self, operation: str, *args: Any) -> Any:
        async with self.lock:
            logger.debug(f"Collaborator call {operation}{args!r}")
            return await getattr(self.client, operation)(*args)

    async def aclose(self) -> None:
        close = getattr(self.client, "aclose", None)
        if close is not None:
            await close()
