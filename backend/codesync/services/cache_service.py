"""
CodeSync Backend — Cache Capability
====================================

What:  An explicit "is caching configured?" capability with key builders and
       invalidation hooks.
Why:   The snippet endpoints have well-defined invalidation points (write,
       like, comment). Those calls stay in place so a real backend can be
       plugged in later, but with no backend attached the service says so
       instead of pretending every lookup missed.
How:   `enabled` is False until `attach()` receives an object exposing an
       async `delete(*keys) -> int` (the redis.asyncio client signature).
       No backend ships with the application; /health reports "disabled".
"""

import logging
import uuid
from typing import Any, Optional, Protocol, Union

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    async def delete(self, *keys: str) -> int: ...


class CacheKeys:
    EXPLORE = "explore:page:data"

    @staticmethod
    def snippet_detail(snippet_id: Union[str, uuid.UUID], viewer: Optional[Any] = None) -> str:
        # viewer is a user id, or None for anonymous requests
        return f"snippet:{snippet_id}:{viewer if viewer is not None else 'guest'}"


class CacheService:
    def __init__(self, backend: Optional[CacheBackend] = None):
        self._backend = backend

    @property
    def enabled(self) -> bool:
        return self._backend is not None

    @property
    def status(self) -> str:
        return "enabled" if self.enabled else "disabled"

    def attach(self, backend: CacheBackend) -> None:
        self._backend = backend
        logger.info("Cache backend attached: %s", type(backend).__name__)

    def detach(self) -> None:
        self._backend = None

    async def invalidate(self, *keys: str) -> int:
        """Delete `keys` from the backend. Returns how many were removed."""
        if not keys:
            return 0
        if self._backend is None:
            logger.debug("Cache disabled, skipping invalidation of %s", ", ".join(keys))
            return 0
        try:
            return await self._backend.delete(*keys)
        except Exception as e:
            # A stale cache entry must not fail the write that triggered it
            logger.warning("Cache invalidation failed for %s: %s", ", ".join(keys), e)
            return 0

    async def invalidate_snippet(
        self,
        snippet_id: Union[str, uuid.UUID],
        viewer_id: Optional[Any] = None,
        include_explore: bool = False,
    ) -> int:
        keys = [CacheKeys.snippet_detail(snippet_id)]
        if viewer_id is not None:
            keys.append(CacheKeys.snippet_detail(snippet_id, viewer_id))
        if include_explore:
            keys.append(CacheKeys.EXPLORE)
        return await self.invalidate(*keys)


cache_service = CacheService()
