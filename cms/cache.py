import json
import logging

import redis.asyncio as redis

from cms.config import settings

logger = logging.getLogger(__name__)

# session.info key holding article ids to invalidate after commit
_PENDING_KEY = "cms.pending_invalidations"


def detail_key(article_id: int) -> str:
    return f"articles:detail:{article_id}"


class CacheManager:
    """
    Cache-aside store for article detail payloads, backed by Redis.

    Every method tolerates a missing or failing Redis: reads report a
    miss and writes are skipped, so the service falls back to the
    database without seeing an error.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except redis.RedisError as exc:  # pragma: no cover
            logger.warning("Redis ping failed, detail cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def get(self, key: str) -> dict | None:
        """Return the cached dict for *key*, or None on a miss or error."""
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
        except redis.RedisError as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(data)

    async def set(self, key: str, value: dict, ttl: int | None = None) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except (redis.RedisError, TypeError) as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def invalidate_article(self, article_id: int) -> None:
        """Drop the detail entry of *article_id*."""
        if not self._redis:
            return
        try:
            await self._redis.delete(detail_key(article_id))
        except redis.RedisError as exc:
            logger.debug("Cache DELETE error for article_id=%s: %s", article_id, exc)

    # ------------------------------------------------------------------
    # Invalidation tied to the session's transaction
    # ------------------------------------------------------------------

    @staticmethod
    def defer_invalidation(session, article_id: int) -> None:
        """Queue *article_id*; its detail entry is dropped after *session* commits."""
        session.info.setdefault(_PENDING_KEY, set()).add(article_id)

    @staticmethod
    def discard_invalidations(session) -> None:
        session.info.pop(_PENDING_KEY, None)

    async def apply_invalidations(self, session) -> None:
        """Drop every detail entry queued on *session*.  Call after commit."""
        for article_id in session.info.pop(_PENDING_KEY, set()):
            await self.invalidate_article(article_id)

    @property
    def stats(self) -> dict:
        """Hit/miss counters reported by the health endpoint."""
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level singleton shared across all request handlers.
cache = CacheManager()
