import json
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

from cachetools import TTLCache
from loguru import logger
from pydantic import TypeAdapter

from recommender.core.config import settings
from recommender.core.security import redact_token
from recommender.models.recommendation import CacheEntry, ScoredCandidate
from recommender.services.redis_service import RedisService
from recommender.services.supabase.client import SupabaseClient, eq

_TIMESTAMP = TypeAdapter(datetime)


class RecommendationCache(ABC):
    """
    Keyed store of the last ranked list per (user, conference).
    Entries are replaced wholesale; there is no partial update.
    """

    def __init__(self, ttl_seconds: int = settings.RECOMMENDATION_CACHE_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds

    def build_entry(
        self, user_id: str, conference_id: str, recommendations: list[ScoredCandidate], now: datetime | None = None
    ) -> CacheEntry:
        created = now or datetime.now(timezone.utc)
        return CacheEntry(
            user_id=user_id,
            conference_id=conference_id,
            recommendations=recommendations,
            created_at=created,
            expires_at=created + timedelta(seconds=self.ttl_seconds),
        )

    @abstractmethod
    async def get(self, user_id: str, conference_id: str) -> CacheEntry | None:
        """Return the stored entry, fresh or not, or None."""
        pass

    @abstractmethod
    async def put(self, entry: CacheEntry) -> None:
        """Replace any entry for the same key. Raises on failure."""
        pass

    @abstractmethod
    async def delete(self, user_id: str, conference_id: str) -> None:
        pass


class InMemoryRecommendationCache(RecommendationCache):
    """Process-local store. Expired keys are swept by the TTLCache itself."""

    def __init__(self, ttl_seconds: int = settings.RECOMMENDATION_CACHE_TTL_SECONDS, maxsize: int = 10000):
        super().__init__(ttl_seconds)
        self._entries: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_seconds)

    async def get(self, user_id: str, conference_id: str) -> CacheEntry | None:
        entry = self._entries.get((user_id, conference_id))
        # Hand out copies so callers can't mutate the stored list
        return entry.model_copy(deep=True) if entry else None

    async def put(self, entry: CacheEntry) -> None:
        self._entries[(entry.user_id, entry.conference_id)] = entry.model_copy(deep=True)

    async def delete(self, user_id: str, conference_id: str) -> None:
        self._entries.pop((user_id, conference_id), None)


class RedisRecommendationCache(RecommendationCache):
    def __init__(
        self,
        redis: RedisService,
        ttl_seconds: int = settings.RECOMMENDATION_CACHE_TTL_SECONDS,
        key_template: str = settings.REDIS_RECOMMENDATIONS_KEY,
    ):
        super().__init__(ttl_seconds)
        self.redis = redis
        self.key_template = key_template

    def _key(self, user_id: str, conference_id: str) -> str:
        return self.key_template.format(user_id=user_id, conference_id=conference_id)

    async def get(self, user_id: str, conference_id: str) -> CacheEntry | None:
        raw = await self.redis.get(self._key(user_id, conference_id))
        if not raw:
            return None
        try:
            return CacheEntry.model_validate_json(raw)
        except ValueError as e:
            logger.warning(f"Failed to decode cached recommendations for {redact_token(user_id)}: {e}")
            return None

    async def put(self, entry: CacheEntry) -> None:
        key = self._key(entry.user_id, entry.conference_id)
        # SETEX overwrites atomically, so delete-then-insert collapses to one call
        if not await self.redis.set(key, entry.model_dump_json(), ttl=self.ttl_seconds):
            raise RuntimeError(f"Redis rejected write for {key}")

    async def delete(self, user_id: str, conference_id: str) -> None:
        await self.redis.delete(self._key(user_id, conference_id))


class SupabaseRecommendationCache(RecommendationCache):
    """One row per recommended session in `session_recommendations`, ordered by `rank`."""

    TABLE = "session_recommendations"

    def __init__(self, client: SupabaseClient, ttl_seconds: int = settings.RECOMMENDATION_CACHE_TTL_SECONDS):
        super().__init__(ttl_seconds)
        self.client = client

    async def get(self, user_id: str, conference_id: str) -> CacheEntry | None:
        rows = await self.client.select(
            self.TABLE,
            {
                "select": "payload,created_at,expires_at,rank",
                "user_id": eq(user_id),
                "conference_id": eq(conference_id),
                "order": "rank.asc",
            },
        )
        if not rows:
            return None
        try:
            rows = self._latest_write(rows)
            recommendations = [ScoredCandidate.model_validate(json.loads(r["payload"])) for r in rows]
            return CacheEntry(
                user_id=user_id,
                conference_id=conference_id,
                recommendations=recommendations,
                created_at=rows[0]["created_at"],
                expires_at=min(_TIMESTAMP.validate_python(r["expires_at"]) for r in rows),
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Failed to decode cached recommendation rows for {redact_token(user_id)}: {e}")
            return None

    @staticmethod
    def _latest_write(rows: list[dict]) -> list[dict]:
        """
        Rows of the most recent write only, one per rank.
        Two writers racing on delete-then-insert can leave both row sets behind.
        """
        created = [_TIMESTAMP.validate_python(r["created_at"]) for r in rows]
        newest = max(created)
        latest: dict[int, dict] = {}
        for row, created_at in zip(rows, created):
            if created_at == newest:
                latest.setdefault(row["rank"], row)
        return [latest[rank] for rank in sorted(latest)]

    async def put(self, entry: CacheEntry) -> None:
        await self.delete(entry.user_id, entry.conference_id)
        if not entry.recommendations:
            return
        rows = [
            {
                "user_id": entry.user_id,
                "conference_id": entry.conference_id,
                "session_id": candidate.session.id,
                "rank": rank,
                "score": candidate.score,
                "payload": candidate.model_dump_json(),
                "created_at": entry.created_at.isoformat(),
                "expires_at": entry.expires_at.isoformat(),
            }
            for rank, candidate in enumerate(entry.recommendations)
        ]
        await self.client.insert(self.TABLE, rows)

    async def delete(self, user_id: str, conference_id: str) -> None:
        await self.client.remove(self.TABLE, {"user_id": eq(user_id), "conference_id": eq(conference_id)})
