import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

from loguru import logger

from recommender.core.config import settings
from recommender.core.exceptions import Forbidden, Unauthenticated
from recommender.core.security import redact_token
from recommender.models.recommendation import RankingWeights, RecommendationResponse, ScoredCandidate
from recommender.models.session import Session, SubjectHistory, SubjectProfile
from recommender.services.aggregator import ScoreAggregator
from recommender.services.explanations import ExplanationEnricher
from recommender.services.providers.base import EmbeddingProvider, ExplanationProvider
from recommender.services.rate_limiter import FixedWindowRateLimiter
from recommender.services.recommendation_cache import RecommendationCache
from recommender.services.signals import (
    EditorialBoostCollector,
    KeywordCollector,
    PrimarySignal,
    RankingContext,
    SemanticCollector,
    SignalCollector,
    SignalResult,
    TrackAffinityCollector,
    choose_primary_signal,
)
from recommender.services.store import ConferenceStore, IdentityResolver

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecommendationService:
    """
    Request orchestrator for personalized session recommendations.

    Received -> rate limit -> authenticate -> membership -> cache check ->
    (hit: respond) | (miss: collect -> aggregate -> enrich -> persist -> respond).
    Only the rejections before the cache check reach the caller as errors;
    everything after degrades instead of failing.
    """

    def __init__(
        self,
        store: ConferenceStore,
        auth: IdentityResolver,
        cache: RecommendationCache,
        rate_limiter: FixedWindowRateLimiter,
        embedding_provider: EmbeddingProvider | None = None,
        explanation_provider: ExplanationProvider | None = None,
        weights: RankingWeights | None = None,
        collectors: list[SignalCollector] | None = None,
        collector_timeout: float = settings.COLLECTOR_TIMEOUT_SECONDS,
        embedding_timeout: float = settings.EMBEDDING_TIMEOUT_SECONDS,
        explanation_timeout: float = settings.EXPLANATION_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.auth = auth
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.embedding_provider = embedding_provider
        self.weights = weights or RankingWeights.from_settings()
        self.collectors = collectors or [
            SemanticCollector(),
            KeywordCollector(),
            TrackAffinityCollector(),
            EditorialBoostCollector(),
        ]
        self.aggregator = ScoreAggregator(self.weights)
        self.enricher = ExplanationEnricher(
            explanation_provider, limit=self.weights.explanation_limit, timeout=explanation_timeout
        )
        self.collector_timeout = collector_timeout
        self.embedding_timeout = embedding_timeout
        self.clock = clock
        self._background_tasks: set[asyncio.Task] = set()

    # Rejections

    async def authorize(self, caller_id: str, access_token: str | None, conference_id: str | None = None) -> str:
        """
        Apply the rate limit, resolve the bearer credential and, when a conference
        is given, check membership. Returns the user id.
        """
        self.rate_limiter.hit(caller_id)

        if not access_token:
            raise Unauthenticated("Missing bearer token")
        try:
            user_id = await self.auth.get_user_id(access_token)
        except Exception as e:
            logger.warning(f"Could not verify token {redact_token(access_token)}: {e}")
            raise Unauthenticated("Could not verify credentials") from e
        if not user_id:
            raise Unauthenticated("Invalid or expired token")

        if conference_id is not None:
            try:
                is_member = await self.store.is_member(user_id, conference_id)
            except Exception as e:
                logger.error(f"[{redact_token(user_id)}] Membership check failed for {conference_id}: {e}")
                raise Forbidden("Could not verify conference membership") from e
            if not is_member:
                logger.info(f"[{redact_token(user_id)}] Not a member of conference {conference_id}")
                raise Forbidden("Not a member of this conference")

        return user_id

    # Public operations

    async def get_recommendations(
        self,
        caller_id: str,
        access_token: str | None,
        conference_id: str,
        force_refresh: bool = False,
    ) -> RecommendationResponse:
        user_id = await self.authorize(caller_id, access_token, conference_id)

        if not force_refresh:
            cached = await self._read_cache(user_id, conference_id)
            if cached is not None:
                logger.info(f"[{redact_token(user_id)}] Serving cached recommendations for {conference_id}")
                return RecommendationResponse(
                    recommendations=[c.to_recommendation() for c in cached],
                    cached=True,
                )

        ranked, cacheable = await self.rank(user_id, conference_id)

        if cacheable:
            await self._write_cache(user_id, conference_id, ranked)
        else:
            logger.warning(f"[{redact_token(user_id)}] Skipping cache write, history was unavailable")

        return RecommendationResponse(
            recommendations=[c.to_recommendation() for c in ranked],
            cached=False,
        )

    async def invalidate(self, caller_id: str, access_token: str | None, conference_id: str) -> None:
        user_id = await self.authorize(caller_id, access_token)
        try:
            await self.cache.delete(user_id, conference_id)
        except Exception as e:
            logger.error(f"[{redact_token(user_id)}] Failed to invalidate recommendations for {conference_id}: {e}")
            return
        logger.info(f"[{redact_token(user_id)}] Invalidated recommendations for {conference_id}")

    async def record_interaction(
        self,
        caller_id: str,
        access_token: str | None,
        conference_id: str,
        session_id: str,
        interaction_type: str,
        rating: int | None = None,
        duration_seconds: int | None = None,
    ) -> None:
        user_id = await self.authorize(caller_id, access_token, conference_id)
        await self.store.record_interaction(user_id, session_id, interaction_type, rating, duration_seconds)
        logger.info(f"[{redact_token(user_id)}] Recorded {interaction_type} on session {session_id}")
        try:
            await self.cache.delete(user_id, conference_id)
        except Exception as e:
            logger.warning(f"[{redact_token(user_id)}] Failed to invalidate recommendations: {e}")

    async def update_interests(self, caller_id: str, access_token: str | None, interests: list[str]) -> list[str]:
        user_id = await self.authorize(caller_id, access_token)
        cleaned = list(dict.fromkeys(t.strip() for t in interests if t and t.strip()))
        await self.store.update_interests(user_id, cleaned)
        logger.info(f"[{redact_token(user_id)}] Updated {len(cleaned)} interests, embedding will regenerate")
        return cleaned

    # Ranking pipeline

    async def rank(self, user_id: str, conference_id: str) -> tuple[list[ScoredCandidate], bool]:
        """
        Compute a fresh ranked list. Returns the list and whether it is safe to cache
        (it is not when the subject's history could not be read, since saved sessions
        may then be missing from the exclusion set).
        """
        (candidates, _), (profile, _), (history, history_ok) = await asyncio.gather(
            self._guarded(self.store.get_upcoming_sessions(conference_id, self.clock()), [], "sessions"),
            self._guarded(self.store.get_profile(user_id), None, "profile"),
            self._guarded(self.store.get_history(user_id), SubjectHistory(), "history"),
        )
        profile = profile or SubjectProfile(id=user_id)

        if not candidates:
            logger.info(f"[{redact_token(user_id)}] No upcoming sessions for {conference_id}")
            return [], history_ok

        context = await self.build_context(profile, history, candidates)
        logger.debug(f"[{redact_token(user_id)}] Ranking {len(candidates)} sessions with {context.primary.value}")

        results = await asyncio.gather(*(self._run_collector(c, context) for c in self.collectors))
        ranked = self.aggregator.rank(candidates, results, history)
        ranked = await self.enricher.enrich(profile, ranked)

        logger.info(f"[{redact_token(user_id)}] Computed {len(ranked)} recommendations for {conference_id}")
        return ranked, history_ok

    async def build_context(
        self, profile: SubjectProfile, history: SubjectHistory, candidates: list[Session]
    ) -> RankingContext:
        embedding = await self.resolve_subject_embedding(profile)
        primary = choose_primary_signal(embedding, candidates)
        if embedding and primary is PrimarySignal.KEYWORD:
            logger.warning(
                f"[{redact_token(profile.id)}] No session embedding has dimension {len(embedding)}, "
                "using keyword matching"
            )
        return RankingContext(
            profile=profile,
            history=history,
            candidates=candidates,
            weights=self.weights,
            primary=primary,
            subject_embedding=embedding,
        )

    async def resolve_subject_embedding(self, profile: SubjectProfile) -> list[float] | None:
        """Use the cached interest embedding, or compute one and write it back in the background."""
        if profile.interest_embedding:
            return profile.interest_embedding

        text = profile.embedding_text()
        if not text or self.embedding_provider is None:
            return None

        try:
            embedding = await asyncio.wait_for(self.embedding_provider.embed(text), timeout=self.embedding_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[{redact_token(profile.id)}] Embedding provider timed out")
            return None
        except Exception as e:
            logger.warning(f"[{redact_token(profile.id)}] Embedding provider failed: {e}")
            return None

        if not embedding:
            return None
        self._spawn(self._persist_embedding(profile.id, embedding))
        return embedding

    async def _persist_embedding(self, user_id: str, embedding: list[float]) -> None:
        try:
            await self.store.save_profile_embedding(user_id, embedding, self.clock())
            logger.debug(f"[{redact_token(user_id)}] Stored interest embedding")
        except Exception as e:
            logger.warning(f"[{redact_token(user_id)}] Failed to store interest embedding: {e}")

    async def _run_collector(self, collector: SignalCollector, context: RankingContext) -> SignalResult:
        try:
            return await asyncio.wait_for(collector.collect(context), timeout=self.collector_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{type(collector).__name__} timed out after {self.collector_timeout}s")
        except Exception as e:
            logger.warning(f"{type(collector).__name__} failed: {e}")
        return SignalResult.empty(collector.signal)

    async def _guarded(self, coro: Awaitable[T], default: T, label: str) -> tuple[T, bool]:
        try:
            return await asyncio.wait_for(coro, timeout=self.collector_timeout), True
        except asyncio.TimeoutError:
            logger.warning(f"Reading {label} timed out after {self.collector_timeout}s")
        except Exception as e:
            logger.warning(f"Reading {label} failed: {e}")
        return default, False

    # Cache

    async def _read_cache(self, user_id: str, conference_id: str) -> list[ScoredCandidate] | None:
        try:
            entry = await self.cache.get(user_id, conference_id)
        except Exception as e:
            logger.warning(f"[{redact_token(user_id)}] Cache read failed, recomputing: {e}")
            return None
        if entry is None or not entry.is_fresh(self.clock()):
            return None
        return entry.recommendations

    async def _write_cache(self, user_id: str, conference_id: str, ranked: list[ScoredCandidate]) -> None:
        entry = self.cache.build_entry(user_id, conference_id, ranked, now=self.clock())
        try:
            await self.cache.put(entry)
        except Exception as e:
            logger.error(f"[{redact_token(user_id)}] Failed to cache recommendations for {conference_id}: {e}")

    # Background work

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def aclose(self) -> None:
        """Wait for pending background writes (call on shutdown)."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
