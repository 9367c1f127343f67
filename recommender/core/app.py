from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from recommender.api.main import api_router
from recommender.models.recommendation import RankingWeights
from recommender.services.providers import GeminiEmbeddingProvider, GeminiExplanationProvider
from recommender.services.rate_limiter import FixedWindowRateLimiter
from recommender.services.recommendation_cache import (
    InMemoryRecommendationCache,
    RecommendationCache,
    RedisRecommendationCache,
    SupabaseRecommendationCache,
)
from recommender.services.recommendation_service import RecommendationService
from recommender.services.redis_service import redis_service
from recommender.services.supabase import SupabaseAuthService, SupabaseClient, SupabaseConferenceStore

from .config import settings
from .version import __version__


def build_cache(supabase_client: SupabaseClient) -> RecommendationCache:
    backend = settings.RECOMMENDATION_CACHE_BACKEND
    logger.info(f"Using '{backend}' recommendation cache")
    if backend == "supabase":
        return SupabaseRecommendationCache(supabase_client)
    if backend == "memory":
        return InMemoryRecommendationCache()
    return RedisRecommendationCache(redis_service)


def build_recommendation_service(supabase_client: SupabaseClient) -> RecommendationService:
    return RecommendationService(
        store=SupabaseConferenceStore(supabase_client),
        auth=SupabaseAuthService(supabase_client),
        cache=build_cache(supabase_client),
        rate_limiter=FixedWindowRateLimiter(),
        embedding_provider=GeminiEmbeddingProvider(),
        explanation_provider=GeminiExplanationProvider(),
        weights=RankingWeights.from_settings(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events (startup/shutdown).
    A service already placed on app.state (tests) is left alone.
    """
    supabase_client = None
    if getattr(app.state, "recommendation_service", None) is None:
        if not settings.SUPABASE_URL:
            logger.warning("SUPABASE_URL is not set. Data store calls will fail until configured.")
        supabase_client = SupabaseClient()
        app.state.recommendation_service = build_recommendation_service(supabase_client)

    yield

    try:
        await app.state.recommendation_service.aclose()
    except Exception as exc:
        logger.warning(f"Failed to drain background tasks: {exc}")
    if supabase_client is not None:
        await supabase_client.close()
        try:
            await redis_service.close()
        except Exception as exc:
            logger.warning(f"Failed to close Redis client: {exc}")


def create_app(service: RecommendationService | None = None) -> FastAPI:
    application = FastAPI(
        title=settings.APP_NAME,
        description="Personalized conference session recommendations",
        version=__version__,
        lifespan=lifespan,
        docs_url=None if settings.APP_ENV != "development" else "/docs",
        redoc_url=None if settings.APP_ENV != "development" else "/redoc",
    )
    application.state.recommendation_service = service

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(api_router)
    return application


app = create_app()
