from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    PORT: int = 8000
    APP_NAME: str = "Session Recommender"
    APP_ENV: Literal["development", "production", "test"] = "production"

    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str | None = None

    REDIS_URL: str = "redis://redis:6379/0"
    # Maximum number of connections Redis client will open per process
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_RECOMMENDATIONS_KEY: str = "recs:{user_id}:{conference_id}"
    RECOMMENDATION_CACHE_BACKEND: Literal["redis", "supabase", "memory"] = "redis"
    RECOMMENDATION_CACHE_TTL_SECONDS: int = 3600

    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_MAX_REQUESTS: int = 30
    # Comma-separated proxy addresses whose X-Forwarded-For header is believed
    RATE_LIMIT_TRUSTED_PROXIES: str = ""

    # Ranking weights. Tuning constants, kept configurable.
    KEYWORD_MATCH_POINTS: float = 25.0
    TRACK_AFFINITY_POINTS: float = 15.0
    TRACK_AFFINITY_BONUS_POINTS: float = 10.0
    EDITORIAL_BOOST_POINTS: float = 20.0
    SEMANTIC_SCORE_SCALE: float = 100.0
    RECOMMENDATION_LIMIT: int = 10
    EXPLANATION_LIMIT: int = 5

    COLLECTOR_TIMEOUT_SECONDS: float = 5.0
    EMBEDDING_TIMEOUT_SECONDS: float = 5.0
    EXPLANATION_TIMEOUT_SECONDS: float = 8.0
    EXPLANATION_MAX_CHARS: int = 160

    # AI
    DEFAULT_GEMINI_MODEL: str = "gemini-2.0-flash"
    GEMINI_EMBEDDING_MODEL: str = "text-embedding-004"
    # Must match the dimension of the stored session embeddings
    GEMINI_EMBEDDING_DIMENSIONS: int | None = None
    GEMINI_API_KEY: str | None = None


settings = Settings()
