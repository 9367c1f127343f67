from datetime import datetime, timedelta, timezone

import pytest

from recommender.models.recommendation import RankingWeights
from recommender.models.session import Session, SubjectProfile, Track
from recommender.services.rate_limiter import FixedWindowRateLimiter
from recommender.services.recommendation_cache import InMemoryRecommendationCache
from recommender.services.recommendation_service import RecommendationService
from recommender.services.signals import (
    EditorialBoostCollector,
    KeywordCollector,
    SemanticCollector,
    TrackAffinityCollector,
)
from tests.fakes import FakeConferenceStore, FakeExplanationProvider, FakeIdentityResolver, SpyCollector

NOW = datetime(2026, 5, 1, 8, 0, tzinfo=timezone.utc)
USER_ID = "2b1f3c4d-0000-4000-8000-000000000001"
TOKEN = "header.payload.signature"
CONFERENCE_ID = "7f9e8d7c-0000-4000-8000-0000000000aa"

AI_TRACK = Track(id="track-ai", name="Artificial Intelligence", color="#7c3aed")
DESIGN_TRACK = Track(id="track-design", name="Design", color="#ec4899")


def make_session(
    session_id: str,
    title: str,
    starts_in_minutes: int = 60,
    track: Track | None = None,
    session_type: str | None = "talk",
    embedding: list[float] | None = None,
    description: str = "",
    topics: list[str] | None = None,
) -> Session:
    return Session(
        id=session_id,
        title=title,
        description=description,
        start_time=NOW + timedelta(minutes=starts_in_minutes),
        room="Hall A",
        track=track,
        session_type=session_type,
        embedding=embedding,
        topics=topics or [],
    )


class Clock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def weights() -> RankingWeights:
    return RankingWeights()


@pytest.fixture()
def scenario_store() -> FakeConferenceStore:
    """Attendee interested in AI and design; no embedding, no history."""
    return FakeConferenceStore(
        sessions=[
            make_session("a", "Practical AI for Product Teams", starts_in_minutes=30, track=AI_TRACK),
            make_session(
                "b", "The Future of design Systems", starts_in_minutes=90, track=DESIGN_TRACK, session_type="keynote"
            ),
            make_session("c", "Venue Logistics Briefing", starts_in_minutes=120),
        ],
        profiles={USER_ID: SubjectProfile(id=USER_ID, interests=["AI", "design"])},
        members={(USER_ID, CONFERENCE_ID)},
    )


@pytest.fixture()
def build_service(clock, weights):
    def _build(store: FakeConferenceStore, **overrides) -> RecommendationService:
        collectors = overrides.pop(
            "collectors",
            [
                SpyCollector(SemanticCollector()),
                SpyCollector(KeywordCollector()),
                SpyCollector(TrackAffinityCollector()),
                SpyCollector(EditorialBoostCollector()),
            ],
        )
        options = {
            "store": store,
            "auth": FakeIdentityResolver({TOKEN: USER_ID}),
            "cache": InMemoryRecommendationCache(ttl_seconds=3600),
            "rate_limiter": FixedWindowRateLimiter(max_requests=30, window_seconds=60),
            "embedding_provider": None,
            "explanation_provider": FakeExplanationProvider(),
            "weights": weights,
            "collectors": collectors,
            "collector_timeout": 0.5,
            "embedding_timeout": 0.5,
            "explanation_timeout": 0.5,
            "clock": clock,
        }
        options.update(overrides)
        return RecommendationService(**options)

    return _build
