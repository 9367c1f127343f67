from datetime import datetime, timezone
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from recommender.core.config import settings
from recommender.models.session import Session


class SignalType(str, Enum):
    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    BEHAVIORAL = "behavioral"
    EDITORIAL = "editorial"


RecommendationType = Literal["interest_match", "popular", "similar_attendees", "skill_building", "schedule_fit"]

SIGNAL_RECOMMENDATION_TYPES: dict[SignalType, RecommendationType] = {
    SignalType.SEMANTIC: "interest_match",
    SignalType.KEYWORD: "interest_match",
    SignalType.BEHAVIORAL: "similar_attendees",
    SignalType.EDITORIAL: "popular",
}


class RankingWeights(BaseModel):
    """Tuning constants for the ranking signals."""

    keyword_match: float = 25.0
    track_affinity: float = 15.0
    track_affinity_bonus: float = 10.0
    editorial_boost: float = 20.0
    semantic_scale: float = 100.0
    limit: int = 10
    explanation_limit: int = 5

    @classmethod
    def from_settings(cls) -> "RankingWeights":
        return cls(
            keyword_match=settings.KEYWORD_MATCH_POINTS,
            track_affinity=settings.TRACK_AFFINITY_POINTS,
            track_affinity_bonus=settings.TRACK_AFFINITY_BONUS_POINTS,
            editorial_boost=settings.EDITORIAL_BOOST_POINTS,
            semantic_scale=settings.SEMANTIC_SCORE_SCALE,
            limit=settings.RECOMMENDATION_LIMIT,
            explanation_limit=settings.EXPLANATION_LIMIT,
        )


class ScoredCandidate(BaseModel):
    session: Session
    score: float
    signal: SignalType
    reason: str | None = None
    contributions: dict[SignalType, float] = Field(default_factory=dict)
    matched_tags: list[str] = Field(default_factory=list)

    def to_recommendation(self) -> "Recommendation":
        track = self.session.track
        return Recommendation(
            itemId=self.session.id,
            title=self.session.title,
            score=int(round(self.score)),
            reason=self.reason or "",
            signalType=SIGNAL_RECOMMENDATION_TYPES[self.signal],
            track=track.name if track else None,
            trackColor=track.color if track else None,
            startTime=self.session.start_time,
            room=self.session.room,
        )


class CacheEntry(BaseModel):
    user_id: str
    conference_id: str
    recommendations: list[ScoredCandidate] = Field(default_factory=list)
    created_at: datetime
    expires_at: datetime

    def is_fresh(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(timezone.utc)) < self.expires_at


class RecommendationRequest(BaseModel):
    conferenceId: UUID
    forceRefresh: bool = False


class Recommendation(BaseModel):
    itemId: str
    title: str
    score: int
    reason: str
    signalType: RecommendationType
    track: str | None = None
    trackColor: str | None = None
    startTime: datetime
    room: str | None = None


class RecommendationResponse(BaseModel):
    recommendations: list[Recommendation] = Field(default_factory=list)
    cached: bool = False


class InteractionRequest(BaseModel):
    sessionId: UUID
    conferenceId: UUID
    interactionType: Literal["viewed", "saved", "attended", "rated", "shared"]
    rating: int | None = Field(default=None, ge=1, le=5)
    durationSeconds: int | None = Field(default=None, ge=0)


class InterestsRequest(BaseModel):
    interests: list[str] = Field(default_factory=list, max_length=50)
