from datetime import datetime

from pydantic import BaseModel, Field

from recommender.core.constants import CONSUMED_INTERACTION_TYPES, EDITORIAL_SESSION_TYPES, EMBEDDING_TEXT_MAX_CHARS


class Track(BaseModel):
    id: str
    name: str = ""
    color: str | None = None


class Session(BaseModel):
    """
    A conference session eligible for recommendation.
    Owned by the content side; the ranking engine only reads it.
    """

    id: str
    title: str
    description: str = ""
    start_time: datetime
    end_time: datetime | None = None
    room: str | None = None
    track: Track | None = None
    session_type: str | None = None
    is_featured: bool = False
    topics: list[str] = Field(default_factory=list)
    difficulty: str | None = None
    # Never written into cache payloads
    embedding: list[float] | None = Field(default=None, exclude=True)

    @property
    def track_id(self) -> str | None:
        return self.track.id if self.track else None

    @property
    def is_editorial(self) -> bool:
        return self.is_featured or (self.session_type or "").lower() in EDITORIAL_SESSION_TYPES

    @property
    def searchable_text(self) -> str:
        return " ".join([self.title, self.description or "", *self.topics]).lower()


class SubjectProfile(BaseModel):
    """The attendee receiving recommendations."""

    id: str
    interests: list[str] = Field(default_factory=list)
    title: str | None = None
    company: str | None = None
    interest_embedding: list[float] | None = None
    embedding_updated_at: datetime | None = None

    def embedding_text(self) -> str:
        """Text the interest embedding is generated from."""
        parts = [", ".join(t for t in self.interests if t)]
        if self.title:
            parts.append(f"Role: {self.title}")
        if self.company:
            parts.append(f"Company: {self.company}")
        return ". ".join(p for p in parts if p)[:EMBEDDING_TEXT_MAX_CHARS]


class Interaction(BaseModel):
    session_id: str
    interaction_type: str
    track_id: str | None = None
    rating: int | None = None
    created_at: datetime | None = None


class SubjectHistory(BaseModel):
    """Everything the behavioral scorer and the exclusion filter read about a subject."""

    interactions: list[Interaction] = Field(default_factory=list)
    saved_session_ids: set[str] = Field(default_factory=set)

    @property
    def seen_session_ids(self) -> set[str]:
        return {i.session_id for i in self.interactions} | self.saved_session_ids

    @property
    def consumed_session_ids(self) -> set[str]:
        """Sessions already on the subject's agenda; never recommended."""
        consumed = {i.session_id for i in self.interactions if i.interaction_type in CONSUMED_INTERACTION_TYPES}
        return consumed | self.saved_session_ids
