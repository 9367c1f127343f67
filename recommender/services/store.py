from abc import ABC, abstractmethod
from datetime import datetime

from recommender.models.session import Session, SubjectHistory, SubjectProfile


class ConferenceStore(ABC):
    """
    Read/write contract the ranking engine needs from the conference database.
    """

    @abstractmethod
    async def get_upcoming_sessions(self, conference_id: str, now: datetime) -> list[Session]:
        pass

    @abstractmethod
    async def get_profile(self, user_id: str) -> SubjectProfile | None:
        pass

    @abstractmethod
    async def get_history(self, user_id: str) -> SubjectHistory:
        pass

    @abstractmethod
    async def is_member(self, user_id: str, conference_id: str) -> bool:
        pass

    @abstractmethod
    async def save_profile_embedding(self, user_id: str, embedding: list[float], updated_at: datetime) -> None:
        pass

    @abstractmethod
    async def record_interaction(
        self,
        user_id: str,
        session_id: str,
        interaction_type: str,
        rating: int | None = None,
        duration_seconds: int | None = None,
    ) -> None:
        pass

    @abstractmethod
    async def update_interests(self, user_id: str, interests: list[str]) -> None:
        """Replace interest tags and clear the cached interest embedding."""
        pass


class IdentityResolver(ABC):
    @abstractmethod
    async def get_user_id(self, access_token: str) -> str | None:
        """Return the user behind a bearer credential, or None if it is not accepted."""
        pass
