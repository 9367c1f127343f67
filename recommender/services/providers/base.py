from abc import ABC, abstractmethod

from recommender.models.recommendation import ScoredCandidate
from recommender.models.session import SubjectProfile


class EmbeddingProvider(ABC):
    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return a fixed-length embedding for `text`. Raises on failure."""
        pass


class ExplanationProvider(ABC):
    @abstractmethod
    async def explain(self, profile: SubjectProfile, candidates: list[ScoredCandidate]) -> dict[str, str]:
        """
        Return one short personalized sentence per candidate, keyed by session id.
        Candidates may be missing from the result. Raises on failure.
        """
        pass
