from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from recommender.models.recommendation import RankingWeights, SignalType
from recommender.models.session import Session, SubjectHistory, SubjectProfile


class PrimarySignal(str, Enum):
    """Which interest signal drives a ranking run. Decided once, before collectors run."""

    SEMANTIC = "semantic_active"
    KEYWORD = "keyword_fallback"


@dataclass
class RankingContext:
    profile: SubjectProfile
    history: SubjectHistory
    candidates: list[Session]
    weights: RankingWeights
    primary: PrimarySignal = PrimarySignal.KEYWORD
    subject_embedding: list[float] | None = None


@dataclass
class SignalResult:
    """
    Sparse partial scores emitted by one collector.

    `bonus_scores` replace `scores` for candidates that already carry a score
    from an earlier signal when results are merged.
    """

    signal: SignalType
    scores: dict[str, float] = field(default_factory=dict)
    bonus_scores: dict[str, float] = field(default_factory=dict)
    matched_tags: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def empty(cls, signal: SignalType) -> "SignalResult":
        return cls(signal=signal)

    def __bool__(self) -> bool:
        return bool(self.scores)


class SignalCollector(ABC):
    """
    Interface for a scoring signal.
    """

    signal: SignalType

    @abstractmethod
    async def collect(self, context: RankingContext) -> SignalResult:
        """
        Score the candidate pool for this signal.
        """
        pass


def choose_primary_signal(subject_embedding: list[float] | None, candidates: list[Session]) -> PrimarySignal:
    """
    Semantic scoring needs a non-zero subject embedding and at least one session
    embedded in the same vector space (same dimension). Anything else would score
    every session 0, so the keyword fallback takes over instead.
    """
    if not subject_embedding or not any(subject_embedding):
        return PrimarySignal.KEYWORD
    dimension = len(subject_embedding)
    if any(c.embedding and len(c.embedding) == dimension for c in candidates):
        return PrimarySignal.SEMANTIC
    return PrimarySignal.KEYWORD
