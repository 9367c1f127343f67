import asyncio

from loguru import logger

from recommender.core.constants import (
    BEHAVIORAL_REASON,
    DEFAULT_REASON,
    EDITORIAL_REASON,
    KEYWORD_REASON,
    SEMANTIC_REASON,
)
from recommender.models.recommendation import ScoredCandidate, SignalType
from recommender.models.session import SubjectProfile
from recommender.services.providers.base import ExplanationProvider


def templated_reason(candidate: ScoredCandidate) -> str:
    """Deterministic reason keyed by the candidate's dominant signal."""
    track_name = candidate.session.track.name if candidate.session.track else ""
    if candidate.signal == SignalType.KEYWORD and candidate.matched_tags:
        return KEYWORD_REASON.format(tag=candidate.matched_tags[0])
    if candidate.signal in (SignalType.SEMANTIC, SignalType.KEYWORD) and track_name:
        return SEMANTIC_REASON.format(track=track_name)
    if candidate.signal == SignalType.BEHAVIORAL:
        return BEHAVIORAL_REASON
    if candidate.signal == SignalType.EDITORIAL:
        return EDITORIAL_REASON
    return DEFAULT_REASON


class ExplanationEnricher:
    """
    Annotates already-ranked results with reasons.

    Only the first `limit` candidates are sent to the provider; everything
    else, and anything the provider fails to explain, keeps its templated reason.
    """

    def __init__(self, provider: ExplanationProvider | None, limit: int = 5, timeout: float = 8.0):
        self.provider = provider
        self.limit = limit
        self.timeout = timeout

    async def enrich(self, profile: SubjectProfile, ranked: list[ScoredCandidate]) -> list[ScoredCandidate]:
        for candidate in ranked:
            candidate.reason = templated_reason(candidate)

        head = ranked[: self.limit]
        if not head or self.provider is None:
            return ranked

        try:
            reasons = await asyncio.wait_for(self.provider.explain(profile, head), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Explanation provider timed out after {self.timeout}s, using templated reasons")
            return ranked
        except Exception as e:
            logger.warning(f"Explanation provider failed, using templated reasons: {e}")
            return ranked

        for candidate in head:
            reason = reasons.get(candidate.session.id)
            if reason:
                candidate.reason = reason
        return ranked
