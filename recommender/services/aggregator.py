from collections.abc import Iterable

from loguru import logger

from recommender.models.recommendation import RankingWeights, ScoredCandidate, SignalType
from recommender.models.session import Session, SubjectHistory
from recommender.services.signals.base import SignalResult

# Merge order; the behavioral bonus depends on what ran before it
SIGNAL_ORDER: tuple[SignalType, ...] = (
    SignalType.SEMANTIC,
    SignalType.KEYWORD,
    SignalType.BEHAVIORAL,
    SignalType.EDITORIAL,
)


class ScoreAggregator:
    """
    Merges per-signal partial scores into one ranked, truncated list.
    """

    def __init__(self, weights: RankingWeights):
        self.weights = weights

    @staticmethod
    def merge(results: Iterable[SignalResult]) -> dict[str, dict[SignalType, float]]:
        """Sum contributions per session into a shared accumulator, in signal order."""
        by_signal = {r.signal: r for r in results}
        accumulator: dict[str, dict[SignalType, float]] = {}

        for signal in SIGNAL_ORDER:
            result = by_signal.get(signal)
            if not result:
                continue
            for session_id, score in result.scores.items():
                contributions = accumulator.get(session_id)
                if contributions is None:
                    accumulator[session_id] = {signal: score}
                    continue
                value = result.bonus_scores.get(session_id, score)
                contributions[signal] = contributions.get(signal, 0.0) + value

        return accumulator

    @staticmethod
    def dominant_signal(contributions: dict[SignalType, float]) -> SignalType:
        # max() keeps the first of equal values, so ties go to the earlier signal
        ordered = [s for s in SIGNAL_ORDER if s in contributions]
        return max(ordered, key=lambda s: contributions[s])

    def rank(
        self,
        candidates: list[Session],
        results: Iterable[SignalResult],
        history: SubjectHistory,
    ) -> list[ScoredCandidate]:
        results = list(results)
        accumulator = self.merge(results)
        matched_tags: dict[str, list[str]] = {}
        for result in results:
            for session_id, tags in result.matched_tags.items():
                matched_tags.setdefault(session_id, []).extend(tags)

        consumed = history.consumed_session_ids
        scored: list[ScoredCandidate] = []
        for session in candidates:
            contributions = accumulator.get(session.id)
            if not contributions or session.id in consumed:
                continue
            total = sum(contributions.values())
            if total <= 0:
                continue
            scored.append(
                ScoredCandidate(
                    session=session,
                    score=total,
                    signal=self.dominant_signal(contributions),
                    contributions=contributions,
                    matched_tags=matched_tags.get(session.id, []),
                )
            )

        # Highest score first, soonest start breaks ties, id keeps it reproducible
        scored.sort(key=lambda c: (-c.score, c.session.start_time, c.session.id))
        ranked = scored[: self.weights.limit]
        logger.debug(f"Ranked {len(scored)} scored sessions, returning top {len(ranked)}")
        return ranked
