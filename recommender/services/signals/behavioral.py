from collections import Counter

from recommender.models.recommendation import SignalType
from recommender.services.signals.base import RankingContext, SignalCollector, SignalResult


class TrackAffinityCollector(SignalCollector):
    """
    Scores unseen sessions by how often the subject interacted with their track.
    First-touch points apply when no other signal scored the session; the
    smaller bonus applies on top of an existing score.
    """

    signal = SignalType.BEHAVIORAL

    async def collect(self, context: RankingContext) -> SignalResult:
        result = SignalResult.empty(self.signal)
        if not context.history.interactions:
            return result

        track_by_session = {s.id: s.track_id for s in context.candidates}
        track_counts: Counter[str] = Counter()
        for interaction in context.history.interactions:
            track_id = interaction.track_id or track_by_session.get(interaction.session_id)
            if track_id:
                track_counts[track_id] += 1

        if not track_counts:
            return result

        seen = context.history.seen_session_ids
        weights = context.weights
        for session in context.candidates:
            if session.id in seen or not session.track_id:
                continue
            count = track_counts.get(session.track_id, 0)
            if count:
                result.scores[session.id] = count * weights.track_affinity
                result.bonus_scores[session.id] = count * weights.track_affinity_bonus
        return result
