from recommender.models.recommendation import SignalType
from recommender.services.signals.base import PrimarySignal, RankingContext, SignalCollector, SignalResult
from recommender.services.similarity import cosine_similarity


class SemanticCollector(SignalCollector):
    """Cosine similarity between the subject's interest embedding and each session embedding."""

    signal = SignalType.SEMANTIC

    async def collect(self, context: RankingContext) -> SignalResult:
        result = SignalResult.empty(self.signal)
        if context.primary is not PrimarySignal.SEMANTIC or not context.subject_embedding:
            return result

        scale = context.weights.semantic_scale
        for session in context.candidates:
            if not session.embedding:
                continue
            score = cosine_similarity(context.subject_embedding, session.embedding) * scale
            if score > 0:
                result.scores[session.id] = score
        return result
