from recommender.models.recommendation import SignalType
from recommender.services.signals.base import RankingContext, SignalCollector, SignalResult


class EditorialBoostCollector(SignalCollector):
    """Flat boost for keynote and featured sessions."""

    signal = SignalType.EDITORIAL

    async def collect(self, context: RankingContext) -> SignalResult:
        boost = context.weights.editorial_boost
        return SignalResult(
            signal=self.signal,
            scores={s.id: boost for s in context.candidates if s.is_editorial},
        )
