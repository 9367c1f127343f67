from recommender.services.signals.base import (
    PrimarySignal,
    RankingContext,
    SignalCollector,
    SignalResult,
    choose_primary_signal,
)
from recommender.services.signals.behavioral import TrackAffinityCollector
from recommender.services.signals.editorial import EditorialBoostCollector
from recommender.services.signals.keyword import KeywordCollector
from recommender.services.signals.semantic import SemanticCollector

__all__ = [
    "EditorialBoostCollector",
    "KeywordCollector",
    "PrimarySignal",
    "RankingContext",
    "SemanticCollector",
    "SignalCollector",
    "SignalResult",
    "TrackAffinityCollector",
    "choose_primary_signal",
]
