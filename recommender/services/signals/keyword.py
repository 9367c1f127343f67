from recommender.models.recommendation import SignalType
from recommender.services.signals.base import PrimarySignal, RankingContext, SignalCollector, SignalResult


def normalize_tags(tags: list[str]) -> dict[str, str]:
    """Map lowercased tag -> tag as the attendee wrote it, dropping blanks and duplicates."""
    normalized: dict[str, str] = {}
    for tag in tags:
        cleaned = (tag or "").strip()
        if cleaned and cleaned.lower() not in normalized:
            normalized[cleaned.lower()] = cleaned
    return normalized


class KeywordCollector(SignalCollector):
    """
    Substring match of interest tags against title, description and topics.
    Only runs when the semantic signal is not the primary one.
    """

    signal = SignalType.KEYWORD

    async def collect(self, context: RankingContext) -> SignalResult:
        result = SignalResult.empty(self.signal)
        if context.primary is not PrimarySignal.KEYWORD:
            return result

        tags = normalize_tags(context.profile.interests)
        if not tags:
            return result

        points = context.weights.keyword_match
        for session in context.candidates:
            text = session.searchable_text
            matched = [original for lowered, original in tags.items() if lowered in text]
            if matched:
                result.scores[session.id] = points * len(matched)
                result.matched_tags[session.id] = matched
        return result
