import json

from google import genai
from google.genai import types
from loguru import logger

from recommender.core.config import settings
from recommender.core.exceptions import ProviderUnavailable
from recommender.models.recommendation import ScoredCandidate
from recommender.models.session import SubjectProfile
from recommender.services.providers.base import EmbeddingProvider, ExplanationProvider


def _build_client(api_key: str | None) -> genai.Client | None:
    if not api_key:
        logger.warning("GEMINI_API_KEY not set. Gemini features will be disabled.")
        return None
    try:
        return genai.Client(api_key=api_key)
    except Exception as e:
        logger.warning(f"Failed to initialize Gemini client: {e}")
        return None


class GeminiEmbeddingProvider(EmbeddingProvider):
    def __init__(
        self,
        model: str = settings.GEMINI_EMBEDDING_MODEL,
        api_key: str | None = settings.GEMINI_API_KEY,
        dimensions: int | None = settings.GEMINI_EMBEDDING_DIMENSIONS,
    ):
        self.model = model
        self.dimensions = dimensions
        self.client = _build_client(api_key)

    async def embed(self, text: str) -> list[float]:
        if not self.client:
            raise ProviderUnavailable("Gemini client not initialized")
        config = types.EmbedContentConfig(output_dimensionality=self.dimensions) if self.dimensions else None
        response = await self.client.aio.models.embed_content(model=self.model, contents=text, config=config)
        if not response.embeddings or not response.embeddings[0].values:
            raise ValueError("Gemini returned no embedding")
        return list(response.embeddings[0].values)


class GeminiExplanationProvider(ExplanationProvider):
    def __init__(
        self,
        model: str = settings.DEFAULT_GEMINI_MODEL,
        api_key: str | None = settings.GEMINI_API_KEY,
        max_chars: int = settings.EXPLANATION_MAX_CHARS,
    ):
        self.model = model
        self.max_chars = max_chars
        self.client = _build_client(api_key)

    @staticmethod
    def get_prompt():
        return """
        You are a conference concierge.
        Given an attendee's interests and role and a list of sessions, write one short,
        personalized sentence per session explaining why the attendee should go.

        Keep each sentence:
        - Under 20 words
        - Specific to the attendee, never generic marketing copy
        - Free of the session title itself

        Return only a JSON array of objects: [{"id": "<session id>", "reason": "<sentence>"}]
        """

    @staticmethod
    def build_user_prompt(profile: SubjectProfile, candidates: list[ScoredCandidate]) -> str:
        attendee = {
            "interests": profile.interests,
            "role": profile.title,
            "company": profile.company,
        }
        sessions = [
            {
                "id": c.session.id,
                "title": c.session.title,
                "track": c.session.track.name if c.session.track else None,
            }
            for c in candidates
        ]
        return f"Attendee: {json.dumps(attendee)}\nSessions: {json.dumps(sessions)}"

    def parse_response(self, text: str, candidates: list[ScoredCandidate]) -> dict[str, str]:
        data = json.loads(text)
        if not isinstance(data, list):
            raise ValueError("Expected a JSON array of explanations")

        wanted = {c.session.id for c in candidates}
        reasons: dict[str, str] = {}
        for entry in data:
            if not isinstance(entry, dict):
                continue
            session_id = str(entry.get("id") or "")
            reason = entry.get("reason")
            if session_id in wanted and isinstance(reason, str) and reason.strip():
                reasons[session_id] = reason.strip()[: self.max_chars]
        return reasons

    async def explain(self, profile: SubjectProfile, candidates: list[ScoredCandidate]) -> dict[str, str]:
        if not self.client:
            raise ProviderUnavailable("Gemini client not initialized")
        if not candidates:
            return {}

        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=self.build_user_prompt(profile, candidates),
            config=types.GenerateContentConfig(
                system_instruction=self.get_prompt(),
                response_mime_type="application/json",
                max_output_tokens=80 * len(candidates),
                temperature=0.4,
            ),
        )
        if not response.text:
            raise ValueError("Gemini returned an empty explanation response")
        return self.parse_response(response.text, candidates)
