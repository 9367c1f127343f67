from recommender.services.providers.base import EmbeddingProvider, ExplanationProvider
from recommender.services.providers.gemini import GeminiEmbeddingProvider, GeminiExplanationProvider

__all__ = ["EmbeddingProvider", "ExplanationProvider", "GeminiEmbeddingProvider", "GeminiExplanationProvider"]
