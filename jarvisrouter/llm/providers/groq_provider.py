"""Groq provider adapter."""

from .openai_compatible import OpenAICompatibleProvider


class GroqProvider(OpenAICompatibleProvider):
    """Groq LPU inference through its OpenAI-compatible endpoint."""

    top_p = 0.9
