"""Google Gemini provider adapter."""

from .openai_compatible import OpenAICompatibleProvider


class GeminiProvider(OpenAICompatibleProvider):
    """Google Gemini through the ``v1beta/openai`` compatibility endpoint.

    Gemini rejects an invalid key with HTTP 400 and an "API key not valid"
    body, which ``classify_http_error`` maps to AUTH.
    """
