"""OpenRouter provider adapter.

OpenRouter exposes many upstream models behind one API. It asks clients to
identify themselves with ``HTTP-Referer`` and ``X-Title`` headers.
"""

from typing import Any, Dict

from .openai_compatible import OpenAICompatibleProvider

DEFAULT_APP_NAME = "JARVIS AI API"
DEFAULT_SITE_URL = "http://localhost:3000"


class OpenRouterProvider(OpenAICompatibleProvider):
    """OpenRouter API provider for multiple LLM models."""

    top_p = 0.9

    def __init__(
        self,
        *args: Any,
        app_name: str = DEFAULT_APP_NAME,
        site_url: str = DEFAULT_SITE_URL,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.app_name = app_name
        self.site_url = site_url

    def _build_headers(self) -> Dict[str, str]:
        headers = super()._build_headers()
        headers["HTTP-Referer"] = self.site_url
        headers["X-Title"] = self.app_name
        return headers
