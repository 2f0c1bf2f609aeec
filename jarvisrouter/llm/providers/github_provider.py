"""GitHub Models provider adapter."""

from typing import Dict

from .openai_compatible import OpenAICompatibleProvider


class GitHubModelsProvider(OpenAICompatibleProvider):
    """OpenAI models served by the GitHub Models inference endpoint."""

    def _build_headers(self) -> Dict[str, str]:
        headers = super()._build_headers()
        headers["Accept"] = "application/json"
        return headers
