"""Provider adapters package for JARVIS Router."""

from typing import Dict, Type

from ..base import BaseProvider
from .gemini_provider import GeminiProvider
from .github_provider import GitHubModelsProvider
from .groq_provider import GroqProvider
from .openai_compatible import OpenAICompatibleProvider, classify_http_error
from .openrouter_provider import OpenRouterProvider

PROVIDER_CLASSES: Dict[str, Type[BaseProvider]] = {
    "groq": GroqProvider,
    "gemini": GeminiProvider,
    "github": GitHubModelsProvider,
    "openrouter": OpenRouterProvider,
}

__all__ = [
    "PROVIDER_CLASSES",
    "OpenAICompatibleProvider",
    "GroqProvider",
    "GeminiProvider",
    "GitHubModelsProvider",
    "OpenRouterProvider",
    "classify_http_error",
]
