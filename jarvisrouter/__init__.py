"""JARVIS Router: priority-based AI provider routing with automatic fallback.

Forwards a chat message to one of several external AI completion providers,
chosen by a persisted priority order, retrying and falling back to the next
provider when a call fails.
"""

__version__ = "0.1.0"
__author__ = "JARVIS Router Team"
__license__ = "MIT"

from jarvisrouter.llm.fallback_chain import FallbackOrchestrator, create_orchestrator
from jarvisrouter.llm.models import GenerationResult
from jarvisrouter.config.loader import ConfigurationLoader

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "FallbackOrchestrator",
    "create_orchestrator",
    "GenerationResult",
    "ConfigurationLoader",
]
