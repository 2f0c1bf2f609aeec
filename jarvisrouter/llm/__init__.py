"""Provider routing for JARVIS Router.

This package provides:
- Provider adapters for OpenAI-compatible backends (Groq, Gemini, GitHub Models, OpenRouter)
- Persisted priority store with atomic updates
- Credential availability gate
- Fallback orchestrator with per-provider retry and backoff
- Response normalization and routing events
"""

from .base import DEFAULT_SYSTEM_PROMPT, BaseProvider
from .credentials import (
    AvailabilityGate,
    CredentialSource,
    EnvironmentCredentialSource,
    StaticCredentialSource,
    validate_credential,
)
from .events import EventSink, LoggingEventSink, RecordingEventSink
from .exceptions import (
    AllProvidersExhaustedError,
    ErrorKind,
    NoProviderAvailableError,
    ProviderError,
    RequestCancelledError,
    RouterError,
    http_status_hint,
)
from .fallback_chain import (
    FallbackChainConfig,
    FallbackOrchestrator,
    MetricsCollector,
    OrchestrationState,
    create_orchestrator,
)
from .models import (
    AttemptResult,
    ChatRequest,
    GenerationOptions,
    GenerationResult,
    PriorityEntry,
    ProviderDescriptor,
    ProviderReply,
    TokenUsage,
    validate_chat_request,
)
from .normalization import normalize_response, normalize_usage
from .priority_store import DEFAULT_PRIORITY_FILE, DEFAULT_PRIORITY_ORDER, PriorityStore

__all__ = [
    # Adapters
    "BaseProvider",
    "DEFAULT_SYSTEM_PROMPT",
    # Credentials
    "AvailabilityGate",
    "CredentialSource",
    "EnvironmentCredentialSource",
    "StaticCredentialSource",
    "validate_credential",
    # Events
    "EventSink",
    "LoggingEventSink",
    "RecordingEventSink",
    # Errors
    "AllProvidersExhaustedError",
    "ErrorKind",
    "NoProviderAvailableError",
    "ProviderError",
    "RequestCancelledError",
    "RouterError",
    "http_status_hint",
    # Orchestration
    "FallbackChainConfig",
    "FallbackOrchestrator",
    "MetricsCollector",
    "OrchestrationState",
    "create_orchestrator",
    # Models
    "AttemptResult",
    "ChatRequest",
    "GenerationOptions",
    "GenerationResult",
    "PriorityEntry",
    "ProviderDescriptor",
    "ProviderReply",
    "TokenUsage",
    "validate_chat_request",
    "normalize_response",
    "normalize_usage",
    # Priority store
    "DEFAULT_PRIORITY_FILE",
    "DEFAULT_PRIORITY_ORDER",
    "PriorityStore",
]
