"""Global test fixtures for JARVIS Router test suite."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest

from jarvisrouter.llm.base import BaseProvider
from jarvisrouter.llm.credentials import AvailabilityGate, StaticCredentialSource
from jarvisrouter.llm.events import RecordingEventSink
from jarvisrouter.llm.exceptions import ErrorKind, ProviderError
from jarvisrouter.llm.fallback_chain import FallbackChainConfig, FallbackOrchestrator
from jarvisrouter.llm.models import ProviderDescriptor, ProviderReply, TokenUsage
from jarvisrouter.llm.priority_store import PriorityStore


# ==========================================
# Pytest Configuration
# ==========================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "slow: Slow tests")


# ==========================================
# Scripted Provider
# ==========================================

Outcome = Union[None, ErrorKind, Exception]


class ScriptedProvider(BaseProvider):
    """Provider adapter whose calls follow a script.

    Each call pops the next outcome: ``None`` succeeds, an ``ErrorKind``
    raises a classified ``ProviderError``, an exception is raised as is.
    An exhausted script keeps succeeding.
    """

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        gate: AvailabilityGate,
        outcomes: Optional[Sequence[Outcome]] = None,
        content: str = "Mock response",
        init_error: Optional[Exception] = None,
    ):
        super().__init__(descriptor, gate)
        self.outcomes: List[Outcome] = list(outcomes or [])
        self.content = content
        self.init_error = init_error
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def _create_client(self) -> None:
        if self.init_error is not None:
            raise self.init_error

    async def send(self, message: str, temperature: float, max_tokens: int, model: str) -> ProviderReply:
        self.calls.append({
            "message": message,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "model": model,
        })

        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, ErrorKind):
            raise ProviderError(
                f"{self.display_name} failed with {outcome.value}",
                provider_id=self.provider_id,
                kind=outcome,
                http_status={ErrorKind.AUTH: 401, ErrorKind.RATE_LIMIT: 429, ErrorKind.UNAVAILABLE: 503}.get(outcome),
            )
        if isinstance(outcome, Exception):
            raise outcome

        return ProviderReply(
            content=f"{self.content} from {self.provider_id}",
            usage=TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        )

    async def close(self) -> None:
        self.closed = True
        await super().close()


# ==========================================
# Descriptor and Credential Fixtures
# ==========================================

def make_descriptor(provider_id: str, **overrides: Any) -> ProviderDescriptor:
    data = {
        "id": provider_id,
        "display_name": provider_id.capitalize(),
        "base_url": f"https://{provider_id}.example.test/v1",
        "credential_env_key": f"{provider_id.upper()}_API_KEY",
        "credential_prefix": f"{provider_id[:3]}_",
        "request_timeout_ms": 5000,
        "model": f"{provider_id}-model",
    }
    data.update(overrides)
    return ProviderDescriptor(**data)


def valid_key(descriptor: ProviderDescriptor) -> str:
    return f"{descriptor.credential_prefix}0123456789abcdef"


@pytest.fixture
def descriptors() -> Dict[str, ProviderDescriptor]:
    """Three test providers: alpha, beta, gamma."""
    return {pid: make_descriptor(pid) for pid in ("alpha", "beta", "gamma")}


@pytest.fixture
def credentials(descriptors) -> StaticCredentialSource:
    """Valid credentials for every test provider."""
    return StaticCredentialSource({d.credential_env_key: valid_key(d) for d in descriptors.values()})


@pytest.fixture
def gate(credentials) -> AvailabilityGate:
    return AvailabilityGate(credentials=credentials, ttl_seconds=0.0)


@pytest.fixture
def priority_file(tmp_path) -> Path:
    return tmp_path / "priority.json"


@pytest.fixture
def store(priority_file, descriptors) -> PriorityStore:
    """Priority store ranking alpha, beta, gamma."""
    return PriorityStore.initialize(priority_file, descriptors.values(), order=["alpha", "beta", "gamma"])


@pytest.fixture
def fast_config() -> FallbackChainConfig:
    """Fallback policy without real backoff delays."""
    return FallbackChainConfig(
        max_attempts_per_provider=3,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        availability_cache_ttl=0.0,
    )


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def restore_root_logger():
    """Undo root logger changes made by ``setup_logging``."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def make_orchestrator(descriptors, store, gate, fast_config, events):
    """Factory building an orchestrator with scripted providers.

    Usage: ``make_orchestrator(alpha=[ErrorKind.AUTH], beta=[])``; each
    keyword installs a ``ScriptedProvider`` with that outcome script.
    """

    def _make(config: Optional[FallbackChainConfig] = None, **scripts: Sequence[Outcome]):
        orchestrator = FallbackOrchestrator(
            descriptors,
            store,
            config=config or fast_config,
            gate=gate,
            event_sink=events,
        )
        for provider_id, outcomes in scripts.items():
            orchestrator.register_provider(ScriptedProvider(descriptors[provider_id], gate, outcomes=outcomes))
        return orchestrator

    return _make
