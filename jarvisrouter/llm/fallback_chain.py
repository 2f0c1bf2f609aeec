"""Provider fallback orchestration.

This module routes a chat message through the enabled providers in strict
priority order. Each candidate gets a bounded number of attempts with
exponential backoff; authentication failures skip straight to the next
candidate. Attempts are sequential: a lower-ranked provider is never tried
while a higher-ranked available one still has attempts left.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Type, Union

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..config.exceptions import ConfigError
from .base import DEFAULT_SYSTEM_PROMPT, BaseProvider
from .credentials import AvailabilityGate, CredentialSource
from .events import (
    ALL_SERVICES_EXHAUSTED,
    SERVICE_ATTEMPTED,
    SERVICE_FAILED,
    SERVICE_SKIPPED,
    SERVICE_SUCCEEDED,
    EventSink,
    LoggingEventSink,
)
from .exceptions import (
    AllProvidersExhaustedError,
    ErrorKind,
    NoProviderAvailableError,
    ProviderError,
    RequestCancelledError,
    RouterError,
)
from .models import (
    AttemptResult,
    GenerationResult,
    ProviderDescriptor,
    ProviderReply,
    validate_chat_request,
)
from .normalization import normalize_response
from .priority_store import PriorityStore
from .providers import PROVIDER_CLASSES, OpenAICompatibleProvider

logger = logging.getLogger(__name__)

TEST_MESSAGE = "Hello, this is a test message. Please respond with a brief greeting."


# ============================================================================
# Configuration
# ============================================================================


class FallbackChainConfig(BaseSettings):
    """Retry and caching policy for the orchestrator.

    All values can be overridden via environment variables with FALLBACK_ prefix.
    """

    model_config = SettingsConfigDict(env_prefix="FALLBACK_")

    max_attempts_per_provider: int = Field(
        default=3,
        ge=1,
        description="Attempts per provider before falling back to the next one"
    )
    retry_base_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Base delay for exponential backoff (seconds)"
    )
    retry_max_delay: float = Field(
        default=10.0,
        ge=0.0,
        description="Maximum retry delay (seconds)"
    )
    unavailable_backoff_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Extra delay factor after an UNAVAILABLE failure"
    )
    retry_jitter: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Jitter factor for retry delays (0-1)"
    )
    availability_cache_ttl: float = Field(
        default=5.0,
        ge=0.0,
        description="Seconds an availability check result is reused"
    )
    metrics_window_seconds: int = Field(
        default=3600,
        description="Window for availability metrics (1 hour)"
    )
    max_tracked_requests: int = Field(
        default=10000,
        description="Max attempts to track for metrics"
    )


# ============================================================================
# Request State
# ============================================================================


class OrchestrationState(str, Enum):
    """Per-request orchestration states."""
    SELECTING = "selecting"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


# ============================================================================
# Attempt Metrics
# ============================================================================


@dataclass
class AttemptMetric:
    """Single attempt metric."""
    timestamp: float
    provider: str
    success: bool
    latency_ms: float
    error_kind: Optional[str] = None


class MetricsCollector:
    """Sliding-window availability and latency statistics per provider."""

    def __init__(
        self,
        window_seconds: int = 3600,
        max_requests: int = 10000
    ):
        self._window_seconds = window_seconds
        self._max_requests = max_requests
        self._metrics: deque[AttemptMetric] = deque(maxlen=max_requests)
        self._provider_metrics: Dict[str, deque[AttemptMetric]] = {}

    def record(
        self,
        provider: str,
        success: bool,
        latency_ms: float,
        error_kind: Optional[str] = None
    ) -> None:
        """Record an attempt metric."""
        metric = AttemptMetric(
            timestamp=time.monotonic(),
            provider=provider,
            success=success,
            latency_ms=latency_ms,
            error_kind=error_kind
        )
        self._metrics.append(metric)

        if provider not in self._provider_metrics:
            self._provider_metrics[provider] = deque(maxlen=self._max_requests)
        self._provider_metrics[provider].append(metric)

    def _recent(self, provider: Optional[str] = None) -> List[AttemptMetric]:
        metrics = self._provider_metrics.get(provider, deque()) if provider else self._metrics
        cutoff = time.monotonic() - self._window_seconds
        return [m for m in metrics if m.timestamp > cutoff]

    def get_availability(self, provider: Optional[str] = None) -> float:
        """Get success ratio (0.0 to 1.0)."""
        recent = self._recent(provider)
        if not recent:
            return 1.0  # No data, assume available

        successful = sum(1 for m in recent if m.success)
        return successful / len(recent)

    def get_latency_percentile(
        self,
        percentile: float = 0.95,
        provider: Optional[str] = None
    ) -> Optional[float]:
        """Get latency of successful attempts at given percentile."""
        latencies = sorted(m.latency_ms for m in self._recent(provider) if m.success)
        if not latencies:
            return None

        idx = min(int(len(latencies) * percentile), len(latencies) - 1)
        return latencies[idx]

    def get_request_count(self, provider: Optional[str] = None) -> int:
        return len(self._recent(provider))

    def get_summary(self) -> Dict[str, Any]:
        """Get comprehensive metrics summary."""
        return {
            "overall": {
                "availability": self.get_availability(),
                "attempt_count": self.get_request_count(),
                "p50_latency_ms": self.get_latency_percentile(0.50),
                "p95_latency_ms": self.get_latency_percentile(0.95),
            },
            "by_provider": {
                provider: {
                    "availability": self.get_availability(provider),
                    "attempt_count": self.get_request_count(provider),
                    "p95_latency_ms": self.get_latency_percentile(0.95, provider),
                }
                for provider in self._provider_metrics.keys()
            }
        }


# ============================================================================
# Fallback Orchestrator
# ============================================================================


class FallbackOrchestrator:
    """Routes messages through providers in priority order with fallback.

    Example:
        store = PriorityStore("priority.json")
        orchestrator = FallbackOrchestrator(BUILTIN_PROVIDERS, store)

        result = await orchestrator.generate_response("Hello")
        print(result.provider, result.fallback_used, result.total_attempts)
    """

    def __init__(
        self,
        descriptors: Union[Mapping[str, ProviderDescriptor], Iterable[ProviderDescriptor]],
        priority_store: PriorityStore,
        config: Optional[FallbackChainConfig] = None,
        gate: Optional[AvailabilityGate] = None,
        event_sink: Optional[EventSink] = None,
        provider_classes: Optional[Mapping[str, Type[BaseProvider]]] = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ):
        """Initialize the orchestrator.

        Args:
            descriptors: Provider descriptors, as a list or keyed by id
            priority_store: Store supplying order, enabled flags and models
            config: Retry and caching policy
            gate: Availability gate; defaults to one reading the environment
            event_sink: Receiver of routing events; defaults to logging
            provider_classes: Adapter class per provider id
            system_prompt: System message handed to every adapter
        """
        if isinstance(descriptors, Mapping):
            self._descriptors: Dict[str, ProviderDescriptor] = dict(descriptors)
        else:
            self._descriptors = {d.id: d for d in descriptors}

        self._store = priority_store
        self._config = config or FallbackChainConfig()
        self._gate = gate or AvailabilityGate(ttl_seconds=self._config.availability_cache_ttl)
        self._events: EventSink = event_sink or LoggingEventSink()
        self._provider_classes: Dict[str, Type[BaseProvider]] = dict(provider_classes or PROVIDER_CLASSES)
        self._system_prompt = system_prompt
        self._providers: Dict[str, BaseProvider] = {}
        self._metrics = MetricsCollector(
            window_seconds=self._config.metrics_window_seconds,
            max_requests=self._config.max_tracked_requests
        )
        self._sleep: Callable[[float], Any] = asyncio.sleep

        logger.info(
            f"Initialized FallbackOrchestrator with {len(self._descriptors)} providers, "
            f"max_attempts_per_provider={self._config.max_attempts_per_provider}"
        )

    @property
    def config(self) -> FallbackChainConfig:
        return self._config

    @property
    def priority_store(self) -> PriorityStore:
        return self._store

    @property
    def gate(self) -> AvailabilityGate:
        return self._gate

    # ========================================================================
    # Provider Registry
    # ========================================================================

    def get_descriptor(self, provider_id: str) -> Optional[ProviderDescriptor]:
        return self._descriptors.get(provider_id)

    def register_provider(self, provider: BaseProvider) -> None:
        """Install a ready-made adapter, replacing any lazily created one."""
        self._descriptors.setdefault(provider.provider_id, provider.descriptor)
        self._providers[provider.provider_id] = provider

    def get_provider(self, provider_id: str) -> BaseProvider:
        """Return the adapter for ``provider_id``, creating it on first use.

        Raises:
            ProviderError: If no descriptor is known for the id
        """
        provider = self._providers.get(provider_id)
        if provider is not None:
            return provider

        descriptor = self._descriptors.get(provider_id)
        if descriptor is None:
            raise ProviderError(
                f"Service {provider_id} not found",
                provider_id=provider_id,
                kind=ErrorKind.UNAVAILABLE,
            )

        # Descriptors without a dedicated adapter speak the plain OpenAI format
        provider_class = self._provider_classes.get(provider_id, OpenAICompatibleProvider)
        provider = provider_class(descriptor, self._gate, system_prompt=self._system_prompt)
        self._providers[provider_id] = provider
        logger.debug(f"Service registered on first use: {provider_id}")
        return provider

    # ========================================================================
    # Selection
    # ========================================================================

    def _is_candidate(self, provider_id: str, emit: bool = True) -> bool:
        descriptor = self._descriptors.get(provider_id)
        if descriptor is None:
            reason = "unknown provider"
        elif not self._gate.is_available(descriptor):
            reason = "credential unavailable"
        else:
            return True

        if emit:
            self._events.emit(SERVICE_SKIPPED, provider=provider_id, reason=reason)
        return False

    def select_candidates(self) -> List[str]:
        """Enabled provider ids in priority order that pass the availability gate.

        Read-only; skipped providers are not reported as events.
        """
        return [
            pid for pid in self._store.ordered_enabled_provider_ids()
            if self._is_candidate(pid, emit=False)
        ]

    # ========================================================================
    # Retry Logic
    # ========================================================================

    def _calculate_retry_delay(self, retry_index: int, kind: Optional[ErrorKind] = None) -> float:
        """Delay before retry number ``retry_index + 1`` on the same provider.

        Doubles with every retry; a preceding UNAVAILABLE failure stretches
        it by ``unavailable_backoff_multiplier``.
        """
        delay = self._config.retry_base_delay * (2 ** retry_index)
        if kind == ErrorKind.UNAVAILABLE:
            delay *= self._config.unavailable_backoff_multiplier
        delay = min(delay, self._config.retry_max_delay)

        jitter = self._config.retry_jitter
        if jitter:
            jitter_amount = delay * jitter
            delay += random.uniform(-jitter_amount, jitter_amount)

        return max(0.0, delay)

    @staticmethod
    def _check_cancelled(cancel_event: Optional[asyncio.Event], total_attempts: int) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Request cancelled by caller after {total_attempts} attempts")
            raise RequestCancelledError(total_attempts)

    async def _attempt(
        self,
        provider: BaseProvider,
        message: str,
        temperature: float,
        max_tokens: int,
        model: str,
    ) -> Tuple[AttemptResult, Optional[ProviderReply], Optional[ProviderError]]:
        """Make one call and record its outcome.

        Returns:
            The attempt record plus either the reply or the classified error
        """
        descriptor = provider.descriptor
        start_time = time.monotonic()
        reply: Optional[ProviderReply] = None
        error: Optional[ProviderError] = None

        try:
            reply = await asyncio.wait_for(
                provider.send(message, temperature=temperature, max_tokens=max_tokens, model=model),
                timeout=descriptor.request_timeout_seconds
            )
        except ProviderError as e:
            error = e
        except asyncio.TimeoutError:
            error = ProviderError(
                f"Request timeout for {descriptor.display_name}. Please try again.",
                provider_id=descriptor.id,
                kind=ErrorKind.TIMEOUT,
            )
        except (ConfigError, ValueError, TypeError, KeyError) as e:
            error = ProviderError(
                f"{descriptor.display_name} request failed: {type(e).__name__}",
                provider_id=descriptor.id,
                kind=ErrorKind.UNKNOWN,
            )

        latency_ms = (time.monotonic() - start_time) * 1000
        if error is not None:
            self._metrics.record(descriptor.id, False, latency_ms, error.kind.value)
            attempt = AttemptResult(
                provider_id=descriptor.id,
                success=False,
                error_kind=error.kind,
                http_status=error.http_status,
                latency_ms=latency_ms,
            )
            return attempt, None, error

        self._metrics.record(descriptor.id, True, latency_ms)
        attempt = AttemptResult(
            provider_id=descriptor.id,
            success=True,
            content=reply.content,
            usage=reply.usage,
            latency_ms=latency_ms,
        )
        return attempt, reply, None

    # ========================================================================
    # Main Generation Method
    # ========================================================================

    async def generate_response(
        self,
        message: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        """Generate a response with automatic fallback.

        Args:
            message: User message (non-empty, at most 50 000 characters)
            temperature: Optional override, clamped per provider
            max_tokens: Optional override, clamped per provider
            cancel_event: Checked between attempts; when set the request stops

        Returns:
            GenerationResult from the first provider that succeeds

        Raises:
            ValidationError: If the message is invalid
            NoProviderAvailableError: If no enabled provider has a usable credential
            AllProvidersExhaustedError: If every candidate failed
            RequestCancelledError: If ``cancel_event`` was set between attempts
        """
        request = validate_chat_request(message, temperature, max_tokens)
        options = request.options
        started = time.monotonic()

        state = OrchestrationState.SELECTING
        enabled_ids = self._store.ordered_enabled_provider_ids()
        candidates = [pid for pid in enabled_ids if self._is_candidate(pid)]
        if not candidates:
            logger.error("No AI services are available for this request")
            raise NoProviderAvailableError()

        logger.debug(f"Starting AI request with {len(candidates)} candidate services: {candidates}")

        max_attempts = self._config.max_attempts_per_provider
        total_attempts = 0
        attempts: List[AttemptResult] = []
        errors: Dict[str, ProviderError] = {}
        last_error: Optional[ProviderError] = None

        for provider_id in candidates:
            state = OrchestrationState.ATTEMPTING
            self._check_cancelled(cancel_event, total_attempts)
            descriptor = self._descriptors[provider_id]

            try:
                provider = self.get_provider(provider_id)
                await provider.initialize()
                model = self._store.model_for(provider_id)
            except ProviderError as e:
                errors[provider_id] = last_error = e
                self._events.emit(SERVICE_SKIPPED, provider=provider_id, reason="initialization failed",
                                  error_kind=e.kind.value)
                continue
            except ConfigError as e:
                last_error = ProviderError(e.message, provider_id=provider_id, kind=ErrorKind.UNKNOWN)
                errors[provider_id] = last_error
                self._events.emit(SERVICE_SKIPPED, provider=provider_id, reason="no model configured")
                continue

            temperature_used = descriptor.clamp_temperature(options.temperature)
            max_tokens_used = descriptor.clamp_max_tokens(options.max_tokens)

            for attempt_index in range(max_attempts):
                if attempt_index > 0:
                    self._check_cancelled(cancel_event, total_attempts)

                total_attempts += 1
                self._events.emit(
                    SERVICE_ATTEMPTED,
                    provider=provider_id,
                    model=model,
                    attempt=attempt_index + 1,
                    total_attempts=total_attempts,
                )

                attempt, reply, error = await self._attempt(
                    provider, request.message, temperature_used, max_tokens_used, model
                )
                attempts.append(attempt)

                if error is None:
                    state = OrchestrationState.SUCCEEDED
                    fallback_used = enabled_ids.index(provider_id) > 0
                    self._events.emit(
                        SERVICE_SUCCEEDED,
                        provider=provider_id,
                        model=model,
                        latency_ms=round(attempt.latency_ms, 1),
                        total_attempts=total_attempts,
                        fallback_used=fallback_used,
                    )
                    logger.debug(f"Orchestration {state.value} with {descriptor.display_name}")
                    return normalize_response(
                        reply=reply,
                        descriptor=descriptor,
                        model=model,
                        fallback_used=fallback_used,
                        total_attempts=total_attempts,
                        response_time_ms=(time.monotonic() - started) * 1000,
                        attempts=attempts,
                    )

                errors[provider_id] = last_error = error
                self._events.emit(
                    SERVICE_FAILED,
                    provider=provider_id,
                    error_kind=error.kind.value,
                    http_status=error.http_status,
                    attempt=attempt_index + 1,
                )

                if error.kind == ErrorKind.AUTH:
                    # Deterministic failure, retrying cannot help
                    break

                if attempt_index < max_attempts - 1:
                    delay = self._calculate_retry_delay(attempt_index, error.kind)
                    logger.info(
                        f"Retrying '{provider_id}' in {delay:.2f}s "
                        f"(attempt {attempt_index + 2}/{max_attempts})"
                    )
                    await self._sleep(delay)
                else:
                    logger.warning(f"Provider '{provider_id}' exhausted retries, trying next")

        state = OrchestrationState.EXHAUSTED
        self._events.emit(
            ALL_SERVICES_EXHAUSTED,
            total_attempts=total_attempts,
            last_error_kind=last_error.kind.value if last_error else None,
        )
        logger.error(
            f"All AI services failed after {total_attempts} attempts "
            f"(state={state.value}, last error: {last_error.message if last_error else 'none'})"
        )
        raise AllProvidersExhaustedError(last_error, errors=errors, total_attempts=total_attempts)

    # ========================================================================
    # Administration
    # ========================================================================

    def reload(self) -> List[str]:
        """Re-read the priority file and drop cached availability results."""
        self._store.reload()
        self._gate.invalidate()
        return self._store.ordered_enabled_provider_ids()

    def _available_services(self) -> List[Dict[str, Any]]:
        services = []
        for rank, provider_id in enumerate(self.select_candidates(), start=1):
            descriptor = self._descriptors[provider_id]
            services.append({
                "id": provider_id,
                "name": descriptor.display_name,
                "priority": rank,
                "model": self._store.model_for(provider_id),
            })
        return services

    def get_service_status(self) -> Dict[str, Any]:
        """Summary of configured and currently usable providers."""
        available = self._available_services()
        return {
            "total_services": len(self._descriptors),
            "available_services": len(available),
            "services": available,
            "current_priority": available[0]["name"] if available else "None available",
            "metrics": self._metrics.get_summary(),
        }

    def get_service_details(self) -> List[Dict[str, Any]]:
        """Every priority entry joined with its descriptor and availability."""
        details = []
        for entry in self._store.entries():
            descriptor = self._descriptors.get(entry.id)
            details.append({
                "id": entry.id,
                "name": descriptor.display_name if descriptor else entry.id,
                "priority": entry.priority,
                "enabled": entry.enabled,
                "model": entry.model,
                "available": bool(descriptor) and self._gate.is_available(descriptor),
            })
        return details

    def get_metrics_summary(self) -> Dict[str, Any]:
        return self._metrics.get_summary()

    async def test_service(self, provider_id: str) -> Dict[str, Any]:
        """Send a short test message straight to one provider, without fallback."""
        try:
            provider = self.get_provider(provider_id)
            if not provider.is_available():
                raise ProviderError(
                    f"Service {provider_id} is not available",
                    provider_id=provider_id,
                    kind=ErrorKind.UNAVAILABLE,
                )

            await provider.initialize()
            model = self._store.model_for(provider_id)
            start_time = time.monotonic()
            _, reply, error = await self._attempt(
                provider,
                TEST_MESSAGE,
                provider.descriptor.default_temperature,
                provider.descriptor.clamp_max_tokens(50),
                model,
            )
            duration_ms = (time.monotonic() - start_time) * 1000
            if error is not None:
                raise error

        except (RouterError, ConfigError) as e:
            logger.error(f"Test failed for {provider_id}: {e.message}")
            return {
                "success": False,
                "service": provider_id,
                "error": e.message,
            }

        logger.info(f"Test successful for {provider_id} ({duration_ms:.0f}ms)")
        return {
            "success": True,
            "service": provider_id,
            "provider": provider.display_name,
            "model": model,
            "response": reply.content[:100],
            "response_time_ms": duration_ms,
        }

    async def test_all_services(self) -> Dict[str, Any]:
        """Test every available provider one after the other."""
        results = []
        for provider_id in self.select_candidates():
            results.append(await self.test_service(provider_id))

        successful = sum(1 for r in results if r["success"])
        logger.info(f"Service test completed: {successful}/{len(results)} services working")
        return {
            "total_services": len(results),
            "available_services": successful,
            "results": results,
        }

    async def close(self) -> None:
        """Release every adapter created so far."""
        for provider in self._providers.values():
            await provider.close()

    async def __aenter__(self) -> "FallbackOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


# ============================================================================
# Factory Function
# ============================================================================


def create_orchestrator(
    descriptors: Union[Mapping[str, ProviderDescriptor], Iterable[ProviderDescriptor]],
    priority_file: Union[str, PriorityStore],
    config: Optional[FallbackChainConfig] = None,
    credentials: Optional[CredentialSource] = None,
    event_sink: Optional[EventSink] = None,
    system_prompt: str = DEFAULT_SYSTEM_PROMPT,
) -> FallbackOrchestrator:
    """Create an orchestrator with a loaded priority store.

    Raises:
        ConfigError: If the priority file is missing or malformed
    """
    config = config or FallbackChainConfig()
    store = priority_file if isinstance(priority_file, PriorityStore) else PriorityStore(priority_file)
    store.load()

    gate = AvailabilityGate(credentials=credentials, ttl_seconds=config.availability_cache_ttl)
    return FallbackOrchestrator(
        descriptors,
        store,
        config=config,
        gate=gate,
        event_sink=event_sink,
        system_prompt=system_prompt,
    )
