"""Base provider adapter interface for JARVIS Router."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .credentials import AvailabilityGate
from .exceptions import ErrorKind, ProviderError
from .models import ProviderDescriptor, ProviderReply

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are JARVIS, a professional AI assistant. Provide direct, helpful, and accurate responses."
)


class BaseProvider(ABC):
    """Abstract base class for provider adapters.

    An adapter shapes requests for one backend and classifies its failures
    into ``ErrorKind`` values. It never retries internally; retry and
    fallback decisions belong to the orchestrator.
    """

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        gate: AvailabilityGate,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ):
        """Initialize the adapter.

        Args:
            descriptor: Static provider configuration
            gate: Availability gate supplying the credential check
            system_prompt: System message sent ahead of the user message
        """
        self.descriptor = descriptor
        self.gate = gate
        self.system_prompt = system_prompt
        self.is_initialized = False

    @property
    def provider_id(self) -> str:
        return self.descriptor.id

    @property
    def display_name(self) -> str:
        return self.descriptor.display_name

    @property
    def api_key(self) -> Optional[str]:
        return self.gate.credential_for(self.descriptor)

    def is_available(self) -> bool:
        """Check if the provider credential is present and well-formed."""
        return self.gate.is_available(self.descriptor)

    async def initialize(self) -> None:
        """Lazily build backend client state. Safe to call repeatedly.

        Raises:
            ProviderError: With kind UNAVAILABLE if the credential check fails
        """
        if self.is_initialized:
            return

        if not self.is_available():
            raise ProviderError(
                f"{self.display_name} is not available. Please check your API key configuration.",
                provider_id=self.provider_id,
                kind=ErrorKind.UNAVAILABLE,
            )

        await self._create_client()
        self.is_initialized = True
        logger.info(f"{self.display_name} service initialized successfully")

    @abstractmethod
    async def _create_client(self) -> None:
        """Build backend-specific client state."""
        pass

    @abstractmethod
    async def send(
        self,
        message: str,
        temperature: float,
        max_tokens: int,
        model: str,
    ) -> ProviderReply:
        """Issue exactly one call to the backend.

        Args:
            message: User message
            temperature: Sampling temperature, already clamped
            max_tokens: Maximum tokens to generate, already clamped
            model: Model identifier from the priority store

        Returns:
            ProviderReply with content and token usage

        Raises:
            ProviderError: Classified failure
        """
        pass

    async def close(self) -> None:
        """Release client resources."""
        self.is_initialized = False

    def get_provider_info(self) -> Dict[str, Any]:
        """Get information about the configured provider."""
        return {
            "id": self.provider_id,
            "name": self.display_name,
            "available": self.is_available(),
            "timeout_ms": self.descriptor.request_timeout_ms,
        }
