"""Data models for provider routing.

Descriptors and priority entries are immutable; the priority store replaces
entries instead of mutating them so a reader never sees a half-updated
collection. Attempt and generation results live for a single request.
"""

import math
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator

from ..config.exceptions import ValidationError
from .exceptions import ErrorKind

MAX_MESSAGE_LENGTH = 50000


class ProviderDescriptor(BaseModel):
    """Static description of one external AI backend."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique provider identifier")
    display_name: str = Field(..., description="Human-readable provider name")
    base_url: str = Field(..., description="Chat completions base endpoint")
    credential_env_key: str = Field(..., description="Credential source key")
    credential_prefix: str = Field(default="", description="Expected credential prefix")
    request_timeout_ms: int = Field(default=30000, gt=0, description="Per-call timeout")
    model: str = Field(..., description="Default model used when seeding the priority file")

    default_temperature: float = Field(default=0.7, ge=0.0)
    min_temperature: float = Field(default=0.0, ge=0.0)
    max_temperature: float = Field(default=2.0, ge=0.0)
    default_max_tokens: int = Field(default=1000, ge=1)
    max_tokens_limit: int = Field(default=4000, ge=1)

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000.0

    def clamp_temperature(self, temperature: Optional[float]) -> float:
        if temperature is None or math.isnan(temperature):
            return self.default_temperature
        return min(max(temperature, self.min_temperature), self.max_temperature)

    def clamp_max_tokens(self, max_tokens: Optional[int]) -> int:
        if max_tokens is None:
            return self.default_max_tokens
        return min(max(max_tokens, 1), self.max_tokens_limit)


class PriorityEntry(BaseModel):
    """One row of the persisted priority collection."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    priority: int
    enabled: bool
    model: str = Field(..., min_length=1)


class AvailabilityResult(BaseModel):
    provider_id: str
    available: bool


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ProviderReply(BaseModel):
    """Successful adapter payload before normalization."""

    content: str
    usage: TokenUsage = Field(default_factory=TokenUsage)


class AttemptResult(BaseModel):
    """Outcome of a single call to a single provider."""

    provider_id: str
    success: bool
    content: Optional[str] = None
    usage: Optional[TokenUsage] = None
    error_kind: Optional[ErrorKind] = None
    http_status: Optional[int] = None
    latency_ms: float = 0.0


class GenerationResult(BaseModel):
    """Normalized response returned to the caller."""

    model_config = ConfigDict(populate_by_name=True)

    response: str
    provider: str = Field(..., description="Display name of the answering provider")
    provider_id: str = Field(..., alias="providerId")
    model: str
    fallback_used: bool = Field(..., alias="fallbackUsed")
    total_attempts: int = Field(..., alias="totalAttempts", ge=1)
    usage: TokenUsage = Field(default_factory=TokenUsage)
    response_time_ms: float = Field(default=0.0, alias="responseTimeMs")
    attempts: List[AttemptResult] = Field(default_factory=list, exclude=True)


class GenerationOptions(BaseModel):
    """Caller-supplied overrides; clamped per provider before use."""

    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class ChatRequest(BaseModel):
    """Inbound chat request as handed over by a boundary layer."""

    message: str = Field(..., max_length=MAX_MESSAGE_LENGTH)
    temperature: Optional[float] = Field(default=None, allow_inf_nan=False)
    max_tokens: Optional[int] = None

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message cannot be empty")
        return v.strip()

    @property
    def options(self) -> GenerationOptions:
        return GenerationOptions(temperature=self.temperature, max_tokens=self.max_tokens)


def validate_chat_request(
    message: object,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> ChatRequest:
    """Validate raw request parameters.

    Raises:
        ValidationError: If the message is missing, empty or too long
    """
    if not isinstance(message, str):
        raise ValidationError("Message is required and must be a string", field="message")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message is too long (max {MAX_MESSAGE_LENGTH} characters)", field="message")

    try:
        return ChatRequest(message=message, temperature=temperature, max_tokens=max_tokens)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first.get("loc") else None
        raise ValidationError(first["msg"].removeprefix("Value error, "), field=field) from e
