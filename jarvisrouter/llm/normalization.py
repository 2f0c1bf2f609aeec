"""Response normalization.

Turns heterogeneous adapter payloads into the single ``GenerationResult``
shape. Pure data transforms; missing content is rejected upstream by the
adapter as an UNKNOWN provider error.
"""

from typing import Any, List, Mapping, Optional, Sequence

from .models import AttemptResult, GenerationResult, ProviderDescriptor, ProviderReply, TokenUsage

_PROMPT_KEYS = ("prompt_tokens", "promptTokens", "input_tokens", "inputTokens")
_COMPLETION_KEYS = ("completion_tokens", "completionTokens", "output_tokens", "outputTokens")
_TOTAL_KEYS = ("total_tokens", "totalTokens")


def _first_int(payload: Mapping[str, Any], keys: Sequence[str]) -> Optional[int]:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def normalize_usage(raw: Optional[Mapping[str, Any]]) -> TokenUsage:
    """Map OpenAI, camelCase or Anthropic style usage dicts to ``TokenUsage``."""
    if not raw:
        return TokenUsage()

    prompt_tokens = _first_int(raw, _PROMPT_KEYS) or 0
    completion_tokens = _first_int(raw, _COMPLETION_KEYS) or 0
    total_tokens = _first_int(raw, _TOTAL_KEYS)
    if total_tokens is None:
        total_tokens = prompt_tokens + completion_tokens

    return TokenUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
    )


def normalize_response(
    reply: ProviderReply,
    descriptor: ProviderDescriptor,
    model: str,
    fallback_used: bool,
    total_attempts: int,
    response_time_ms: float = 0.0,
    attempts: Optional[List[AttemptResult]] = None,
) -> GenerationResult:
    """Build the caller-facing result for a successful attempt."""
    return GenerationResult(
        response=reply.content,
        provider=descriptor.display_name,
        provider_id=descriptor.id,
        model=model,
        fallback_used=fallback_used,
        total_attempts=total_attempts,
        usage=reply.usage,
        response_time_ms=response_time_ms,
        attempts=list(attempts or []),
    )
