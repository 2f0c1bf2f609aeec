"""OpenAI chat-completions compatible provider adapter.

Groq, Gemini, GitHub Models and OpenRouter all accept the OpenAI
``/chat/completions`` wire format; concrete adapters only differ in
endpoint, headers and a few payload knobs.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..base import BaseProvider
from ..exceptions import ErrorKind, ProviderError
from ..models import ProviderReply
from ..normalization import normalize_usage

logger = logging.getLogger(__name__)

AUTH_INDICATORS = (
    "unauthorized",
    "invalid api key",
    "api key not valid",
    "invalid_api_key",
    "incorrect api key",
    "invalid x-api-key",
    "authentication",
    "permission denied",
    "bad credentials",
)

RATE_LIMIT_INDICATORS = ("rate limit", "rate_limit", "too many requests", "quota")

UNAVAILABLE_INDICATORS = ("service unavailable", "overloaded", "temporarily unavailable")


def classify_http_error(status: int, body: str = "") -> ErrorKind:
    """Classify a non-2xx backend response."""
    if status in (401, 403):
        return ErrorKind.AUTH
    if status == 429:
        return ErrorKind.RATE_LIMIT
    if status in (502, 503, 504, 529):
        return ErrorKind.UNAVAILABLE
    if status == 408:
        return ErrorKind.TIMEOUT

    body_lower = body.lower()
    # Some backends report a bad key as 400 with an explanatory body
    if any(indicator in body_lower for indicator in AUTH_INDICATORS):
        return ErrorKind.AUTH
    if any(indicator in body_lower for indicator in RATE_LIMIT_INDICATORS):
        return ErrorKind.RATE_LIMIT
    if any(indicator in body_lower for indicator in UNAVAILABLE_INDICATORS):
        return ErrorKind.UNAVAILABLE
    return ErrorKind.UNKNOWN


class OpenAICompatibleProvider(BaseProvider):
    """Adapter for backends speaking the OpenAI chat-completions format."""

    top_p: Optional[float] = None

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._session: Optional[aiohttp.ClientSession] = None
        self._headers: Dict[str, str] = {}

    @property
    def chat_url(self) -> str:
        return f"{self.descriptor.base_url.rstrip('/')}/chat/completions"

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, message: str, temperature: float, max_tokens: int, model: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": message.strip()},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": False,
        }
        if self.top_p is not None:
            payload["top_p"] = self.top_p
        return payload

    async def _create_client(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        self._headers = self._build_headers()

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        await super().close()

    def _error(self, kind: ErrorKind, http_status: Optional[int] = None, detail: str = "") -> ProviderError:
        name = self.display_name
        if kind == ErrorKind.AUTH:
            message = f"Authentication failed for {name}. Please check your API key."
        elif kind == ErrorKind.RATE_LIMIT:
            message = f"Rate limit exceeded for {name}. Please try again later."
        elif kind == ErrorKind.UNAVAILABLE:
            message = f"{name} service is temporarily unavailable. Please try again in a few moments."
        elif kind == ErrorKind.TIMEOUT:
            message = f"Request timeout for {name}. Please try again."
        else:
            message = f"{name} request failed: {detail or 'unexpected error'}"
        return ProviderError(message, provider_id=self.provider_id, kind=kind, http_status=http_status)

    async def send(
        self,
        message: str,
        temperature: float,
        max_tokens: int,
        model: str,
    ) -> ProviderReply:
        if self._session is None or self._session.closed:
            await self._create_client()

        payload = self._build_payload(message, temperature, max_tokens, model)
        timeout = aiohttp.ClientTimeout(total=self.descriptor.request_timeout_seconds)

        logger.debug(
            f"Sending request to {self.display_name}: model={model}, "
            f"temperature={temperature}, max_tokens={max_tokens}, message_length={len(message)}"
        )

        try:
            async with self._session.post(
                self.chat_url,
                headers=self._headers,
                json=payload,
                timeout=timeout,
            ) as response:
                body = await response.text()
                status = response.status
        except asyncio.TimeoutError as e:
            raise self._error(ErrorKind.TIMEOUT) from e
        except aiohttp.ClientConnectionError as e:
            logger.warning(f"{self.display_name} connection error: {e}")
            raise self._error(ErrorKind.TIMEOUT) from e
        except aiohttp.ClientError as e:
            raise self._error(ErrorKind.UNKNOWN, detail=type(e).__name__) from e

        if status >= 400:
            kind = classify_http_error(status, body)
            logger.warning(f"{self.display_name} API error {status}: {body[:200]}")
            raise self._error(kind, http_status=status, detail=f"HTTP {status}")

        return self._parse_completion(body, status)

    def _parse_completion(self, body: str, status: int) -> ProviderReply:
        try:
            data = json.loads(body)
            content = data["choices"][0]["message"]["content"]
        except (json.JSONDecodeError, KeyError, IndexError, TypeError) as e:
            raise self._error(ErrorKind.UNKNOWN, http_status=status, detail="malformed response") from e

        if not isinstance(content, str):
            raise self._error(ErrorKind.UNKNOWN, http_status=status, detail="response contained no content")

        usage = data.get("usage") if isinstance(data.get("usage"), dict) else None
        return ProviderReply(content=content, usage=normalize_usage(usage))

    def get_provider_info(self) -> Dict[str, Any]:
        info = super().get_provider_info()
        info["base_url"] = self.descriptor.base_url
        return info
