"""Credential sources and the provider availability gate.

Availability is a local presence/format check of the provider credential.
It never touches the network and is not a live authentication probe.
"""

import logging
import os
import time
from threading import Lock
from typing import Dict, Mapping, Optional, Protocol, Tuple

from .models import AvailabilityResult, ProviderDescriptor

logger = logging.getLogger(__name__)

MIN_CREDENTIAL_LENGTH = 10


class CredentialSource(Protocol):
    """Read-only key/value source of provider credentials."""

    def get(self, key: str) -> Optional[str]:
        ...


class EnvironmentCredentialSource:
    """Credentials from the process environment."""

    def get(self, key: str) -> Optional[str]:
        return os.environ.get(key)


class StaticCredentialSource:
    """Credentials from a fixed mapping (tests, secret-manager snapshots)."""

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values = dict(values or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)


def validate_credential(
    value: Optional[str],
    prefix: str = "",
    min_length: int = MIN_CREDENTIAL_LENGTH,
) -> bool:
    """Check that a credential is present, long enough and correctly prefixed."""
    if not value:
        return False
    if len(value) <= min_length:
        return False
    if prefix and not value.startswith(prefix):
        return False
    return True


class AvailabilityGate:
    """Decides per provider whether a call should be attempted at all.

    Results are cached per provider id for ``ttl_seconds``; a credential
    change becomes visible at most that long after it happens.
    """

    def __init__(
        self,
        credentials: Optional[CredentialSource] = None,
        ttl_seconds: float = 5.0,
        min_length: int = MIN_CREDENTIAL_LENGTH,
    ):
        self._credentials = credentials or EnvironmentCredentialSource()
        self._ttl_seconds = ttl_seconds
        self._min_length = min_length
        self._cache: Dict[str, Tuple[float, bool]] = {}
        self._lock = Lock()

    @property
    def credentials(self) -> CredentialSource:
        return self._credentials

    def credential_for(self, descriptor: ProviderDescriptor) -> Optional[str]:
        return self._credentials.get(descriptor.credential_env_key)

    def is_available(self, descriptor: ProviderDescriptor) -> bool:
        now = time.monotonic()
        with self._lock:
            cached = self._cache.get(descriptor.id)
            if cached is not None and now - cached[0] < self._ttl_seconds:
                return cached[1]

        available = validate_credential(
            self.credential_for(descriptor),
            descriptor.credential_prefix,
            self._min_length,
        )
        if not available:
            logger.debug(
                f"Credential for {descriptor.display_name} missing or malformed "
                f"(env: {descriptor.credential_env_key})"
            )

        with self._lock:
            self._cache[descriptor.id] = (now, available)
        return available

    def check(self, descriptor: ProviderDescriptor) -> AvailabilityResult:
        return AvailabilityResult(provider_id=descriptor.id, available=self.is_available(descriptor))

    def invalidate(self, provider_id: Optional[str] = None) -> None:
        """Drop cached results for one provider, or for all of them."""
        with self._lock:
            if provider_id is None:
                self._cache.clear()
            else:
                self._cache.pop(provider_id, None)
