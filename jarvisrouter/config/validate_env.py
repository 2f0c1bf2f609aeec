"""Credential validation for the configured providers.

Reports, per provider, whether its credential is present and has the
expected shape. Values are never logged or printed unmasked.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from jarvisrouter.llm.credentials import (
    MIN_CREDENTIAL_LENGTH,
    CredentialSource,
    EnvironmentCredentialSource,
)
from jarvisrouter.llm.models import ProviderDescriptor

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIXES = ("your_", "change_this", "changeme", "CHANGE_ME")


class CredentialStatus(str, Enum):
    OK = "OK"
    MISSING = "MISSING"
    INVALID_FORMAT = "INVALID_FORMAT"
    PLACEHOLDER = "PLACEHOLDER"


@dataclass
class CredentialReport:
    """Validation outcome for one provider credential."""
    provider_id: str
    display_name: str
    env_key: str
    status: CredentialStatus
    masked_value: Optional[str] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == CredentialStatus.OK


def mask_credential(value: str) -> str:
    """Show only the edges of a credential."""
    if len(value) > 12:
        return value[:8] + "..." + value[-4:]
    return "***"


def check_credential(
    descriptor: ProviderDescriptor,
    credentials: Optional[CredentialSource] = None,
) -> CredentialReport:
    """Validate the credential of one provider."""
    credentials = credentials or EnvironmentCredentialSource()
    value = credentials.get(descriptor.credential_env_key)

    def report(status: CredentialStatus, message: str = "") -> CredentialReport:
        return CredentialReport(
            provider_id=descriptor.id,
            display_name=descriptor.display_name,
            env_key=descriptor.credential_env_key,
            status=status,
            masked_value=mask_credential(value) if value else None,
            message=message,
        )

    if not value:
        return report(CredentialStatus.MISSING, f"{descriptor.credential_env_key} is not set")

    if value.startswith(PLACEHOLDER_PREFIXES):
        return report(
            CredentialStatus.PLACEHOLDER,
            f"{descriptor.credential_env_key} contains placeholder value - please update",
        )

    if descriptor.credential_prefix and not value.startswith(descriptor.credential_prefix):
        return report(
            CredentialStatus.INVALID_FORMAT,
            f"{descriptor.credential_env_key} should start with '{descriptor.credential_prefix}'",
        )

    if len(value) <= MIN_CREDENTIAL_LENGTH:
        return report(
            CredentialStatus.INVALID_FORMAT,
            f"{descriptor.credential_env_key} is too short",
        )

    return report(CredentialStatus.OK)


def validate_credentials(
    descriptors: Iterable[ProviderDescriptor],
    credentials: Optional[CredentialSource] = None,
) -> List[CredentialReport]:
    """Validate every provider credential and log the problems found.

    Returns:
        One report per descriptor, in the given order
    """
    reports = [check_credential(d, credentials) for d in descriptors]

    for r in reports:
        if r.status in (CredentialStatus.INVALID_FORMAT, CredentialStatus.PLACEHOLDER):
            logger.warning(f"Credential problem for {r.provider_id}: {r.message}")

    if not any(r.ok for r in reports):
        logger.warning(
            "No valid provider credential found. Set one of: "
            + ", ".join(r.env_key for r in reports)
        )

    return reports
