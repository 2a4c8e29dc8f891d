"""Credential data types and parsing of workflow-supplied credentials."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from action_credentials.config import CredentialInputs
from action_credentials.logging_utils import get_logger
from action_credentials.security.redaction import mask_token, validate_token_format
from action_credentials.utils.time import normalize_epoch_seconds

logger = get_logger(__name__)

_REPOSITORY_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


@dataclass(frozen=True)
class CredentialTriple:
    """Access token, refresh token and absolute expiry in epoch seconds.

    SECURITY: the token fields must never be logged.  ``__repr__`` only shows
    masked previews.
    """

    access_token: str
    refresh_token: str
    expires_at: int

    def __repr__(self) -> str:
        return (
            f"CredentialTriple(access_token={mask_token(self.access_token)}, "
            f"refresh_token={mask_token(self.refresh_token)}, "
            f"expires_at={self.expires_at})"
        )

    __str__ = __repr__


@dataclass(frozen=True)
class SecretStoreKey:
    """Repository public key used to seal secret values.

    Fetched once per propagation attempt; the store may rotate it at any time.
    """

    key: str
    key_id: str


@dataclass(frozen=True)
class RepositoryRef:
    owner: str
    name: str

    @classmethod
    def parse(cls, value: str) -> "RepositoryRef":
        candidate = (value or "").strip()
        if not _REPOSITORY_RE.match(candidate):
            raise ValueError(f"Invalid repository reference: {candidate!r} (expected owner/repo)")
        owner, name = candidate.split("/", 1)
        return cls(owner=owner, name=name)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name


class CredentialValidationError(ValueError):
    """Raised when a configured token does not have the expected shape."""

    def __init__(self, message: str, fields: tuple[str, ...]) -> None:
        super().__init__(message)
        self.fields = fields


def parse_expires_at(raw: str | None) -> int:
    """Parse a configured expiry, returning 0 (already expired) when unusable."""
    if raw is None or not raw.strip():
        return 0
    try:
        value = float(raw.strip())
    except ValueError:
        logger.warning("Configured expiry is not numeric; treating credential as expired")
        return 0
    if not math.isfinite(value) or value <= 0:
        logger.warning("Configured expiry is out of range; treating credential as expired")
        return 0
    return normalize_epoch_seconds(value)


def load_configured_credentials(inputs: CredentialInputs) -> CredentialTriple | None:
    """Build a triple from workflow inputs, or ``None`` when none is configured."""
    if not inputs.access_token or not inputs.refresh_token:
        return None
    return CredentialTriple(
        access_token=inputs.access_token,
        refresh_token=inputs.refresh_token,
        expires_at=parse_expires_at(inputs.expires_at),
    )


def validate_credentials(triple: CredentialTriple) -> None:
    invalid: list[str] = []
    if not validate_token_format(triple.access_token, "access"):
        invalid.append("access_token")
    if not validate_token_format(triple.refresh_token, "refresh"):
        invalid.append("refresh_token")
    if invalid:
        raise CredentialValidationError(
            f"Malformed credential: {', '.join(invalid)}", tuple(invalid)
        )
