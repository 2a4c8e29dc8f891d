"""Propagation of renewed credentials into repository secrets.

Protocol, per attempt:

1. Fetch the repository public key.  A failure here aborts before any write.
2. For each secret in a fixed order, seal the value under that key and
   ``PUT`` it.  Updates are sequential and independent: a failure on the
   k-th secret leaves the first k-1 already replaced.  There is no rollback;
   :class:`SecretUpdateError` reports which secrets were written so the
   remaining ones can be fixed by hand.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass

from nacl import exceptions as nacl_exceptions
from nacl.public import PublicKey, SealedBox

from action_credentials.credentials.models import CredentialTriple, RepositoryRef
from action_credentials.github.client import GitHubAPIError, GitHubClient
from action_credentials.logging_utils import get_logger
from action_credentials.security.redaction import mask_sensitive_text

logger = get_logger(__name__)

ACCESS_TOKEN_SECRET = "CLAUDE_ACCESS_TOKEN"
REFRESH_TOKEN_SECRET = "CLAUDE_REFRESH_TOKEN"
EXPIRES_AT_SECRET = "CLAUDE_EXPIRES_AT"
OAUTH_SECRET_NAMES = (ACCESS_TOKEN_SECRET, REFRESH_TOKEN_SECRET, EXPIRES_AT_SECRET)


class PropagationError(Exception):
    """Base class for secret-store failures; never carries plaintext or ciphertext."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(mask_sensitive_text(message))
        self.status_code = status_code


class KeyFetchError(PropagationError):
    """Raised when the repository public key cannot be obtained."""


class SecretUpdateError(PropagationError):
    """Raised when a single secret update fails."""

    def __init__(
        self,
        message: str,
        secret_name: str,
        status_code: int | None = None,
        updated_secrets: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.secret_name = secret_name
        self.updated_secrets = updated_secrets


@dataclass(frozen=True)
class SealingKey:
    """A store key decoded and ready to seal values."""

    key_id: str
    public_key: PublicKey


def load_public_key(encoded: str) -> PublicKey:
    """Decode a base64 Curve25519 public key.

    Raises:
        ValueError: not base64 or not a 32-byte key
    """
    try:
        return PublicKey(base64.b64decode(encoded, validate=True))
    except (TypeError, ValueError, nacl_exceptions.CryptoError) as exc:
        raise ValueError("Secret store public key is not a valid Curve25519 key") from exc


def seal_secret(public_key: PublicKey | str, value: str) -> str:
    """Encrypt ``value`` with a libsodium sealed box for ``public_key``."""
    if isinstance(public_key, str):
        public_key = load_public_key(public_key)
    sealed = SealedBox(public_key).encrypt(value.encode("utf-8"))
    return base64.b64encode(sealed).decode("ascii")


def secret_values(triple: CredentialTriple) -> tuple[tuple[str, str], ...]:
    return (
        (ACCESS_TOKEN_SECRET, triple.access_token),
        (REFRESH_TOKEN_SECRET, triple.refresh_token),
        (EXPIRES_AT_SECRET, str(triple.expires_at)),
    )


class SecretPropagator:
    """Write a credential triple to the repository's Actions secrets."""

    def __init__(self, github: GitHubClient, repository: RepositoryRef) -> None:
        self._github = github
        self._repository = repository

    @property
    def repository(self) -> RepositoryRef:
        return self._repository

    async def fetch_key(self) -> SealingKey:
        """
        Fetch and decode the repository public key.

        Raises:
            KeyFetchError: the key is unavailable or cannot seal values
        """
        try:
            store_key = await self._github.get_secrets_public_key(self._repository)
        except GitHubAPIError as exc:
            raise KeyFetchError(
                f"Failed to get public key: {exc.reason or exc}",
                status_code=exc.status_code,
            ) from exc
        try:
            public_key = load_public_key(store_key.key)
        except ValueError as exc:
            raise KeyFetchError(f"Failed to get public key: {exc}") from exc
        return SealingKey(key_id=store_key.key_id, public_key=public_key)

    async def propagate(self, triple: CredentialTriple) -> None:
        """
        Seal and store all three credential fields.

        Raises:
            KeyFetchError: public key unavailable or unusable; nothing was written
            SecretUpdateError: a field update failed; earlier fields were written
        """
        sealing_key = await self.fetch_key()

        updated: list[str] = []
        for name, value in secret_values(triple):
            try:
                encrypted = seal_secret(sealing_key.public_key, value)
            except nacl_exceptions.CryptoError:
                raise SecretUpdateError(
                    f"Failed to encrypt secret {name}",
                    secret_name=name,
                    updated_secrets=tuple(updated),
                ) from None
            try:
                await self._github.put_secret(
                    self._repository, name, encrypted, sealing_key.key_id
                )
            except GitHubAPIError as exc:
                raise SecretUpdateError(
                    f"Failed to update secret {name}: {exc.reason or exc}",
                    secret_name=name,
                    status_code=exc.status_code,
                    updated_secrets=tuple(updated),
                ) from exc
            updated.append(name)
            logger.debug("Updated secret %s", name)

        logger.info(
            "Repository secrets updated for %s (%s)",
            self._repository,
            ", ".join(updated),
        )
