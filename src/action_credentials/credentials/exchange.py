"""Refresh-token exchange against the provider's OAuth token endpoint.

The exchanger performs exactly one POST per call and never retries; retry
and throttling policy belong to the orchestrator.
"""

from __future__ import annotations

import math
from typing import Any, Callable

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from action_credentials.config import DEFAULT_TOKEN_URL
from action_credentials.credentials.models import CredentialTriple
from action_credentials.logging_utils import get_logger
from action_credentials.security.redaction import mask_sensitive_text
from action_credentials.utils.time import epoch_seconds, normalize_epoch_seconds

logger = get_logger(__name__)

GRANT_TYPE = "refresh_token"
DEFAULT_LIFETIME_SECONDS = 3600


class ExchangeError(Exception):
    """Raised when the provider rejects the refresh token or is unreachable.

    Messages carry the HTTP status, reason and provider error code only.
    """

    def __init__(self, message: str, code: str, status_code: int | None = None) -> None:
        super().__init__(mask_sensitive_text(message))
        self.code = code
        self.status_code = status_code


class RefreshThrottledError(ExchangeError):
    """Raised when a renewal is refused by the minimum-interval gate."""

    def __init__(self, remaining_seconds: float) -> None:
        super().__init__(
            f"Token refresh throttled; retry in {math.ceil(remaining_seconds)}s",
            "throttled",
        )
        self.remaining_seconds = remaining_seconds


class TokenResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1, repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
    expires_at: float | None = None


def _provider_error_detail(response: httpx.Response) -> str:
    try:
        data: Any = response.json()
    except ValueError:
        return "Unknown error"
    if not isinstance(data, dict):
        return "Unknown error"
    error = data.get("error")
    if isinstance(error, dict):
        error = error.get("type") or error.get("message")
    if not error:
        return "Unknown error"
    return str(error)


class TokenExchanger:
    """Exchange a refresh token for a new :class:`CredentialTriple`."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token_url: str = DEFAULT_TOKEN_URL,
        *,
        timeout_seconds: float = 30.0,
        clock: Callable[[], int] = epoch_seconds,
    ) -> None:
        self._client = client
        self._token_url = token_url
        self._timeout = timeout_seconds
        self._clock = clock

    async def exchange(self, refresh_token: str) -> CredentialTriple:
        """
        Exchange ``refresh_token`` for a new credential triple.

        When the provider does not rotate the refresh token the previous one
        is kept.  When it omits the expiry, ``now + 3600`` is assumed.

        Raises:
            ExchangeError: non-2xx status, malformed body, or transport failure
        """
        try:
            response = await self._client.post(
                self._token_url,
                json={"grant_type": GRANT_TYPE, "refresh_token": refresh_token},
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise ExchangeError(
                f"Token endpoint unreachable: {type(exc).__name__}", "unreachable"
            ) from exc

        if not response.is_success:
            raise ExchangeError(
                f"Token refresh failed: {response.status_code} {response.reason_phrase} - "
                f"{_provider_error_detail(response)}",
                "rejected",
                status_code=response.status_code,
            )

        try:
            payload = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            # Validation detail echoes input values; never include it.
            raise ExchangeError(
                "Token endpoint returned a malformed response body",
                "malformed_response",
                status_code=response.status_code,
            ) from None

        if payload.expires_at and math.isfinite(payload.expires_at) and payload.expires_at > 0:
            expires_at = normalize_epoch_seconds(payload.expires_at)
        else:
            logger.info("Provider omitted expiry; assuming %ds lifetime", DEFAULT_LIFETIME_SECONDS)
            expires_at = self._clock() + DEFAULT_LIFETIME_SECONDS

        rotated = bool(payload.refresh_token)
        logger.info("Token exchange succeeded (refresh token rotated=%s)", rotated)
        return CredentialTriple(
            access_token=payload.access_token,
            refresh_token=payload.refresh_token or refresh_token,
            expires_at=expires_at,
        )
