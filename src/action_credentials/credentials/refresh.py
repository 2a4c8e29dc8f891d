"""Credential refresh orchestration for a single CI run.

One run walks a linear state machine::

    START -> SKIPPED                      no credential configured
    START -> VALIDATION_FAILED            configured tokens are malformed
    START -> VALID                        not expired, returned unchanged
    START -> exchange -> REFRESHED        renewed and persisted
    START -> exchange -> DEGRADED         renewed, persistence failed
    START -> exchange -> ExchangeError    fatal, re-raised to the caller

Nothing is retried.  Only tokens' masked previews and the expiry ever reach
outputs, the summary or the log.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

import httpx

from action_credentials.config import Settings
from action_credentials.credentials.exchange import (
    ExchangeError,
    RefreshThrottledError,
    TokenExchanger,
)
from action_credentials.credentials.expiry import DEFAULT_BUFFER_MINUTES, is_expired
from action_credentials.credentials.models import (
    CredentialTriple,
    CredentialValidationError,
    RepositoryRef,
    validate_credentials,
)
from action_credentials.credentials.propagation import (
    OAUTH_SECRET_NAMES,
    PropagationError,
    SecretPropagator,
    SecretUpdateError,
)
from action_credentials.github.actions import ActionsReporter
from action_credentials.github.client import GitHubClient
from action_credentials.logging_utils import get_logger
from action_credentials.security.audit import AuditOperation, AuditTrail
from action_credentials.security.rate_limit import RefreshRateLimiter
from action_credentials.security.redaction import mask_token, sanitize_error_message
from action_credentials.utils.time import epoch_seconds

logger = get_logger(__name__)

OUTPUT_REFRESHED = "token_refreshed"
OUTPUT_EXPIRES_AT = "claude_expires_at"
OUTPUT_SECRETS_UPDATED = "secrets_updated"


class RefreshStatus(str, Enum):
    SKIPPED = "skipped"
    VALID = "valid"
    VALIDATION_FAILED = "validation_failed"
    REFRESHED = "refreshed"
    DEGRADED = "degraded"


class PersistenceStatus(str, Enum):
    PERSISTED = "persisted"
    FAILED = "failed"
    NOT_CONFIGURED = "not_configured"
    NOT_ATTEMPTED = "not_attempted"


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of one run.

    ``credentials`` is the triple the rest of the run should use.  For
    ``DEGRADED`` it is the renewed triple even though the secret store still
    holds the old one.
    """

    status: RefreshStatus
    persistence: PersistenceStatus = PersistenceStatus.NOT_ATTEMPTED
    credentials: CredentialTriple | None = None
    error: str | None = None

    @property
    def refreshed(self) -> bool:
        return self.status in (RefreshStatus.REFRESHED, RefreshStatus.DEGRADED)

    @property
    def persisted(self) -> bool:
        return self.persistence is PersistenceStatus.PERSISTED


class RefreshOrchestrator:
    def __init__(
        self,
        exchanger: TokenExchanger,
        *,
        rate_limiter: RefreshRateLimiter,
        audit: AuditTrail,
        reporter: ActionsReporter,
        propagator: SecretPropagator | None = None,
        buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
        clock: Callable[[], int] = epoch_seconds,
    ) -> None:
        self._exchanger = exchanger
        self._rate_limiter = rate_limiter
        self._audit = audit
        self._reporter = reporter
        self._propagator = propagator
        self._buffer_minutes = buffer_minutes
        self._clock = clock

    async def run(self, configured: CredentialTriple | None) -> RefreshResult:
        """
        Ensure the run holds a usable credential.

        Raises:
            ExchangeError: renewal was required and failed (including throttling)
        """
        if configured is None:
            logger.info("OAuth tokens not found, skipping refresh")
            self._publish_outputs(refreshed=False)
            return RefreshResult(status=RefreshStatus.SKIPPED)

        try:
            validate_credentials(configured)
        except CredentialValidationError as exc:
            self._audit.record(AuditOperation.VALIDATION_FAILURE, success=False, error=exc)
            logger.warning("Configured OAuth tokens rejected: %s", exc)
            self._publish_outputs(refreshed=False)
            return RefreshResult(
                status=RefreshStatus.VALIDATION_FAILED,
                error=sanitize_error_message(exc),
            )

        if not is_expired(configured.expires_at, self._buffer_minutes, now=self._clock()):
            logger.info("Token is still valid, no refresh needed")
            self._publish_outputs(refreshed=False)
            return RefreshResult(status=RefreshStatus.VALID, credentials=configured)

        logger.info("Token expired or expiring soon, refreshing")
        renewed = await self._exchange(configured.refresh_token)

        persistence, error = await self._persist(renewed)
        if persistence is not PersistenceStatus.PERSISTED:
            self._log_manual_update(renewed)

        self._publish_outputs(
            refreshed=True,
            expires_at=renewed.expires_at,
            persisted=persistence is PersistenceStatus.PERSISTED,
        )
        self._write_summary(renewed, persistence)

        status = (
            RefreshStatus.REFRESHED
            if persistence is PersistenceStatus.PERSISTED
            else RefreshStatus.DEGRADED
        )
        return RefreshResult(
            status=status, persistence=persistence, credentials=renewed, error=error
        )

    async def _exchange(self, refresh_token: str) -> CredentialTriple:
        if not self._rate_limiter.can_refresh():
            throttled = RefreshThrottledError(self._rate_limiter.remaining_cooldown())
            self._audit.record(AuditOperation.REFRESH, success=False, error=throttled)
            logger.error("Token refresh failed: %s", throttled)
            raise throttled

        try:
            renewed = await self._exchanger.exchange(refresh_token)
        except ExchangeError as exc:
            self._audit.record(AuditOperation.REFRESH, success=False, error=exc)
            logger.error("Token refresh failed: %s", exc)
            raise

        self._audit.record(AuditOperation.REFRESH, success=True)
        logger.info("Token refreshed successfully; new expiry %d", renewed.expires_at)
        return renewed

    async def _persist(self, renewed: CredentialTriple) -> tuple[PersistenceStatus, str | None]:
        if self._propagator is None:
            logger.warning("Secret store not configured (GITHUB_TOKEN/GITHUB_REPOSITORY missing)")
            return PersistenceStatus.NOT_CONFIGURED, None

        repository = self._propagator.repository.full_name
        try:
            await self._propagator.propagate(renewed)
        except PropagationError as exc:
            error = sanitize_error_message(exc)
            self._audit.record(
                AuditOperation.UPDATE_SECRETS,
                success=False,
                error=error,
                repository=repository,
            )
            logger.warning("Failed to update GitHub secrets automatically: %s", error)
            if isinstance(exc, SecretUpdateError) and exc.updated_secrets:
                logger.warning(
                    "Secrets already replaced before the failure: %s",
                    ", ".join(exc.updated_secrets),
                )
            return PersistenceStatus.FAILED, error

        self._audit.record(AuditOperation.UPDATE_SECRETS, success=True, repository=repository)
        return PersistenceStatus.PERSISTED, None

    def _log_manual_update(self, renewed: CredentialTriple) -> None:
        access_name, refresh_name, expires_name = OAUTH_SECRET_NAMES
        logger.warning(
            "Please update the following secrets manually:\n"
            "  %s: [REDACTED - %s]\n"
            "  %s: [REDACTED - %s]\n"
            "  %s: %d\n"
            "Check the job summary for the masked token previews.",
            access_name,
            mask_token(renewed.access_token),
            refresh_name,
            mask_token(renewed.refresh_token),
            expires_name,
            renewed.expires_at,
        )

    def _publish_outputs(
        self,
        *,
        refreshed: bool,
        expires_at: int | None = None,
        persisted: bool = False,
    ) -> None:
        try:
            self._reporter.set_output(OUTPUT_REFRESHED, "true" if refreshed else "false")
            if expires_at is not None:
                self._reporter.set_output(OUTPUT_EXPIRES_AT, str(expires_at))
                self._reporter.set_output(OUTPUT_SECRETS_UPDATED, "true" if persisted else "false")
        except OSError as exc:
            logger.warning("Failed to write step outputs: %s", exc)

    def _write_summary(self, renewed: CredentialTriple, persistence: PersistenceStatus) -> None:
        if persistence is PersistenceStatus.PERSISTED:
            note = "Full tokens are stored in repository secrets."
        else:
            note = "Repository secrets were NOT updated; update them manually."
        summary = (
            "<details>\n"
            "<summary>Refreshed OAuth Tokens</summary>\n\n"
            f"**Access Token**: `{mask_token(renewed.access_token, 12)}`\n"
            f"**Refresh Token**: `{mask_token(renewed.refresh_token, 12)}`\n"
            f"**Expires At**: `{renewed.expires_at}`\n\n"
            f"{note} Never copy token values to unsecured locations.\n"
            "</details>\n"
        )
        try:
            self._reporter.add_summary(summary)
        except OSError as exc:
            logger.warning("Failed to write job summary: %s", exc)


def create_refresh_orchestrator(
    settings: Settings,
    client: httpx.AsyncClient,
    *,
    rate_limiter: RefreshRateLimiter | None = None,
    audit: AuditTrail | None = None,
    reporter: ActionsReporter | None = None,
) -> RefreshOrchestrator:
    """Wire an orchestrator from settings around a shared HTTP client."""
    exchanger = TokenExchanger(
        client,
        settings.provider.token_url,
        timeout_seconds=settings.provider.timeout_seconds,
    )

    propagator: SecretPropagator | None = None
    if settings.github.token and settings.github.repository:
        try:
            repository = RepositoryRef.parse(settings.github.repository)
        except ValueError as exc:
            logger.warning("Cannot update secrets: %s", exc)
        else:
            github = GitHubClient(
                client,
                settings.github.token,
                settings.github.api_url,
                timeout_seconds=settings.provider.timeout_seconds,
            )
            propagator = SecretPropagator(github, repository)

    return RefreshOrchestrator(
        exchanger,
        rate_limiter=rate_limiter
        or RefreshRateLimiter(settings.refresh.min_interval_seconds),
        audit=audit
        or AuditTrail(
            repository=settings.github.repository,
            actor=settings.run.actor,
            run_id=settings.run.run_id,
        ),
        reporter=reporter
        or ActionsReporter(settings.run.output_path, settings.run.summary_path),
        propagator=propagator,
        buffer_minutes=settings.refresh.buffer_minutes,
    )
