"""Command-line entrypoint for credential refresh and repository setup.

Both commands read their inputs from the environment populated by the
workflow (see ``action_credentials.config.ENV_KEYS``).
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Sequence

import httpx

from action_credentials import __version__
from action_credentials.config import Settings, load_settings
from action_credentials.credentials.exchange import ExchangeError
from action_credentials.credentials.models import RepositoryRef, load_configured_credentials
from action_credentials.credentials.refresh import RefreshResult, create_refresh_orchestrator
from action_credentials.github.client import GitHubClient
from action_credentials.logging_utils import configure_logging, get_logger
from action_credentials.security.redaction import is_secure_environment
from action_credentials.setup.auto_setup import RepositorySetup, SetupResult
from action_credentials.setup.workflow import WorkflowOptions

logger = get_logger(__name__)


async def run_refresh(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> RefreshResult:
    """Run one refresh cycle.

    Raises:
        ExchangeError: renewal was required and failed
    """
    async with httpx.AsyncClient(transport=transport) as client:
        orchestrator = create_refresh_orchestrator(settings, client)
        return await orchestrator.run(load_configured_credentials(settings.credentials))


async def run_auto_setup(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> SetupResult:
    if not settings.github.token or not settings.github.repository:
        return SetupResult(
            success=False,
            message="Auto-setup failed: GITHUB_TOKEN and GITHUB_REPOSITORY are required",
        )
    try:
        repository = RepositoryRef.parse(settings.github.repository)
    except ValueError as exc:
        return SetupResult(success=False, message=f"Auto-setup failed: {exc}")

    options = WorkflowOptions(
        use_oauth=settings.setup.use_oauth,
        custom_instructions=settings.setup.custom_instructions,
        allowed_tools=settings.setup.allowed_tools,
        model=settings.setup.model,
    )
    async with httpx.AsyncClient(transport=transport) as client:
        github = GitHubClient(
            client,
            settings.github.token,
            settings.github.api_url,
            timeout_seconds=settings.provider.timeout_seconds,
        )
        return await RepositorySetup(github, repository).run(options)


def _refresh_command(settings: Settings) -> int:
    if not is_secure_environment():
        logger.warning(
            "Not running inside GitHub Actions with GITHUB_TOKEN; runner masking is unavailable"
        )
    try:
        result = asyncio.run(run_refresh(settings))
    except ExchangeError:
        return 1
    logger.info(
        "Refresh finished: status=%s persistence=%s",
        result.status.value,
        result.persistence.value,
    )
    return 0


def _auto_setup_command(settings: Settings) -> int:
    logger.info("Starting Claude Code auto-setup")
    result = asyncio.run(run_auto_setup(settings))
    if result.success:
        logger.info("Auto-setup completed successfully\n%s", result.message)
        return 0
    logger.error("Auto-setup failed:\n%s", result.message)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="action-credentials",
        description="Refresh OAuth credentials and bootstrap the automation workflow.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser("refresh", help="Refresh the OAuth credential if it is expiring")
    subcommands.add_parser("auto-setup", help="Create the workflow file if missing")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    configure_logging()

    if args.command == "refresh":
        return _refresh_command(settings)
    return _auto_setup_command(settings)
