"""Idempotent bootstrap of the automation workflow in a repository."""

from __future__ import annotations

from dataclasses import dataclass

from action_credentials.credentials.models import RepositoryRef
from action_credentials.credentials.propagation import OAUTH_SECRET_NAMES
from action_credentials.github.client import GitHubAPIError, GitHubClient
from action_credentials.logging_utils import get_logger
from action_credentials.security.redaction import sanitize_error_message
from action_credentials.setup.workflow import (
    EXISTING_WORKFLOW_PATHS,
    WORKFLOW_PATH,
    WorkflowOptions,
    generate_workflow,
)

logger = get_logger(__name__)

API_KEY_SECRET_NAMES = ("ANTHROPIC_API_KEY",)
WORKFLOWS_DIR = ".github/workflows"
WORKFLOW_COMMIT_MESSAGE = "feat: Add Claude Code GitHub Action workflow"
SETUP_COMMITTER = {
    "name": "Claude Auto Setup",
    "email": "claude-auto-setup@users.noreply.github.com",
}


class SetupError(Exception):
    """Raised when the workflow cannot be written to the repository."""


@dataclass(frozen=True)
class SecretsCheck:
    configured: bool
    missing_secrets: tuple[str, ...] = ()


@dataclass(frozen=True)
class SetupResult:
    success: bool
    message: str
    created: bool = False


def required_secrets(use_oauth: bool) -> tuple[str, ...]:
    return OAUTH_SECRET_NAMES if use_oauth else API_KEY_SECRET_NAMES


class RepositorySetup:
    def __init__(self, github: GitHubClient, repository: RepositoryRef) -> None:
        self._github = github
        self._repository = repository

    async def find_existing_workflow(self) -> str | None:
        for path in EXISTING_WORKFLOW_PATHS:
            try:
                if await self._github.path_exists(self._repository, path):
                    logger.info("Found existing Claude configuration: %s", path)
                    return path
            except GitHubAPIError as exc:
                logger.warning("Could not probe %s: %s", path, exc)
        return None

    async def ensure_workflows_directory(self) -> None:
        try:
            exists = await self._github.path_exists(self._repository, WORKFLOWS_DIR)
        except GitHubAPIError as exc:
            logger.warning("Could not probe %s (%s); creating it", WORKFLOWS_DIR, exc)
            exists = False
        if exists:
            return
        logger.info("Creating %s directory", WORKFLOWS_DIR)
        try:
            await self._github.put_file(
                self._repository,
                f"{WORKFLOWS_DIR}/.gitkeep",
                b"",
                message=f"feat: Create {WORKFLOWS_DIR} directory",
                committer=SETUP_COMMITTER,
            )
        except GitHubAPIError as exc:
            raise SetupError(f"Failed to create directory: {exc}") from exc

    async def create_workflow(self, content: str) -> None:
        await self.ensure_workflows_directory()
        try:
            await self._github.put_file(
                self._repository,
                WORKFLOW_PATH,
                content.encode("utf-8"),
                message=WORKFLOW_COMMIT_MESSAGE,
                committer=SETUP_COMMITTER,
            )
        except GitHubAPIError as exc:
            detail = f" - {exc.detail}" if exc.detail else ""
            raise SetupError(f"Failed to create workflow file: {exc}{detail}") from exc
        logger.info("Created Claude workflow: %s", WORKFLOW_PATH)

    async def check_secrets(self, use_oauth: bool) -> SecretsCheck:
        required = required_secrets(use_oauth)
        try:
            existing = await self._github.list_secret_names(self._repository)
        except (GitHubAPIError, ValueError) as exc:
            logger.error("Error checking secrets configuration: %s", exc)
            return SecretsCheck(configured=False, missing_secrets=required)
        missing = tuple(name for name in required if name not in existing)
        return SecretsCheck(configured=not missing, missing_secrets=missing)

    async def run(self, options: WorkflowOptions) -> SetupResult:
        """Create the workflow unless one exists, then report missing secrets."""
        try:
            if await self.find_existing_workflow():
                return SetupResult(
                    success=True,
                    message="Claude Code is already configured in this repository.",
                )

            if not await self._github.actions_enabled(self._repository):
                logger.warning("GitHub Actions appears to be disabled for %s", self._repository)

            await self.create_workflow(generate_workflow(options))
            secrets_check = await self.check_secrets(options.use_oauth)
        except (SetupError, ValueError) as exc:
            message = sanitize_error_message(exc)
            logger.error("Auto-setup failed: %s", message)
            return SetupResult(success=False, message=f"Auto-setup failed: {message}")

        return SetupResult(
            success=True,
            message=_success_message(secrets_check, options.use_oauth),
            created=True,
        )


def _success_message(secrets_check: SecretsCheck, use_oauth: bool) -> str:
    lines = ["Claude Code workflow has been created successfully!"]
    if secrets_check.configured:
        return lines[0]

    lines.append("")
    lines.append("Please configure the following repository secrets:")
    lines.extend(f"   - {name}" for name in secrets_check.missing_secrets)
    lines.append("")
    if use_oauth:
        lines.append("For OAuth setup:")
        lines.append("1. Find your credentials in ~/.claude/.credentials.json")
        lines.append(
            "2. Add them as repository secrets in Settings > Secrets and variables > Actions"
        )
    else:
        lines.append("For API key setup:")
        lines.append("1. Get your Anthropic API key from https://console.anthropic.com/")
        lines.append(
            "2. Add it as ANTHROPIC_API_KEY in Settings > Secrets and variables > Actions"
        )
    return "\n".join(lines)
