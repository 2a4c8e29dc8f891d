"""Workflow file rendering for repository bootstrap."""

from __future__ import annotations

from dataclasses import dataclass

import yaml

WORKFLOW_PATH = ".github/workflows/claude.yml"
EXISTING_WORKFLOW_PATHS = (
    ".github/workflows/claude.yml",
    ".github/workflows/claude.yaml",
    ".github/workflows/claude-code.yml",
    ".github/workflows/claude-code.yaml",
)
DEFAULT_ACTION_REF = "Akira-Papa/claude-code-action@beta"

_OPTION_INDENT = " " * 10
_BLOCK_INDENT = " " * 12

_WORKFLOW_HEADER = """\
name: Claude Code

on:
  issue_comment:
    types: [created]
  pull_request_review_comment:
    types: [created]
  issues:
    types: [opened, assigned]
  pull_request_review:
    types: [submitted]

jobs:
  claude:
    if: |
      (github.event_name == 'issue_comment' && contains(github.event.comment.body, '@claude')) ||
      (github.event_name == 'pull_request_review_comment' && contains(github.event.comment.body, '@claude')) ||
      (github.event_name == 'pull_request_review' && contains(github.event.review.body, '@claude')) ||
      (github.event_name == 'issues' && (contains(github.event.issue.body, '@claude') || contains(github.event.issue.title, '@claude')))
    runs-on: ubuntu-latest
    permissions:
      contents: write
      pull-requests: write
      issues: write
      id-token: write
    steps:
      - name: Checkout repository
        uses: actions/checkout@v4
        with:
          fetch-depth: 1

      - name: Run Claude Code
        id: claude
        uses: {action_ref}
        with:
"""

_OAUTH_AUTH_BLOCK = """\
          # OAuth authentication for Claude Max subscribers
          use_oauth: "true"
          claude_access_token: ${{ secrets.CLAUDE_ACCESS_TOKEN }}
          claude_refresh_token: ${{ secrets.CLAUDE_REFRESH_TOKEN }}
          claude_expires_at: ${{ secrets.CLAUDE_EXPIRES_AT }}
"""

_API_KEY_AUTH_BLOCK = """\
          # API key authentication
          anthropic_api_key: ${{ secrets.ANTHROPIC_API_KEY }}
"""

_COMMON_OPTIONS = """\

          # Optional configurations
          timeout_minutes: "60"
"""


@dataclass(frozen=True)
class WorkflowOptions:
    use_oauth: bool = True
    custom_instructions: str | None = None
    allowed_tools: str | None = None
    model: str | None = None
    action_ref: str = DEFAULT_ACTION_REF


def _quoted(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _optional_inputs(options: WorkflowOptions) -> str:
    lines: list[str] = []
    if options.custom_instructions:
        lines.append(f"{_OPTION_INDENT}custom_instructions: |")
        for line in options.custom_instructions.splitlines():
            lines.append(f"{_BLOCK_INDENT}{line}" if line.strip() else "")
    if options.allowed_tools:
        lines.append(f"{_OPTION_INDENT}allowed_tools: {_quoted(options.allowed_tools)}")
    if options.model:
        lines.append(f"{_OPTION_INDENT}model: {_quoted(options.model)}")
    return "".join(f"{line}\n" for line in lines)


def generate_workflow(options: WorkflowOptions) -> str:
    """Render the workflow for ``options`` and check that it parses as YAML.

    Raises:
        ValueError: the rendered document is not valid YAML
    """
    content = (
        _WORKFLOW_HEADER.format(action_ref=options.action_ref)
        + (_OAUTH_AUTH_BLOCK if options.use_oauth else _API_KEY_AUTH_BLOCK)
        + _COMMON_OPTIONS
        + _optional_inputs(options)
    )
    try:
        yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ValueError(f"Rendered workflow is not valid YAML: {exc}") from exc
    return content
