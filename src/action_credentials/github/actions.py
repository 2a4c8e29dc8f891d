"""GitHub Actions step outputs and job summary."""

from __future__ import annotations

import uuid
from pathlib import Path

from action_credentials.logging_utils import get_logger

logger = get_logger(__name__)


class ActionsReporter:
    """Write step outputs and the job summary through the runner's files.

    Outside a runner (no ``GITHUB_OUTPUT`` / ``GITHUB_STEP_SUMMARY``) values
    are logged instead.  Callers must only pass values that are safe to
    publish: flags, expiries, masked previews.
    """

    def __init__(self, output_path: str | None = None, summary_path: str | None = None) -> None:
        self._output_path = Path(output_path) if output_path else None
        self._summary_path = Path(summary_path) if summary_path else None
        self._outputs: dict[str, str] = {}

    @property
    def outputs(self) -> dict[str, str]:
        return dict(self._outputs)

    def set_output(self, name: str, value: object) -> None:
        text = str(value)
        self._outputs[name] = text
        if self._output_path is None:
            logger.info("Output %s=%s", name, text)
            return
        delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
        with self._output_path.open("a", encoding="utf-8") as handle:
            handle.write(f"{name}<<{delimiter}\n{text}\n{delimiter}\n")

    def add_summary(self, markdown: str) -> None:
        if self._summary_path is None:
            logger.info("Job summary:\n%s", markdown)
            return
        with self._summary_path.open("a", encoding="utf-8") as handle:
            handle.write(markdown.rstrip("\n") + "\n")
