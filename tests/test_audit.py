"""Tests for the audit trail."""

from __future__ import annotations

import json
import logging

import pytest

from action_credentials.logging_utils import AUDIT_LOGGER_NAME
from action_credentials.security.audit import AUDIT_TAG, AuditOperation, AuditTrail

ACCESS = "sk-ant-REDACTED"


def _payload(line: str) -> dict[str, object]:
    assert line.startswith(f"{AUDIT_TAG} ")
    return json.loads(line[len(AUDIT_TAG) + 1:])


def test_record_emits_single_structured_line() -> None:
    lines: list[str] = []
    trail = AuditTrail(repository="o/r", actor="octocat", run_id="42", emit=lines.append)

    record = trail.record(AuditOperation.REFRESH, success=True)

    assert record is not None
    assert len(lines) == 1
    payload = _payload(lines[0])
    assert payload["operation"] == "refresh"
    assert payload["repository"] == "o/r"
    assert payload["actor"] == "octocat"
    assert payload["run_id"] == "42"
    assert payload["success"] is True
    assert payload["error"] is None
    assert isinstance(payload["timestamp"], str)


def test_record_sanitizes_error_text() -> None:
    lines: list[str] = []
    trail = AuditTrail(emit=lines.append)

    trail.record(
        AuditOperation.UPDATE_SECRETS,
        success=False,
        error=RuntimeError(f"leaked {ACCESS}"),
        repository="o/other",
    )

    assert ACCESS not in lines[0]
    payload = _payload(lines[0])
    assert payload["operation"] == "update_secrets"
    assert payload["repository"] == "o/other"
    assert "[ACCESS_TOKEN_REDACTED]" in str(payload["error"])


def test_emission_failure_is_swallowed() -> None:
    def broken_sink(line: str) -> None:
        raise OSError("sink unavailable")

    trail = AuditTrail(emit=broken_sink)

    assert trail.record(AuditOperation.VALIDATION_FAILURE, success=False) is None
    assert len(trail.records) == 1


def test_records_are_immutable() -> None:
    trail = AuditTrail(emit=lambda line: None)
    record = trail.record(AuditOperation.REFRESH, success=True)

    with pytest.raises(AttributeError):
        record.success = False  # type: ignore[misc, union-attr]


def test_default_emitter_uses_audit_logger(caplog: pytest.LogCaptureFixture) -> None:
    logging.getLogger(AUDIT_LOGGER_NAME).propagate = True
    trail = AuditTrail(repository="o/r")

    with caplog.at_level(logging.INFO, logger=AUDIT_LOGGER_NAME):
        trail.record(AuditOperation.REFRESH, success=True)

    messages = [r.getMessage() for r in caplog.records if r.name == AUDIT_LOGGER_NAME]
    assert len(messages) == 1
    assert messages[0].startswith(AUDIT_TAG)
