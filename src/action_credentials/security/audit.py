"""Structured audit trail for credential operations."""

from __future__ import annotations

import contextlib
import json
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Callable

from action_credentials.logging_utils import AUDIT_LOGGER_NAME, get_logger
from action_credentials.security.redaction import sanitize_error_message
from action_credentials.utils.time import utc_now_iso

AUDIT_TAG = "[AUDIT]"


class AuditOperation(str, Enum):
    REFRESH = "refresh"
    UPDATE_SECRETS = "update_secrets"
    VALIDATION_FAILURE = "validation_failure"


@dataclass(frozen=True)
class AuditRecord:
    operation: AuditOperation
    timestamp: str
    repository: str | None
    success: bool
    error: str | None
    actor: str | None
    run_id: str | None

    def to_json(self) -> str:
        payload = asdict(self)
        payload["operation"] = self.operation.value
        return json.dumps(payload, ensure_ascii=True, sort_keys=True)


def _log_emitter(line: str) -> None:
    get_logger(AUDIT_LOGGER_NAME).info(line)


class AuditTrail:
    """Emit one ``[AUDIT] {...}`` line per credential event.

    Emission never raises; an unavailable sink loses the record rather than
    failing the caller.
    """

    def __init__(
        self,
        *,
        repository: str | None = None,
        actor: str | None = None,
        run_id: str | None = None,
        emit: Callable[[str], None] = _log_emitter,
    ) -> None:
        self._repository = repository
        self._actor = actor
        self._run_id = run_id
        self._emit = emit
        self._records: list[AuditRecord] = []

    @property
    def records(self) -> tuple[AuditRecord, ...]:
        return tuple(self._records)

    def record(
        self,
        operation: AuditOperation,
        *,
        success: bool,
        error: object | None = None,
        repository: str | None = None,
    ) -> AuditRecord | None:
        with contextlib.suppress(Exception):
            entry = AuditRecord(
                operation=AuditOperation(operation),
                timestamp=utc_now_iso(),
                repository=repository or self._repository,
                success=success,
                error=sanitize_error_message(error) if error is not None else None,
                actor=self._actor,
                run_id=self._run_id,
            )
            self._records.append(entry)
            self._emit(f"{AUDIT_TAG} {entry.to_json()}")
            return entry
        return None
