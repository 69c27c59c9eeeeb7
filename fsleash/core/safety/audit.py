"""Append-only audit logger, JSON lines format."""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from fsleash.core.safety.redaction import Redactor

logger = structlog.get_logger()

_MAX_VALUE_LENGTH = 500


class AuditLogger:
    def __init__(self, log_path: Path | str, redactor: Redactor | None = None) -> None:
        self._path = Path(log_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._redactor = redactor or Redactor()

    def _write(self, entry: dict[str, Any]) -> None:
        entry["timestamp"] = datetime.now(UTC).isoformat()
        try:
            with open(self._path, "a") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            logger.error("audit_write_failed", error=str(e))

    def log_tool_call(
        self,
        session_id: str,
        tool_name: str,
        arguments: dict[str, Any],
        *,
        outcome: str,
        error_code: str | None = None,
        duration_ms: int | None = None,
    ) -> None:
        entry: dict[str, Any] = {
            "event": "tool_call",
            "session_id": session_id,
            "tool_name": tool_name,
            "arguments": _truncate_values(self._redactor.redact(arguments)),
            "outcome": outcome,
        }
        if error_code is not None:
            entry["error_code"] = error_code
        if duration_ms is not None:
            entry["duration_ms"] = duration_ms
        self._write(entry)

    def log_security_violation(
        self,
        session_id: str,
        tool_name: str,
        reason: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        self._write(
            {
                "event": "security_violation",
                "session_id": session_id,
                "tool_name": tool_name,
                "reason": reason,
                "context": self._redactor.redact(context or {}),
            }
        )


def _truncate_values(arguments: dict[str, Any]) -> dict[str, Any]:
    """Truncate large values for audit readability."""
    truncated = {}
    for key, value in arguments.items():
        if isinstance(value, str) and len(value) > _MAX_VALUE_LENGTH:
            truncated[key] = value[:_MAX_VALUE_LENGTH] + "...[truncated]"
        else:
            truncated[key] = value
    return truncated
