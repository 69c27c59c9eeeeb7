"""Tests for the JSON-lines audit logger."""

from __future__ import annotations

import json
from unittest.mock import patch

from fsleash.core.safety.audit import AuditLogger
from fsleash.core.safety.redaction import REDACTED, Redactor


def _entries(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestAuditLogger:
    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "logs" / "audit.jsonl"
        AuditLogger(path)
        assert path.parent.is_dir()

    def test_log_tool_call(self, tmp_path, audit_logger):
        audit_logger.log_tool_call(
            "s1", "read_file", {"path": "/a.txt"}, outcome="ok", duration_ms=3
        )
        [entry] = _entries(tmp_path / "audit.jsonl")
        assert entry["event"] == "tool_call"
        assert entry["session_id"] == "s1"
        assert entry["tool_name"] == "read_file"
        assert entry["arguments"] == {"path": "/a.txt"}
        assert entry["outcome"] == "ok"
        assert entry["duration_ms"] == 3
        assert "error_code" not in entry
        assert "timestamp" in entry

    def test_error_code_recorded(self, tmp_path, audit_logger):
        audit_logger.log_tool_call(
            "s1", "read_file", {}, outcome="error", error_code="NOT_FOUND"
        )
        [entry] = _entries(tmp_path / "audit.jsonl")
        assert entry["error_code"] == "NOT_FOUND"

    def test_long_values_truncated(self, tmp_path, audit_logger):
        audit_logger.log_tool_call(
            "s1", "write_file", {"content": "x" * 2000}, outcome="ok"
        )
        [entry] = _entries(tmp_path / "audit.jsonl")
        assert entry["arguments"]["content"] == "x" * 500 + "...[truncated]"

    def test_sensitive_arguments_redacted(self, tmp_path):
        path = tmp_path / "audit.jsonl"
        audit = AuditLogger(path, Redactor(["content"]))
        audit.log_tool_call(
            "s1", "write_file", {"path": "/a", "content": "secret"}, outcome="ok"
        )
        [entry] = _entries(path)
        assert entry["arguments"] == {"path": "/a", "content": REDACTED}

    def test_security_violation(self, tmp_path, audit_logger):
        audit_logger.log_security_violation(
            "s1", "read_file", "outside base", {"resolved_path": "/etc/passwd"}
        )
        [entry] = _entries(tmp_path / "audit.jsonl")
        assert entry["event"] == "security_violation"
        assert entry["reason"] == "outside base"
        assert entry["context"] == {"resolved_path": "/etc/passwd"}

    def test_appends(self, tmp_path, audit_logger):
        audit_logger.log_tool_call("s1", "a", {}, outcome="ok")
        audit_logger.log_tool_call("s1", "b", {}, outcome="ok")
        assert [e["tool_name"] for e in _entries(tmp_path / "audit.jsonl")] == [
            "a",
            "b",
        ]

    def test_write_failure_does_not_raise(self, audit_logger):
        with patch("builtins.open", side_effect=OSError("disk full")):
            audit_logger.log_tool_call("s1", "a", {}, outcome="ok")
