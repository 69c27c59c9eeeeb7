"""Tests for middleware chain, rate limiting, and audit."""

from __future__ import annotations

import json

import pytest

from fsleash.exceptions import (
    ErrorCode,
    ForbiddenPathError,
    PathNotFoundError,
    RateLimitedError,
)
from fsleash.middleware.audit import AuditMiddleware
from fsleash.middleware.base import MiddlewareChain, ToolCallContext
from fsleash.middleware.rate_limit import RateLimitMiddleware, TokenBucket


def _make_ctx(session_id: str = "session1", path: str = "/a.txt") -> ToolCallContext:
    return ToolCallContext(
        session_id=session_id, tool_name="read_file", arguments={"path": path}
    )


async def _echo_handler(ctx: ToolCallContext) -> str:
    return f"Echo: {ctx.arguments['path']}"


def _audit_entries(tmp_path):
    return [
        json.loads(line)
        for line in (tmp_path / "audit.jsonl").read_text().splitlines()
    ]


class TestMiddlewareChain:
    @pytest.mark.asyncio
    async def test_empty_chain_calls_handler(self):
        chain = MiddlewareChain()
        result = await chain.run(_make_ctx(), _echo_handler)
        assert result == "Echo: /a.txt"

    @pytest.mark.asyncio
    async def test_single_middleware_passthrough(self):
        seen: list[str] = []

        class PassThrough:
            async def process(self, ctx, call_next):
                seen.append(ctx.tool_name)
                return await call_next(ctx)

        chain = MiddlewareChain()
        chain.add(PassThrough())
        result = await chain.run(_make_ctx(), _echo_handler)
        assert result == "Echo: /a.txt"
        assert seen == ["read_file"]

    @pytest.mark.asyncio
    async def test_middleware_can_short_circuit(self):
        class Blocker:
            async def process(self, ctx, call_next):
                return "blocked"

        chain = MiddlewareChain()
        chain.add(Blocker())
        result = await chain.run(_make_ctx(), _echo_handler)
        assert result == "blocked"

    @pytest.mark.asyncio
    async def test_middleware_order(self):
        calls = []

        class First:
            async def process(self, ctx, call_next):
                calls.append("first_before")
                result = await call_next(ctx)
                calls.append("first_after")
                return result

        class Second:
            async def process(self, ctx, call_next):
                calls.append("second_before")
                result = await call_next(ctx)
                calls.append("second_after")
                return result

        chain = MiddlewareChain()
        chain.add(First())
        chain.add(Second())
        await chain.run(_make_ctx(), _echo_handler)

        assert calls == ["first_before", "second_before", "second_after", "first_after"]

    @pytest.mark.asyncio
    async def test_middleware_exception_propagates(self):
        class Exploder:
            async def process(self, ctx, call_next):
                raise ValueError("boom")

        chain = MiddlewareChain()
        chain.add(Exploder())
        with pytest.raises(ValueError, match="boom"):
            await chain.run(_make_ctx(), _echo_handler)


class TestTokenBucket:
    def test_consume_within_burst(self):
        bucket = TokenBucket(rate=1.0, burst=3)
        assert bucket.consume()
        assert bucket.consume()
        assert bucket.consume()
        assert not bucket.consume()

    def test_refill_over_time(self):
        bucket = TokenBucket(rate=10.0, burst=1)
        bucket.consume()
        assert not bucket.consume()
        # Simulate time passing
        bucket._last_refill -= 1.0
        assert bucket.consume()

    def test_zero_burst_always_denies(self):
        bucket = TokenBucket(rate=10.0, burst=0)
        assert not bucket.consume()
        assert not bucket.consume()

    def test_refill_caps_at_burst(self):
        bucket = TokenBucket(rate=100.0, burst=3)
        bucket._last_refill -= 100.0
        bucket._refill()
        assert bucket._tokens == 3.0


class TestRateLimitMiddleware:
    @pytest.mark.asyncio
    async def test_within_limit_passes(self):
        mw = RateLimitMiddleware(requests_per_minute=60, burst=5)
        result = await mw.process(_make_ctx(), _echo_handler)
        assert result == "Echo: /a.txt"

    @pytest.mark.asyncio
    async def test_exceeds_burst_rejected(self):
        mw = RateLimitMiddleware(requests_per_minute=60, burst=2)
        await mw.process(_make_ctx(), _echo_handler)
        await mw.process(_make_ctx(), _echo_handler)
        with pytest.raises(RateLimitedError) as exc_info:
            await mw.process(_make_ctx(), _echo_handler)
        assert exc_info.value.code is ErrorCode.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_rejected_call_never_reaches_handler(self):
        calls = []

        async def handler(ctx):
            calls.append(ctx.tool_name)
            return "ok"

        mw = RateLimitMiddleware(requests_per_minute=0, burst=1)
        await mw.process(_make_ctx(), handler)
        with pytest.raises(RateLimitedError):
            await mw.process(_make_ctx(), handler)
        assert calls == ["read_file"]

    @pytest.mark.asyncio
    async def test_per_session_buckets(self):
        mw = RateLimitMiddleware(requests_per_minute=60, burst=1)
        await mw.process(_make_ctx(session_id="s1"), _echo_handler)
        result = await mw.process(_make_ctx(session_id="s2"), _echo_handler)
        assert result == "Echo: /a.txt"

    @pytest.mark.asyncio
    async def test_recovery_after_wait(self):
        mw = RateLimitMiddleware(requests_per_minute=60, burst=1)
        await mw.process(_make_ctx(), _echo_handler)
        with pytest.raises(RateLimitedError):
            await mw.process(_make_ctx(), _echo_handler)
        bucket = mw._get_bucket("session1")
        bucket._last_refill -= 2.0
        result = await mw.process(_make_ctx(), _echo_handler)
        assert result == "Echo: /a.txt"


class TestAuditMiddleware:
    @pytest.mark.asyncio
    async def test_success_logged(self, tmp_path, audit_logger):
        mw = AuditMiddleware(audit_logger)
        result = await mw.process(_make_ctx(), _echo_handler)
        assert result == "Echo: /a.txt"

        [entry] = _audit_entries(tmp_path)
        assert entry["tool_name"] == "read_file"
        assert entry["outcome"] == "ok"
        assert entry["arguments"] == {"path": "/a.txt"}
        assert isinstance(entry["duration_ms"], int)

    @pytest.mark.asyncio
    async def test_error_logged_with_code(self, tmp_path, audit_logger):
        async def missing(ctx):
            raise PathNotFoundError("File not found")

        mw = AuditMiddleware(audit_logger)
        with pytest.raises(PathNotFoundError):
            await mw.process(_make_ctx(), missing)

        [entry] = _audit_entries(tmp_path)
        assert entry["outcome"] == "error"
        assert entry["error_code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_forbidden_also_records_violation(self, tmp_path, audit_logger):
        async def forbidden(ctx):
            raise ForbiddenPathError("Access denied", resolved_path="/etc/passwd")

        mw = AuditMiddleware(audit_logger)
        with pytest.raises(ForbiddenPathError):
            await mw.process(_make_ctx(path="/etc/passwd"), forbidden)

        entries = _audit_entries(tmp_path)
        assert [e["event"] for e in entries] == ["tool_call", "security_violation"]
        assert entries[1]["reason"] == "Access denied"
        assert entries[1]["context"] == {"resolved_path": "/etc/passwd"}

    @pytest.mark.asyncio
    async def test_unexpected_error_logged_as_internal(self, tmp_path, audit_logger):
        async def broken(ctx):
            raise RuntimeError("boom")

        mw = AuditMiddleware(audit_logger)
        with pytest.raises(RuntimeError):
            await mw.process(_make_ctx(), broken)

        [entry] = _audit_entries(tmp_path)
        assert entry["error_code"] == "INTERNAL_ERROR"

    @pytest.mark.asyncio
    async def test_rate_limited_calls_are_audited(self, tmp_path, audit_logger):
        chain = MiddlewareChain()
        chain.add(AuditMiddleware(audit_logger))
        chain.add(RateLimitMiddleware(requests_per_minute=0, burst=1))

        await chain.run(_make_ctx(), _echo_handler)
        with pytest.raises(RateLimitedError):
            await chain.run(_make_ctx(), _echo_handler)

        entries = _audit_entries(tmp_path)
        assert [e["outcome"] for e in entries] == ["ok", "error"]
        assert entries[1]["error_code"] == "RATE_LIMITED"
