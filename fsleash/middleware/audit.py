"""Audit middleware: records every tool call and its outcome."""

import time
from typing import Any

from fsleash.core.safety.audit import AuditLogger
from fsleash.exceptions import ErrorCode, FsleashError
from fsleash.middleware.base import Middleware, NextHandler, ToolCallContext


class AuditMiddleware(Middleware):
    def __init__(self, audit: AuditLogger) -> None:
        self._audit = audit

    async def process(self, ctx: ToolCallContext, call_next: NextHandler) -> Any:
        started = time.monotonic()
        try:
            result = await call_next(ctx)
        except FsleashError as e:
            self._audit.log_tool_call(
                ctx.session_id,
                ctx.tool_name,
                ctx.arguments,
                outcome="error",
                error_code=e.code.value,
                duration_ms=_elapsed_ms(started),
            )
            if e.code is ErrorCode.FORBIDDEN:
                self._audit.log_security_violation(
                    ctx.session_id, ctx.tool_name, e.message, e.context
                )
            raise
        except Exception:
            self._audit.log_tool_call(
                ctx.session_id,
                ctx.tool_name,
                ctx.arguments,
                outcome="error",
                error_code=ErrorCode.INTERNAL_ERROR.value,
                duration_ms=_elapsed_ms(started),
            )
            raise

        self._audit.log_tool_call(
            ctx.session_id,
            ctx.tool_name,
            ctx.arguments,
            outcome="ok",
            duration_ms=_elapsed_ms(started),
        )
        return result


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
