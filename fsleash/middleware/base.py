"""Middleware chain around tool calls. Each middleware can pass through or raise."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ToolCallContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


NextHandler = Callable[[ToolCallContext], Awaitable[Any]]


class Middleware(ABC):
    @abstractmethod
    async def process(self, ctx: ToolCallContext, call_next: NextHandler) -> Any: ...


class MiddlewareChain:
    def __init__(self) -> None:
        self._middleware: list[Middleware] = []

    def add(self, middleware: Middleware) -> None:
        self._middleware.append(middleware)

    async def run(self, ctx: ToolCallContext, handler: NextHandler) -> Any:
        chain = handler
        for mw in reversed(self._middleware):
            chain = _wrap(mw, chain)
        return await chain(ctx)


def _wrap(mw: Middleware, nxt: NextHandler) -> NextHandler:
    async def _next(c: ToolCallContext) -> Any:
        return await mw.process(c, nxt)

    return _next
