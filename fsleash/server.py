"""MCP tool registration: thin wrappers over FilesystemService."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Annotated, Any

import structlog
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import BaseModel, Field

from fsleash.core.session import FilesystemSession
from fsleash.exceptions import ErrorCode, FsleashError
from fsleash.fs.models import DiffBlock
from fsleash.middleware.base import MiddlewareChain, ToolCallContext

if TYPE_CHECKING:
    from fsleash.fs.service import FilesystemService

logger = structlog.get_logger()

PathArg = Annotated[
    str,
    Field(
        min_length=1,
        description=(
            "Absolute path, or a path relative to the default set with "
            "set_filesystem_default."
        ),
    ),
]


class FsleashServer:
    """Owns the FastMCP instance, the caller session, and the middleware chain.

    A stdio server has exactly one caller, so one FilesystemSession is kept
    for the life of the process.
    """

    def __init__(
        self,
        service: FilesystemService,
        *,
        middleware_chain: MiddlewareChain | None = None,
        session: FilesystemSession | None = None,
        name: str = "fsleash",
    ) -> None:
        self.service = service
        self.middleware_chain = middleware_chain or MiddlewareChain()
        self.session = session or FilesystemSession()
        self.mcp = FastMCP(name)
        self._register_tools()

    def _register_tools(self) -> None:
        tools: list[tuple[Callable[..., Awaitable[Any]], str]] = [
            (
                self.set_filesystem_default,
                "Set the default directory used to resolve relative paths for "
                "this session. Must be absolute.",
            ),
            (
                self.clear_filesystem_default,
                "Clear the session default directory.",
            ),
            (self.read_file, "Read a UTF-8 text file."),
            (
                self.write_file,
                "Write content to a file, creating missing parent directories "
                "and overwriting existing content.",
            ),
            (
                self.update_file,
                "Apply search/replace blocks to an existing file.",
            ),
            (
                self.list_files,
                "List a directory as a tree, optionally recursive, bounded by "
                "max_entries and filtered by exclude_patterns.",
            ),
            (self.delete_file, "Delete a single file."),
            (
                self.delete_directory,
                "Delete a directory. Non-empty directories need recursive=true.",
            ),
            (self.create_directory, "Create a directory (and parents)."),
            (
                self.move_path,
                "Move or rename a file or directory. The destination must not exist.",
            ),
            (
                self.copy_path,
                "Copy a file or directory. The destination must not exist.",
            ),
        ]
        for fn, description in tools:
            self.mcp.add_tool(fn, name=fn.__name__, description=description)
        logger.debug("tools_registered", count=len(tools))

    async def _call(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        handler: Callable[[], Awaitable[BaseModel]],
    ) -> dict[str, Any]:
        ctx = ToolCallContext(
            session_id=self.session.session_id,
            tool_name=tool_name,
            arguments=arguments,
        )

        async def _invoke(_ctx: ToolCallContext) -> BaseModel:
            return await handler()

        try:
            result = await self.middleware_chain.run(ctx, _invoke)
        except FsleashError as e:
            logger.warning(
                "tool_failed",
                tool=tool_name,
                code=e.code.value,
                error=e.message,
                context=e.context,
            )
            raise ToolError(f"[{e.code.value}] {e.message}") from e
        except Exception as e:
            logger.exception("tool_crashed", tool=tool_name)
            raise ToolError(f"[{ErrorCode.INTERNAL_ERROR.value}] {e}") from e
        return result.model_dump()

    async def set_filesystem_default(
        self,
        path: Annotated[str, Field(min_length=1, description="Absolute directory.")],
    ) -> dict[str, Any]:
        return await self._call(
            "set_filesystem_default",
            {"path": path},
            lambda: self.service.set_default(self.session, path),
        )

    async def clear_filesystem_default(self) -> dict[str, Any]:
        return await self._call(
            "clear_filesystem_default",
            {},
            lambda: self.service.clear_default(self.session),
        )

    async def read_file(self, path: PathArg) -> dict[str, Any]:
        return await self._call(
            "read_file",
            {"path": path},
            lambda: self.service.read_file(self.session, path),
        )

    async def write_file(
        self,
        path: PathArg,
        content: Annotated[str, Field(description="Full new file content.")],
    ) -> dict[str, Any]:
        return await self._call(
            "write_file",
            {"path": path, "content": content},
            lambda: self.service.write_file(self.session, path, content),
        )

    async def update_file(
        self,
        path: PathArg,
        blocks: Annotated[
            list[DiffBlock],
            Field(min_length=1, description="Search/replace blocks, applied in order."),
        ],
        use_regex: Annotated[
            bool, Field(description="Treat each search as a regular expression.")
        ] = False,
        replace_all: Annotated[
            bool, Field(description="Replace every match instead of the first.")
        ] = False,
    ) -> dict[str, Any]:
        return await self._call(
            "update_file",
            {
                "path": path,
                "blocks": [b.model_dump() for b in blocks],
                "use_regex": use_regex,
                "replace_all": replace_all,
            },
            lambda: self.service.update_file(
                self.session,
                path,
                blocks,
                use_regex=use_regex,
                replace_all=replace_all,
            ),
        )

    async def list_files(
        self,
        path: PathArg,
        include_nested: Annotated[
            bool, Field(description="Recurse into subdirectories.")
        ] = False,
        max_entries: Annotated[
            int | None,
            Field(gt=0, description="Maximum entries to return across the tree."),
        ] = None,
        exclude_patterns: Annotated[
            list[str] | None,
            Field(description="Glob patterns to skip, e.g. node_modules or *.log."),
        ] = None,
    ) -> dict[str, Any]:
        patterns = exclude_patterns or []
        return await self._call(
            "list_files",
            {
                "path": path,
                "include_nested": include_nested,
                "max_entries": max_entries,
                "exclude_patterns": patterns,
            },
            lambda: self.service.list_files(
                self.session,
                path,
                include_nested=include_nested,
                max_entries=max_entries,
                exclude_patterns=patterns,
            ),
        )

    async def delete_file(self, path: PathArg) -> dict[str, Any]:
        return await self._call(
            "delete_file",
            {"path": path},
            lambda: self.service.delete_file(self.session, path),
        )

    async def delete_directory(
        self,
        path: PathArg,
        recursive: Annotated[
            bool, Field(description="Delete the directory and all its contents.")
        ] = False,
    ) -> dict[str, Any]:
        return await self._call(
            "delete_directory",
            {"path": path, "recursive": recursive},
            lambda: self.service.delete_directory(
                self.session, path, recursive=recursive
            ),
        )

    async def create_directory(
        self,
        path: PathArg,
        create_parents: Annotated[
            bool, Field(description="Create missing parent directories.")
        ] = True,
    ) -> dict[str, Any]:
        return await self._call(
            "create_directory",
            {"path": path, "create_parents": create_parents},
            lambda: self.service.create_directory(
                self.session, path, create_parents=create_parents
            ),
        )

    async def move_path(
        self, source_path: PathArg, destination_path: PathArg
    ) -> dict[str, Any]:
        return await self._call(
            "move_path",
            {"source_path": source_path, "destination_path": destination_path},
            lambda: self.service.move_path(
                self.session, source_path, destination_path
            ),
        )

    async def copy_path(
        self,
        source_path: PathArg,
        destination_path: PathArg,
        recursive: Annotated[
            bool, Field(description="Copy directory contents recursively.")
        ] = True,
    ) -> dict[str, Any]:
        return await self._call(
            "copy_path",
            {
                "source_path": source_path,
                "destination_path": destination_path,
                "recursive": recursive,
            },
            lambda: self.service.copy_path(
                self.session, source_path, destination_path, recursive=recursive
            ),
        )

    async def run_stdio(self) -> None:
        await self.mcp.run_stdio_async()
