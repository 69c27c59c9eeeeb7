"""Filesystem operations on resolved paths.

Every public method resolves its path arguments through PathResolver before
touching the disk; blocking calls run in worker threads.
"""

from __future__ import annotations

import asyncio
import errno
import os
import re
import shutil
import stat
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from fsleash.core.tree import list_tree, render_tree
from fsleash.exceptions import (
    InternalFsError,
    InvalidInputError,
    PathNotFoundError,
    PathValidationError,
)
from fsleash.fs.models import (
    DefaultPathResult,
    DiffBlock,
    ListFilesResult,
    PathResult,
    ReadFileResult,
    TransferResult,
    UpdateFileResult,
    WriteFileResult,
)

if TYPE_CHECKING:
    from fsleash.core.resolver import PathResolver
    from fsleash.core.session import FilesystemSession

logger = structlog.get_logger()


def apply_blocks(
    content: str,
    blocks: Sequence[DiffBlock],
    *,
    use_regex: bool = False,
    replace_all: bool = False,
) -> tuple[str, int, int, int]:
    """Apply search/replace *blocks* in order.

    Returns ``(new_content, blocks_applied, blocks_failed, replacements)``.
    Raises InvalidInputError for an invalid pattern or replacement template.
    """
    applied = failed = replacements = 0
    for index, block in enumerate(blocks, start=1):
        if use_regex:
            try:
                pattern = re.compile(block.search)
            except re.error as e:
                raise InvalidInputError(
                    f'Invalid regular expression pattern in block {index}: '
                    f'"{block.search}". Error: {e}',
                    block_index=index,
                ) from e
            try:
                content, made = pattern.subn(
                    block.replace, content, count=0 if replace_all else 1
                )
            except re.error as e:
                raise InvalidInputError(
                    f'Invalid replacement template in block {index}: '
                    f'"{block.replace}". Error: {e}',
                    block_index=index,
                ) from e
        elif replace_all:
            made = content.count(block.search)
            content = content.replace(block.search, block.replace)
        else:
            made = 1 if block.search in content else 0
            content = content.replace(block.search, block.replace, 1)

        if made:
            applied += 1
            replacements += made
        else:
            failed += 1
            logger.warning(
                "diff_block_not_found", block_index=index, search=block.search[:50]
            )
    return content, applied, failed, replacements


def _write_text(path: str, content: str) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_text(content, encoding="utf-8")


def _copy(source: str, destination: str, *, is_dir: bool, recursive: bool) -> None:
    if not is_dir:
        shutil.copy2(source, destination, follow_symlinks=False)
    elif recursive:
        shutil.copytree(source, destination, symlinks=True)
    else:
        os.mkdir(destination)


class FilesystemService:
    def __init__(
        self, resolver: PathResolver, *, default_max_entries: int = 50
    ) -> None:
        self._resolver = resolver
        self._default_max_entries = default_max_entries

    @property
    def resolver(self) -> PathResolver:
        return self._resolver

    async def set_default(
        self, session: FilesystemSession, path: str
    ) -> DefaultPathResult:
        current = self._resolver.set_default_path(path, session)
        return DefaultPathResult(
            message=f"Default filesystem path successfully set to: {current}",
            current_default_path=current,
        )

    async def clear_default(self, session: FilesystemSession) -> DefaultPathResult:
        self._resolver.clear_default_path(session)
        return DefaultPathResult(message="Default filesystem path cleared.")

    async def read_file(self, session: FilesystemSession, path: str) -> ReadFileResult:
        resolved = self._resolver.resolve_path(path, session)
        try:
            content = await asyncio.to_thread(
                Path(resolved).read_text, encoding="utf-8"
            )
        except FileNotFoundError as e:
            raise PathNotFoundError(
                f"File not found at resolved path: {resolved}",
                requested_path=path,
                resolved_path=resolved,
            ) from e
        except IsADirectoryError as e:
            raise PathValidationError(
                f"Resolved path is a directory, not a file: {resolved}",
                requested_path=path,
                resolved_path=resolved,
            ) from e
        except (OSError, UnicodeDecodeError) as e:
            raise InternalFsError(
                f"Failed to read file: {e}", requested_path=path, resolved_path=resolved
            ) from e

        logger.debug("file_read", resolved_path=resolved, length=len(content))
        return ReadFileResult(content=content, resolved_path=resolved)

    async def write_file(
        self, session: FilesystemSession, path: str, content: str
    ) -> WriteFileResult:
        resolved = self._resolver.resolve_path(path, session)
        if await asyncio.to_thread(os.path.isdir, resolved):
            logger.warning("write_to_directory_rejected", resolved_path=resolved)
            raise PathValidationError(
                f"Cannot write file. Path exists and is a directory: {resolved}",
                requested_path=path,
                resolved_path=resolved,
            )

        try:
            await asyncio.to_thread(_write_text, resolved, content)
        except OSError as e:
            logger.error("file_write_failed", resolved_path=resolved, error=str(e))
            raise InternalFsError(
                f"Failed to write file: {e}",
                requested_path=path,
                resolved_path=resolved,
            ) from e

        written = len(content.encode("utf-8"))
        logger.info("file_written", resolved_path=resolved, bytes_written=written)
        return WriteFileResult(
            message=f"Successfully wrote content to {resolved}",
            written_path=resolved,
            bytes_written=written,
        )

    async def update_file(
        self,
        session: FilesystemSession,
        path: str,
        blocks: Sequence[DiffBlock],
        *,
        use_regex: bool = False,
        replace_all: bool = False,
    ) -> UpdateFileResult:
        if not blocks:
            raise InvalidInputError(
                "At least one search/replace block is required.", requested_path=path
            )
        resolved = self._resolver.resolve_path(path, session)
        current = (await self.read_file(session, resolved)).content

        updated, applied, failed, replacements = apply_blocks(
            current, blocks, use_regex=use_regex, replace_all=replace_all
        )

        if replacements == 0:
            logger.info("file_unchanged", resolved_path=resolved, blocks_failed=failed)
            return UpdateFileResult(
                message=(
                    f"No changes applied to file {resolved}. {failed} block(s) "
                    "failed (search criteria not found)."
                ),
                updated_path=resolved,
                blocks_applied=0,
                blocks_failed=failed,
            )

        await self.write_file(session, resolved, updated)
        logger.info(
            "file_updated",
            resolved_path=resolved,
            blocks_applied=applied,
            blocks_failed=failed,
            replacements=replacements,
        )
        return UpdateFileResult(
            message=(
                f"Successfully updated file {resolved}. Made {replacements} "
                f"replacement(s) across {applied} block(s). {failed} block(s) "
                "failed (search criteria not found)."
            ),
            updated_path=resolved,
            blocks_applied=applied,
            blocks_failed=failed,
            replacements=replacements,
        )

    async def delete_file(self, session: FilesystemSession, path: str) -> PathResult:
        resolved = self._resolver.resolve_path(path, session)
        st = await self._lstat(path, resolved, "File")
        if stat.S_ISDIR(st.st_mode):
            raise PathValidationError(
                f"Path is not a file: {resolved}",
                requested_path=path,
                resolved_path=resolved,
            )

        try:
            await asyncio.to_thread(os.unlink, resolved)
        except OSError as e:
            raise InternalFsError(
                f"Failed to delete file: {e}",
                requested_path=path,
                resolved_path=resolved,
            ) from e

        logger.info("file_deleted", resolved_path=resolved)
        return PathResult(message=f"Successfully deleted file: {resolved}", path=resolved)

    async def list_files(
        self,
        session: FilesystemSession,
        path: str,
        *,
        include_nested: bool = False,
        max_entries: int | None = None,
        exclude_patterns: Sequence[str] = (),
    ) -> ListFilesResult:
        resolved = self._resolver.resolve_path(path, session)
        limit = max_entries if max_entries is not None else self._default_max_entries
        listing = await list_tree(resolved, include_nested, limit, exclude_patterns)

        if listing.truncated:
            message = (
                f"Successfully listed {listing.count} items in {resolved} "
                f"(truncated at limit of {limit})."
            )
        else:
            message = f"Successfully listed {listing.count} items in {resolved}."

        return ListFilesResult(
            message=message,
            tree=render_tree(resolved, listing),
            requested_path=path,
            resolved_path=resolved,
            item_count=listing.count,
            truncated=listing.truncated,
        )

    async def create_directory(
        self, session: FilesystemSession, path: str, *, create_parents: bool = True
    ) -> PathResult:
        resolved = self._resolver.resolve_path(path, session)
        if await asyncio.to_thread(os.path.isfile, resolved):
            raise PathValidationError(
                f"Path exists and is a file: {resolved}",
                requested_path=path,
                resolved_path=resolved,
            )

        try:
            await asyncio.to_thread(
                Path(resolved).mkdir, parents=create_parents, exist_ok=True
            )
        except FileNotFoundError as e:
            raise PathNotFoundError(
                f"Parent directory does not exist: {os.path.dirname(resolved)}",
                requested_path=path,
                resolved_path=resolved,
            ) from e
        except OSError as e:
            raise InternalFsError(
                f"Failed to create directory: {e}",
                requested_path=path,
                resolved_path=resolved,
            ) from e

        logger.info("directory_created", resolved_path=resolved)
        return PathResult(
            message=f"Successfully created directory: {resolved}", path=resolved
        )

    async def delete_directory(
        self, session: FilesystemSession, path: str, *, recursive: bool = False
    ) -> PathResult:
        resolved = self._resolver.resolve_path(path, session)
        st = await self._lstat(path, resolved, "Directory")
        if not stat.S_ISDIR(st.st_mode):
            raise PathValidationError(
                f"Path is not a directory: {resolved}",
                requested_path=path,
                resolved_path=resolved,
            )

        try:
            if recursive:
                await asyncio.to_thread(shutil.rmtree, resolved)
            else:
                await asyncio.to_thread(os.rmdir, resolved)
        except OSError as e:
            if not recursive and e.errno in (errno.ENOTEMPTY, errno.EEXIST):
                raise PathValidationError(
                    f"Directory is not empty: {resolved}. "
                    "Use recursive=true to delete non-empty directories.",
                    requested_path=path,
                    resolved_path=resolved,
                ) from e
            raise InternalFsError(
                f"Failed to delete directory: {e}",
                requested_path=path,
                resolved_path=resolved,
            ) from e

        logger.info("directory_deleted", resolved_path=resolved, recursive=recursive)
        return PathResult(
            message=f"Successfully deleted directory: {resolved}"
            + (" (recursively)" if recursive else ""),
            path=resolved,
        )

    async def move_path(
        self, session: FilesystemSession, source_path: str, destination_path: str
    ) -> TransferResult:
        source, destination = await self._transfer_paths(
            session, source_path, destination_path
        )
        try:
            await asyncio.to_thread(os.rename, source, destination)
        except OSError as e:
            raise InternalFsError(
                f"Failed to move path: {e}",
                source_path=source,
                destination_path=destination,
            ) from e

        logger.info("path_moved", source_path=source, destination_path=destination)
        return TransferResult(
            message=f"Successfully moved {source} to {destination}",
            source_path=source,
            destination_path=destination,
        )

    async def copy_path(
        self,
        session: FilesystemSession,
        source_path: str,
        destination_path: str,
        *,
        recursive: bool = True,
    ) -> TransferResult:
        source, destination = await self._transfer_paths(
            session, source_path, destination_path
        )
        is_dir = await asyncio.to_thread(os.path.isdir, source)
        try:
            await asyncio.to_thread(
                _copy, source, destination, is_dir=is_dir, recursive=recursive
            )
        except (OSError, shutil.Error) as e:
            raise InternalFsError(
                f"Failed to copy path: {e}",
                source_path=source,
                destination_path=destination,
            ) from e

        suffix = ""
        if is_dir:
            suffix = " (recursively)" if recursive else " (directory only)"
        logger.info(
            "path_copied",
            source_path=source,
            destination_path=destination,
            recursive=recursive if is_dir else None,
        )
        return TransferResult(
            message=f"Successfully copied {source} to {destination}{suffix}",
            source_path=source,
            destination_path=destination,
            was_recursive=recursive if is_dir else None,
        )

    async def _lstat(self, path: str, resolved: str, kind: str) -> os.stat_result:
        try:
            return await asyncio.to_thread(os.lstat, resolved)
        except FileNotFoundError as e:
            raise PathNotFoundError(
                f"{kind} not found at path: {resolved}",
                requested_path=path,
                resolved_path=resolved,
            ) from e
        except OSError as e:
            raise InternalFsError(
                f"Cannot access path: {e}", requested_path=path, resolved_path=resolved
            ) from e

    async def _transfer_paths(
        self, session: FilesystemSession, source_path: str, destination_path: str
    ) -> tuple[str, str]:
        """Resolve and check move/copy preconditions."""
        source = self._resolver.resolve_path(source_path, session)
        destination = self._resolver.resolve_path(destination_path, session)

        if source == destination:
            raise PathValidationError(
                "Source and destination paths cannot be the same.",
                source_path=source,
                destination_path=destination,
            )
        if not await asyncio.to_thread(os.path.lexists, source):
            raise PathNotFoundError(
                f"Source path not found: {source}",
                requested_source_path=source_path,
                source_path=source,
            )
        destination_dir = os.path.dirname(destination)
        if not await asyncio.to_thread(os.path.isdir, destination_dir):
            raise PathValidationError(
                f"Destination directory does not exist or is inaccessible: "
                f"{destination_dir}",
                requested_destination_path=destination_path,
                destination_path=destination,
            )
        if await asyncio.to_thread(os.path.lexists, destination):
            raise PathValidationError(
                f"Destination path already exists: {destination}. Cannot overwrite.",
                requested_destination_path=destination_path,
                destination_path=destination,
            )
        return source, destination
