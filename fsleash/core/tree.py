"""Bounded recursive directory enumeration with glob exclusions.

A single ``TraversalBudget`` is threaded by reference through the whole walk
so the entry limit is global to the tree, not per directory. Unreadable
subdirectories are recorded on their item and skipped; only a failure to
read the root itself aborts the call.
"""

from __future__ import annotations

import asyncio
import fnmatch
import os
from collections.abc import Sequence

import structlog
from pydantic import BaseModel, ConfigDict

from fsleash.exceptions import (
    FsleashError,
    InternalFsError,
    PathNotFoundError,
    PathValidationError,
)

logger = structlog.get_logger()

DIR_ICON = "\U0001f4c1"
FILE_ICON = "\U0001f4c4"
TRUNCATION_MARKER = "...\n[Listing truncated due to max entries limit]\n"


class DirectoryItem(BaseModel):
    name: str
    is_directory: bool
    children: list[DirectoryItem] | None = None
    error: str | None = None


class TraversalBudget(BaseModel):
    limit: int
    count: int = 0
    truncated: bool = False

    @property
    def exhausted(self) -> bool:
        return self.count >= self.limit


class TreeListing(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: list[DirectoryItem]
    count: int
    truncated: bool


def is_excluded(relative_path: str, patterns: Sequence[str]) -> bool:
    """Match *relative_path* (POSIX, root-relative) against exclusion globs.

    Each pattern is tried as-is, as ``**/pattern`` and as ``**/pattern/**``
    so a bare name hides the entry at any depth. Case-sensitive; leading
    dots are not special.
    """
    for pattern in patterns:
        if (
            fnmatch.fnmatchcase(relative_path, pattern)
            or fnmatch.fnmatchcase(relative_path, f"**/{pattern}")
            or fnmatch.fnmatchcase(relative_path, f"**/{pattern}/**")
        ):
            return True
    return False


def _scan(dir_path: str) -> list[tuple[str, bool]]:
    with os.scandir(dir_path) as it:
        entries = [(entry.name, entry.is_dir(follow_symlinks=False)) for entry in it]
    entries.sort()
    return entries


async def _read_entries(dir_path: str) -> list[tuple[str, bool]]:
    try:
        return await asyncio.to_thread(_scan, dir_path)
    except FileNotFoundError as e:
        raise PathNotFoundError(
            f"Directory not found at path: {dir_path}", dir_path=dir_path
        ) from e
    except NotADirectoryError as e:
        raise PathValidationError(
            f"Path is not a directory: {dir_path}", dir_path=dir_path
        ) from e
    except OSError as e:
        raise InternalFsError(
            f"Failed to read directory: {e.strerror or e}", dir_path=dir_path
        ) from e


async def _walk(
    dir_path: str,
    relative_prefix: str,
    recursive: bool,
    patterns: Sequence[str],
    budget: TraversalBudget,
) -> list[DirectoryItem]:
    if budget.truncated or budget.exhausted:
        budget.truncated = True
        return []

    entries = await _read_entries(dir_path)
    items: list[DirectoryItem] = []

    for name, is_dir in entries:
        if budget.exhausted:
            budget.truncated = True
            logger.debug("tree_limit_reached", dir_path=dir_path, limit=budget.limit)
            break

        relative = f"{relative_prefix}{name}"
        if is_excluded(relative, patterns):
            continue

        budget.count += 1
        item = DirectoryItem(name=name, is_directory=is_dir)

        if is_dir and recursive:
            child_path = os.path.join(dir_path, name)
            try:
                item.children = await _walk(
                    child_path, f"{relative}/", recursive, patterns, budget
                )
            except FsleashError as e:
                logger.error(
                    "nested_directory_read_failed",
                    dir_path=child_path,
                    error=e.message,
                    code=e.code.value,
                )
                item.error = e.message
                item.children = None

        items.append(item)
        if budget.truncated:
            break

    items.sort(key=lambda i: (not i.is_directory, i.name))
    return items


async def list_tree(
    root: str,
    recursive: bool = False,
    max_entries: int = 50,
    exclude_patterns: Sequence[str] = (),
) -> TreeListing:
    """Enumerate *root*, which must already be a resolved absolute path.

    Raises PathNotFoundError / PathValidationError / InternalFsError when the
    root itself cannot be read.
    """
    if max_entries < 1:
        raise PathValidationError(
            "max_entries must be a positive integer.", max_entries=max_entries
        )

    patterns = [p.rstrip("/") for p in exclude_patterns if p and p.rstrip("/")]
    budget = TraversalBudget(limit=max_entries)
    items = await _walk(root, "", recursive, patterns, budget)

    logger.info(
        "tree_listed",
        root=root,
        recursive=recursive,
        count=budget.count,
        truncated=budget.truncated,
        limit=max_entries,
    )
    return TreeListing(items=items, count=budget.count, truncated=budget.truncated)


def format_tree(items: list[DirectoryItem], truncated: bool, prefix: str = "") -> str:
    lines: list[str] = []
    for index, item in enumerate(items):
        is_last = index == len(items) - 1
        connector = "└── " if is_last else "├── "
        icon = DIR_ICON if item.is_directory else FILE_ICON
        error = f" [Error: {item.error}]" if item.error else ""
        lines.append(f"{prefix}{connector}{icon} {item.name}{error}\n")
        if item.is_directory and not item.error and item.children:
            child_prefix = prefix + ("    " if is_last else "│   ")
            lines.append(format_tree(item.children, False, child_prefix))

    # Only the outermost level carries the marker.
    if truncated and prefix == "":
        lines.append(TRUNCATION_MARKER)
    return "".join(lines)


def render_tree(root: str, listing: TreeListing) -> str:
    root_name = os.path.basename(os.path.normpath(root)) or root
    return f"{DIR_ICON} {root_name}\n" + format_tree(listing.items, listing.truncated)
