"""Path sanitization: normalization and optional confinement under a root.

``sanitize_path`` is a pure string transform: it never touches the
filesystem beyond reading the current working directory for the weak
relative-path check, and it does not follow symlinks.
"""

import os
import posixpath
import re

import structlog
from pydantic import BaseModel, ConfigDict

from fsleash.exceptions import PathValidationError

logger = structlog.get_logger()

# Drive letter and/or leading separator run, e.g. "C:\", "/", "//".
_ROOT_MARKER_RE = re.compile(r"^(?:[A-Za-z]:)?[/\\]+")
# POSIX normpath keeps a leading "//"; a run of leading slashes is one root.
_LEADING_SLASHES_RE = re.compile(r"^/{2,}")


class SanitizeOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    root_dir: str | None = None
    to_posix: bool = False
    allow_absolute: bool = False


class SanitizedPathInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    sanitized_path: str
    original_input: str
    was_absolute: bool
    converted_to_relative: bool
    options_used: SanitizeOptions


def normalize_path(path: str) -> str:
    """``os.path.normpath`` that also collapses a leading run of slashes."""
    return _LEADING_SLASHES_RE.sub("/", os.path.normpath(path), count=1)


def is_within(path: str, base: str) -> bool:
    """True if *path* is *base* or lies below it. String comparison only."""
    if path == base:
        return True
    prefix = base if base.endswith(os.sep) else base + os.sep
    return path.startswith(prefix)


def sanitize_path(
    raw_path: str, options: SanitizeOptions | None = None
) -> SanitizedPathInfo:
    """Normalize *raw_path* and enforce the confinement rules in *options*.

    Raises PathValidationError for empty input, null bytes, or traversal
    outside ``root_dir`` (or, with no root, outside the working directory
    for relative input).
    """
    opts = options or SanitizeOptions()
    if opts.root_dir:
        root = normalize_path(os.path.abspath(opts.root_dir))
        opts = opts.model_copy(update={"root_dir": root})

    try:
        return _sanitize(raw_path, opts)
    except PathValidationError as e:
        logger.warning(
            "path_sanitization_failed",
            original_input=raw_path if isinstance(raw_path, str) else repr(raw_path),
            reason=e.message,
            root_dir=opts.root_dir,
            allow_absolute=opts.allow_absolute,
        )
        raise


def _sanitize(raw_path: str, opts: SanitizeOptions) -> SanitizedPathInfo:
    if not isinstance(raw_path, str) or not raw_path:
        raise PathValidationError(
            "Invalid path input: must be a non-empty string.", input=raw_path
        )
    if "\0" in raw_path:
        raise PathValidationError(
            "Path contains null byte, which is disallowed.", input=raw_path
        )

    normalized = normalize_path(raw_path)
    was_absolute = os.path.isabs(normalized)
    if opts.to_posix:
        # Re-normalize so "a\..\b" collapses the same way "a/../b" does.
        normalized = _LEADING_SLASHES_RE.sub(
            "/", posixpath.normpath(normalized.replace("\\", "/")), count=1
        )

    if opts.root_dir:
        sanitized = _confine_to_root(
            raw_path, normalized, opts.root_dir, allow_absolute=opts.allow_absolute
        )
    elif os.path.isabs(normalized):
        if opts.allow_absolute:
            sanitized = normalized
        else:
            sanitized = _ROOT_MARKER_RE.sub("", normalized, count=1) or "."
            logger.warning(
                "absolute_path_converted_to_relative",
                original_input=raw_path,
                sanitized_path=sanitized,
            )
    else:
        cwd = os.getcwd()
        resolved = os.path.abspath(normalized)
        if not is_within(resolved, cwd):
            raise PathValidationError(
                "Relative path traversal detected "
                "(escapes current working directory context).",
                input=raw_path,
                resolved_path=resolved,
            )
        sanitized = normalized

    if opts.to_posix:
        sanitized = sanitized.replace("\\", "/")

    return SanitizedPathInfo(
        sanitized_path=sanitized,
        original_input=raw_path,
        was_absolute=was_absolute,
        converted_to_relative=(
            was_absolute and not os.path.isabs(sanitized) and not opts.allow_absolute
        ),
        options_used=opts,
    )


def _confine_to_root(
    raw_path: str, normalized: str, root: str, *, allow_absolute: bool
) -> str:
    full_path = os.path.abspath(os.path.join(root, normalized))
    if not is_within(full_path, root):
        raise PathValidationError(
            "Path traversal detected: attempts to escape the defined root directory.",
            input=raw_path,
            root_dir=root,
            resolved_path=full_path,
        )
    relative = os.path.relpath(full_path, root)
    if os.path.isabs(relative) and not allow_absolute:
        raise PathValidationError(
            "Path resolved to absolute outside root when absolute paths are disallowed.",
            input=raw_path,
            root_dir=root,
            resolved_path=full_path,
        )
    return relative
