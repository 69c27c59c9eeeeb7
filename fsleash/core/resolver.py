"""Session-aware path resolution, used by every filesystem operation."""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from fsleash.core.safety.sanitizer import SanitizeOptions, sanitize_path
from fsleash.exceptions import PathValidationError

if TYPE_CHECKING:
    from fsleash.core.safety.sandbox import SandboxBoundary
    from fsleash.core.session import FilesystemSession

logger = structlog.get_logger()

_ABSOLUTE = SanitizeOptions(allow_absolute=True)


class PathResolver:
    """Turns caller-supplied paths into validated absolute paths.

    The sandbox is shared and read-only; the session carries the mutable
    default path and is passed in by the caller on each operation.
    """

    def __init__(self, sandbox: SandboxBoundary) -> None:
        self._sandbox = sandbox

    @property
    def sandbox(self) -> SandboxBoundary:
        return self._sandbox

    def resolve_path(self, requested_path: str, session: FilesystemSession) -> str:
        default_path = session.default_path
        logger.debug(
            "path_resolving",
            requested_path=requested_path,
            default_path=default_path,
            base_directory=self._sandbox.base_directory,
        )

        if isinstance(requested_path, str) and os.path.isabs(requested_path):
            candidate = requested_path
        else:
            if not default_path:
                logger.warning(
                    "relative_path_without_default", requested_path=requested_path
                )
                raise PathValidationError(
                    "Relative path provided, but no default filesystem path has "
                    "been set for this session. Please provide an absolute path "
                    "or set a default path first.",
                    requested_path=requested_path,
                )
            if not isinstance(requested_path, str) or not requested_path:
                raise PathValidationError(
                    "Invalid path input: must be a non-empty string.",
                    requested_path=requested_path,
                )
            candidate = os.path.join(default_path, requested_path)

        try:
            resolved = sanitize_path(candidate, _ABSOLUTE).sanitized_path
        except PathValidationError as e:
            e.context.setdefault("requested_path", requested_path)
            e.context.setdefault("resolved_path", candidate)
            raise

        self._sandbox.enforce(requested_path, resolved)
        return resolved

    def set_default_path(self, path: str, session: FilesystemSession) -> str:
        """Replace the session default with the sanitized absolute *path*."""
        if not isinstance(path, str) or not os.path.isabs(path):
            logger.warning("default_path_rejected", path=path, reason="not_absolute")
            raise PathValidationError("Default path must be absolute.", path=path)

        try:
            sanitized = sanitize_path(path, _ABSOLUTE).sanitized_path
        except PathValidationError as e:
            raise PathValidationError(
                f"Invalid default path provided: {e.message}", path=path
            ) from e

        session.default_path = sanitized
        session.updated_at = datetime.now(UTC)
        logger.info(
            "default_path_set", session_id=session.session_id, default_path=sanitized
        )
        return sanitized

    def get_default_path(self, session: FilesystemSession) -> str | None:
        return session.default_path

    def clear_default_path(self, session: FilesystemSession) -> None:
        session.default_path = None
        session.updated_at = datetime.now(UTC)
        logger.info("default_path_cleared", session_id=session.session_id)
