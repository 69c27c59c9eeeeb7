"""Base-directory boundary enforcement."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import structlog

from fsleash.core.safety.sanitizer import (
    SanitizeOptions,
    is_within,
    normalize_path,
    sanitize_path,
)
from fsleash.exceptions import ForbiddenPathError, PathValidationError

if TYPE_CHECKING:
    from fsleash.core.config import FsleashConfig

logger = structlog.get_logger()


class SandboxBoundary:
    """Write-once confinement of every resolved path under a base directory.

    Invalid base directories disable the boundary instead of failing startup.
    The comparison is a string prefix check over normalized paths; symlinks
    and filesystem case folding are not taken into account.
    """

    def __init__(
        self, base_directory: str | None = None, *, project_root: str | None = None
    ) -> None:
        self._base: str | None = None
        if not base_directory:
            return

        candidate = base_directory
        if not os.path.isabs(candidate):
            candidate = os.path.join(project_root or os.getcwd(), candidate)

        try:
            info = sanitize_path(candidate, SanitizeOptions(allow_absolute=True))
        except PathValidationError as e:
            logger.error(
                "sandbox_base_invalid",
                base_directory=base_directory,
                error=e.message,
            )
            return

        self._base = normalize_path(info.sanitized_path)
        if not os.path.isdir(self._base):
            logger.warning("sandbox_base_missing", base_directory=self._base)
        logger.info("sandbox_enabled", base_directory=self._base)

    @classmethod
    def from_config(
        cls, config: FsleashConfig, *, project_root: str | None = None
    ) -> SandboxBoundary:
        return cls(config.base_directory, project_root=project_root)

    @property
    def base_directory(self) -> str | None:
        return self._base

    @property
    def active(self) -> bool:
        return self._base is not None

    def contains(self, path: str) -> bool:
        if self._base is None:
            return True
        return is_within(normalize_path(path), self._base)

    def enforce(self, requested_path: str, resolved_path: str) -> None:
        """Raise ForbiddenPathError if *resolved_path* escapes the base directory."""
        if self.contains(resolved_path):
            return

        logger.warning(
            "sandbox_path_denied",
            requested_path=requested_path,
            resolved_path=resolved_path,
            base_directory=self._base,
        )
        raise ForbiddenPathError(
            f'Access denied: The path "{requested_path}" resolves to a location '
            "outside the allowed base directory.",
            requested_path=requested_path,
            resolved_path=resolved_path,
        )
