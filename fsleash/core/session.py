"""Per-caller session state: the default path relative inputs resolve against."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, Field


# Mutable: PathResolver replaces default_path in-place.
class FilesystemSession(BaseModel):
    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    default_path: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime | None = None
