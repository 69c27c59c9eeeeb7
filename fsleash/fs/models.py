"""Data models for filesystem tool inputs and results."""

from pydantic import BaseModel, ConfigDict, Field


class DiffBlock(BaseModel):
    """One search/replace step applied by update_file."""

    model_config = ConfigDict(frozen=True)

    search: str = Field(min_length=1)
    replace: str = ""


class DefaultPathResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    current_default_path: str | None = None


class ReadFileResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    resolved_path: str


class WriteFileResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    written_path: str
    bytes_written: int


class UpdateFileResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    updated_path: str
    blocks_applied: int
    blocks_failed: int
    replacements: int = 0


class ListFilesResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    tree: str
    requested_path: str
    resolved_path: str
    item_count: int
    truncated: bool


class PathResult(BaseModel):
    """Result of a single-path mutation (delete, create)."""

    model_config = ConfigDict(frozen=True)

    message: str
    path: str


class TransferResult(BaseModel):
    """Result of move or copy."""

    model_config = ConfigDict(frozen=True)

    message: str
    source_path: str
    destination_path: str
    was_recursive: bool | None = None
