from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, computed_field


class SkippedEntry(BaseModel):
    """A source file left out of an archive, with the reason it was skipped."""

    path: str
    reason: str


class OperationResult(BaseModel):
    """Outcome of a single compress or extract invocation."""

    operation: str
    source: str
    target: str
    entries: list[str] = Field(default_factory=list)
    skipped: list[SkippedEntry] = Field(default_factory=list)
    bytes_processed: int = 0

    model_config = ConfigDict(extra="forbid")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ok(self) -> bool:
        return not self.skipped


class ArchiveListing(BaseModel):
    """Central-directory metadata for one archive entry."""

    name: str
    is_directory: bool = Field(default=False, alias="isDirectory")
    size: int = 0
    compressed_size: int = Field(default=0, alias="compressedSize")

    model_config = ConfigDict(populate_by_name=True)


__all__ = ["ArchiveListing", "OperationResult", "SkippedEntry"]
