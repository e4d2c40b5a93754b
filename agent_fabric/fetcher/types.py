"""Type definitions for the fetcher module."""

from dataclasses import dataclass, field
from pathlib import Path

from agent_fabric.source import OriginDescriptor


@dataclass(frozen=True)
class StagedFile:
    """A file made available by an acquisition, independent of how it was fetched."""

    path: str  # POSIX path relative to the staging root
    content: bytes
    mode: int | None = None


@dataclass
class AcquireMetadata:
    """Bookkeeping about one acquisition."""

    downloaded_at: str
    size: int
    file_count: int


@dataclass
class AcquireResult:
    """Result of acquiring an origin.

    Attributes:
        descriptor: The origin that was acquired
        local_dir: Staging root (or the local source directory itself)
        files: Every file under local_dir, excluding deny-listed entries
        metadata: Timestamps and size counters
        warnings: Entries skipped by the safety checks, with the reason
    """

    descriptor: OriginDescriptor
    local_dir: Path
    files: list[StagedFile] = field(default_factory=list)
    metadata: AcquireMetadata | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def file_count(self) -> int:
        return len(self.files)
