"""Resource kinds and the values passed through the handler lifecycle.

Kinds are plain strings at the seams (state file, consumer layouts, handler
registry) so third-party handlers can introduce their own. ResourceKind
names the built-in ones.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class ResourceKind(Enum):
    """Built-in resource kinds."""

    SKILLS = "skills"
    RULES = "rules"
    SUBAGENTS = "subagents"


BUILT_IN_KINDS = tuple(kind.value for kind in ResourceKind)


class Scope(Enum):
    """Where a resource is installed."""

    PROJECT = "project"
    GLOBAL = "global"


class InstallMode(Enum):
    """How a resource is placed in a consumer directory."""

    COPY = "copy"
    LINK = "link"


@dataclass(frozen=True)
class ResourceFile:
    """One file belonging to a discovered item."""

    path: str  # POSIX path relative to the item's root
    content: bytes
    mode: int | None = None


@dataclass
class DiscoveredItem:
    """A resource found in a staged source, ready for validation.

    Attributes:
        kind: Resource kind, e.g. "skills"
        name: Resolved install name
        original_name: Name before category prefixing
        version: Declared version, if any
        description: Declared or inferred description
        category_path: Category segments between the source root and the item
        files: Files making up the item
        source_dir: Item root inside the staging directory (multi-file kinds)
        source_file: Marker file inside the staging directory (single-file kinds)
        metadata: Kind-specific parsed metadata (globs, model, format, hashes)
    """

    kind: str
    name: str
    original_name: str
    version: str | None = None
    description: str = ""
    category_path: list[str] = field(default_factory=list)
    files: list[ResourceFile] = field(default_factory=list)
    source_dir: Path | None = None
    source_file: Path | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def source_path(self) -> Path | None:
        """Path that link mode points at."""
        return self.source_file or self.source_dir


@dataclass(frozen=True)
class InstallTarget:
    """One consumer/scope/mode combination to install into."""

    consumer_id: str
    scope: Scope = Scope.PROJECT
    mode: InstallMode = InstallMode.COPY


@dataclass
class ValidationResult:
    """Outcome of validating a discovered item. Never raised."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class TargetResult:
    """Outcome for a single target of an install or remove call."""

    target: InstallTarget
    status: str  # "installed", "failed", "removed" or "missing"
    path: Path | None = None
    error: Exception | None = None
    replaced: bool = False

    @property
    def ok(self) -> bool:
        return self.status in ("installed", "removed")


@dataclass
class InstallReport:
    """Per-target results of installing one item."""

    item_name: str
    kind: str
    results: list[TargetResult] = field(default_factory=list)

    @property
    def installed(self) -> list[TargetResult]:
        return [r for r in self.results if r.status == "installed"]

    @property
    def failed(self) -> list[TargetResult]:
        return [r for r in self.results if r.status == "failed"]

    @property
    def success(self) -> bool:
        """True when every target succeeded."""
        return bool(self.results) and not self.failed

    def raise_on_failure(self) -> None:
        """Re-raise the first per-target error, if any."""
        for result in self.results:
            if result.error is not None:
                raise result.error


@dataclass
class RemoveReport:
    """Per-target results of removing one item."""

    item_name: str
    kind: str
    results: list[TargetResult] = field(default_factory=list)

    @property
    def removed(self) -> list[TargetResult]:
        return [r for r in self.results if r.status == "removed"]

    @property
    def missing(self) -> list[TargetResult]:
        return [r for r in self.results if r.status == "missing"]

    @property
    def failed(self) -> list[TargetResult]:
        return [r for r in self.results if r.status == "failed"]


@dataclass
class ListedResource:
    """A resource found on disk by re-scanning a consumer directory."""

    kind: str
    name: str
    consumer_id: str
    scope: Scope
    path: Path
    version: str | None = None
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ListError:
    """A consumer directory that could not be scanned."""

    consumer_id: str
    scope: Scope
    error: str


@dataclass
class ListResult:
    """Everything found by a listing pass."""

    resources: list[ListedResource] = field(default_factory=list)
    errors: list[ListError] = field(default_factory=list)

    def extend(self, other: "ListResult") -> None:
        self.resources.extend(other.resources)
        self.errors.extend(other.errors)
