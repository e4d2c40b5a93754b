"""The contract every resource handler implements.

Built-in handlers live in agent_fabric.handlers. Third-party handlers only
need to satisfy this protocol and set `is_built_in = False`; how they are
located and imported is up to the caller that registers them.
"""

from pathlib import Path
from typing import Protocol, runtime_checkable

from agent_fabric.core.resource import (
    DiscoveredItem,
    InstallReport,
    InstallTarget,
    ListResult,
    RemoveReport,
    Scope,
    ValidationResult,
)


@runtime_checkable
class ResourceHandler(Protocol):
    """Discover, validate, install, remove and list one resource kind."""

    kind: str
    display_name: str
    description: str
    is_built_in: bool

    def discover(self, source_root: Path) -> list[DiscoveredItem]:
        """Find every item of this kind under a staged source."""
        ...

    def validate(self, item: DiscoveredItem) -> ValidationResult:
        """Check an item; must never raise."""
        ...

    def install(
        self, item: DiscoveredItem, targets: list[InstallTarget], force: bool = False
    ) -> InstallReport:
        """Install an item into each target, reporting per target."""
        ...

    def remove(self, name: str, targets: list[InstallTarget]) -> RemoveReport:
        """Remove an installed item from each target."""
        ...

    def supported_consumers(self) -> list[str]:
        ...

    def list(self, scope: Scope | None = None) -> ListResult:
        """Re-scan consumer directories; None lists both scopes."""
        ...

    def install_path(self, name: str, target: InstallTarget) -> Path:
        """Where an item named `name` lands for a target."""
        ...
