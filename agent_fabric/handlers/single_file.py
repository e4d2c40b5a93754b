"""Shared behaviour for kinds where one file is one resource."""

from pathlib import Path

from agent_fabric.core.resource import DiscoveredItem, InstallTarget, ValidationResult
from agent_fabric.handlers.base import BaseHandler


class SingleFileHandler(BaseHandler):
    """A resource is exactly one marker file, installed as `<name><ext>`."""

    def render(self, item: DiscoveredItem, target: InstallTarget) -> bytes:
        """Bytes written in copy mode; the marker content unchanged by default."""
        return item.files[0].content

    def materialize(self, item: DiscoveredItem, target: InstallTarget, path: Path) -> None:
        path.write_bytes(self.render(item, target))
        mode = item.files[0].mode
        if mode is not None:
            path.chmod(mode)

    def validate_kind(self, item: DiscoveredItem, result: ValidationResult) -> None:
        if len(item.files) > 1:
            result.errors.append(
                f"{self.display_name} '{item.name}' must be a single file, got {len(item.files)}"
            )
