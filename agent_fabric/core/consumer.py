"""Consumer layout declarations.

A consumer is a coding agent that reads resources from its own directory
tree, e.g. Claude Code reads skills from `.claude/skills/`. Each consumer
declares, per resource kind, a subdirectory under its project and global
config directories.
"""

from dataclasses import dataclass
from pathlib import Path

from agent_fabric.core.resource import Scope
from agent_fabric.exceptions import ConsumerNotSupportedError


@dataclass(frozen=True)
class ConsumerSpec:
    """Specification for a consuming tool.

    Attributes:
        consumer_id: Stable identifier, e.g. "claude-code"
        display_name: Human-readable name
        config_dir: Project-relative config directory, e.g. ".claude"
        global_config_dir: Global config directory, e.g. "~/.claude"
        resource_dirs: Subdirectory per resource kind
        rule_extension: File extension rules are written with
        subagent_format: "json" or "yaml"
        detection_markers: Paths whose presence means the tool is in use
    """

    consumer_id: str
    display_name: str
    config_dir: str
    global_config_dir: str | None
    resource_dirs: dict[str, str]
    rule_extension: str = ".md"
    subagent_format: str = "json"
    detection_markers: tuple[str, ...] = ()

    def supports(self, kind: str) -> bool:
        return kind in self.resource_dirs

    def _subdir(self, kind: str) -> str:
        if kind not in self.resource_dirs:
            raise ConsumerNotSupportedError(
                f"Consumer '{self.consumer_id}' does not support resource kind '{kind}'"
            )
        return self.resource_dirs[kind]

    def get_resource_dir(self, project_root: Path, kind: str) -> Path:
        """Project-scoped directory for a kind.

        Raises:
            ConsumerNotSupportedError: If the consumer doesn't declare the kind
        """
        return project_root / self.config_dir / self._subdir(kind)

    def get_global_resource_dir(self, kind: str, global_root: Path | None = None) -> Path:
        """Global directory for a kind.

        Args:
            kind: Resource kind
            global_root: Replaces the home directory, mainly for tests

        Raises:
            ConsumerNotSupportedError: If the consumer has no global directory
                or doesn't declare the kind
        """
        subdir = self._subdir(kind)
        if self.global_config_dir is None:
            raise ConsumerNotSupportedError(
                f"Consumer '{self.consumer_id}' has no global directory"
            )
        if global_root is not None and self.global_config_dir.startswith("~/"):
            base = global_root / self.global_config_dir[2:]
        else:
            base = Path(self.global_config_dir).expanduser()
        return base / subdir

    def resolve_dir(
        self,
        kind: str,
        scope: Scope,
        project_root: Path,
        global_root: Path | None = None,
    ) -> Path:
        """Resolve (scope, kind) to a directory."""
        if scope == Scope.GLOBAL:
            return self.get_global_resource_dir(kind, global_root)
        return self.get_resource_dir(project_root, kind)

    def is_detected(self, project_root: Path, global_root: Path | None = None) -> bool:
        """Check whether the tool appears to be in use."""
        home = global_root or Path.home()
        for marker in self.detection_markers:
            if (project_root / marker).exists() or (home / marker).exists():
                return True
        return False
