"""Skills: directories marked by a SKILL.md file."""

from pathlib import Path, PurePosixPath

from agent_fabric.constants import SKILL_FILE_NAME
from agent_fabric.core.consumer import ConsumerSpec
from agent_fabric.core.resource import (
    DiscoveredItem,
    InstallTarget,
    ListedResource,
    ResourceFile,
    ResourceKind,
    Scope,
    ValidationResult,
)
from agent_fabric.fetcher.archive import safe_join
from agent_fabric.fetcher.local import iter_source_files
from agent_fabric.handlers.base import BaseHandler
from agent_fabric.handlers.metadata import content_hash, read_markdown_metadata, read_text
from agent_fabric.naming import category_path, resolve_name, sanitize_name


def _relative_dir(path: Path, root: Path) -> PurePosixPath:
    return PurePosixPath(path.relative_to(root).as_posix())


class SkillsHandler(BaseHandler):
    """Multi-file resources: every file under a SKILL.md directory belongs to the skill."""

    kind = ResourceKind.SKILLS.value
    display_name = "Skill"
    description = "Instruction modules with supporting files"

    def entry_name(self, name: str, spec: ConsumerSpec) -> str:
        return name

    def discover(self, source_root: Path) -> list[DiscoveredItem]:
        """Find every skill directory under source_root.

        A skill nested inside another skill's directory is its own item, and
        its files are not counted towards the outer skill.
        """
        source_root = source_root.resolve()
        all_files = list(iter_source_files(source_root))
        skill_dirs = sorted({f.parent for f in all_files if f.name == SKILL_FILE_NAME})

        items = []
        for skill_dir in skill_dirs:
            nested = [d for d in skill_dirs if d != skill_dir and d.is_relative_to(skill_dir)]
            files = [
                f for f in all_files
                if f.is_relative_to(skill_dir)
                and not any(f.is_relative_to(d) for d in nested)
            ]
            items.append(self._build_item(source_root, skill_dir, files))
        return items

    def _build_item(self, source_root: Path, skill_dir: Path, files: list[Path]) -> DiscoveredItem:
        parsed = read_markdown_metadata(read_text(skill_dir / SKILL_FILE_NAME))
        relative = _relative_dir(skill_dir, source_root)
        at_root = skill_dir == source_root

        original_name = parsed.document.get("name")
        if not original_name:
            original_name = parsed.name if at_root else skill_dir.name
        original_name = sanitize_name(original_name or skill_dir.name)

        parent = relative.parent
        categories = [] if at_root else category_path(parent)
        name = resolve_name(
            original_name,
            categories,
            self.naming_strategy,
            source_path=None if at_root else parent.as_posix(),
        )

        resource_files = []
        for path in files:
            resource_files.append(
                ResourceFile(
                    path=path.relative_to(skill_dir).as_posix(),
                    content=path.read_bytes(),
                    mode=path.stat().st_mode & 0o777,
                )
            )

        return DiscoveredItem(
            kind=self.kind,
            name=name,
            original_name=original_name,
            version=parsed.version,
            description=parsed.description,
            category_path=categories,
            files=resource_files,
            source_dir=skill_dir,
            metadata={
                "originalName": original_name,
                "installedName": name,
                "categories": categories,
                "namingStrategy": self.naming_strategy.value,
                "sourcePath": "." if at_root else relative.as_posix(),
                "folderHash": content_hash(
                    *(f.path.encode("utf-8") + f.content for f in resource_files)
                ),
            },
        )

    def validate_kind(self, item: DiscoveredItem, result: ValidationResult) -> None:
        if not any(f.path == SKILL_FILE_NAME for f in item.files):
            result.warnings.append(f"Skill '{item.name}' is missing {SKILL_FILE_NAME}")

    def materialize(self, item: DiscoveredItem, target: InstallTarget, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)
        for resource_file in item.files:
            dest = safe_join(path, resource_file.path)
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(resource_file.content)
            if resource_file.mode is not None:
                dest.chmod(resource_file.mode)

    def scan_dir(self, directory: Path, spec: ConsumerSpec, scope: Scope) -> list[ListedResource]:
        found = []
        for entry in sorted(directory.iterdir()):
            marker = entry / SKILL_FILE_NAME
            if not entry.is_dir() or not marker.is_file():
                continue
            parsed = read_markdown_metadata(read_text(marker))
            found.append(
                ListedResource(
                    kind=self.kind,
                    name=entry.name,
                    consumer_id=spec.consumer_id,
                    scope=scope,
                    path=entry,
                    version=parsed.version,
                    description=parsed.description,
                    metadata={
                        "declaredName": parsed.name,
                        "linked": entry.is_symlink(),
                    },
                )
            )
        return found
