"""Rules: single markdown files (.md or .mdc)."""

from pathlib import Path, PurePosixPath

from agent_fabric.constants import RULE_FILE_EXTENSIONS, RULE_IGNORED_FILES, SKILL_FILE_NAME
from agent_fabric.core.consumer import ConsumerSpec
from agent_fabric.core.resource import (
    DiscoveredItem,
    InstallTarget,
    ListedResource,
    ResourceFile,
    ResourceKind,
    Scope,
)
from agent_fabric.fetcher.local import iter_source_files
from agent_fabric.handlers.metadata import content_hash, read_markdown_metadata, read_text
from agent_fabric.handlers.single_file import SingleFileHandler
from agent_fabric.naming import category_path, resolve_name, sanitize_name


def is_rule_file(path: Path) -> bool:
    return path.suffix in RULE_FILE_EXTENSIONS and path.name not in RULE_IGNORED_FILES


class RulesHandler(SingleFileHandler):
    """Markdown rule files, written with the extension each consumer expects."""

    kind = ResourceKind.RULES.value
    display_name = "Rule"
    description = "Coding rules and conventions"

    def entry_name(self, name: str, spec: ConsumerSpec) -> str:
        return f"{name}{spec.rule_extension}"

    def candidate_paths(self, name: str, target: InstallTarget) -> list[Path]:
        # A rule may have been written as .md or .mdc depending on the consumer
        directory = self.target_dir(target)
        primary = self.install_path(name, target)
        others = [directory / f"{name}{ext}" for ext in RULE_FILE_EXTENSIONS]
        return [primary] + [p for p in others if p != primary]

    def discover(self, source_root: Path) -> list[DiscoveredItem]:
        """Find rule files, ignoring anything inside a skill directory."""
        source_root = source_root.resolve()
        files = list(iter_source_files(source_root))
        skill_dirs = {f.parent for f in files if f.name == SKILL_FILE_NAME}

        items = []
        for path in files:
            if not is_rule_file(path):
                continue
            if any(path.is_relative_to(d) for d in skill_dirs):
                continue
            items.append(self._build_item(source_root, path))
        return items

    def _build_item(self, source_root: Path, path: Path) -> DiscoveredItem:
        raw = path.read_bytes()
        parsed = read_markdown_metadata(raw.decode("utf-8", errors="replace"))
        relative = PurePosixPath(path.relative_to(source_root).as_posix())

        original_name = sanitize_name(parsed.document.get("name") or path.stem)
        parent = relative.parent
        categories = category_path(parent)
        name = resolve_name(
            original_name, categories, self.naming_strategy, source_path=parent.as_posix()
        )
        globs = parsed.document.get_list("globs")

        return DiscoveredItem(
            kind=self.kind,
            name=name,
            original_name=original_name,
            version=parsed.version,
            description=parsed.description,
            category_path=categories,
            files=[ResourceFile(path=path.name, content=raw, mode=path.stat().st_mode & 0o777)],
            source_file=path,
            metadata={
                "originalName": original_name,
                "categories": categories,
                "namingStrategy": self.naming_strategy.value,
                "globs": globs,
                "sourcePath": relative.as_posix(),
                "configHash": content_hash(raw),
            },
        )

    def scan_dir(self, directory: Path, spec: ConsumerSpec, scope: Scope) -> list[ListedResource]:
        found = []
        for entry in sorted(directory.iterdir()):
            if not entry.is_file() or not is_rule_file(entry):
                continue
            parsed = read_markdown_metadata(read_text(entry))
            found.append(
                ListedResource(
                    kind=self.kind,
                    name=entry.stem,
                    consumer_id=spec.consumer_id,
                    scope=scope,
                    path=entry,
                    version=parsed.version,
                    description=parsed.description,
                    metadata={
                        "globs": parsed.document.get_list("globs"),
                        "linked": entry.is_symlink(),
                    },
                )
            )
        return found
