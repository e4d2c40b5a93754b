"""Subagents: JSON or YAML agent configs, converted to each consumer's format."""

import json
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from agent_fabric.constants import SUBAGENT_FILE_NAMES
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
from agent_fabric.exceptions import IncompatibleFormatError
from agent_fabric.fetcher.local import iter_source_files
from agent_fabric.handlers.metadata import config_hash, read_text
from agent_fabric.handlers.single_file import SingleFileHandler
from agent_fabric.naming import category_path, resolve_name, sanitize_name

FORMAT_EXTENSIONS = {"json": ".json", "yaml": ".yaml"}
INSTALLED_SUFFIXES = (".json", ".yaml", ".yml")


def format_for(path: Path) -> str:
    return "json" if path.suffix == ".json" else "yaml"


def parse_config(text: str, fmt: str) -> dict[str, Any]:
    """Parse a subagent config.

    Raises:
        ValueError: If the document is malformed or not a mapping
    """
    if fmt == "json":
        data = json.loads(text)
    else:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(f"invalid YAML: {e}") from e
        if data is None:
            return {}
    if not isinstance(data, dict):
        raise ValueError(f"subagent config must be a {fmt.upper()} object")
    return data


def render_yaml(config: dict[str, Any]) -> str:
    """Render a subagent config as YAML.

    Key order is name, description, model, tools, instructions, then the
    remaining keys in their original order. Empty values are dropped.
    """
    ordered = ["name", "description", "model", "tools", "instructions"]
    keys = [k for k in ordered if k in config] + [k for k in config if k not in ordered]
    data = {k: config[k] for k in keys if config[k] not in (None, "", [])}
    return yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)


def render_json(config: dict[str, Any]) -> str:
    return json.dumps(config, indent=2, default=str) + "\n"


class SubagentsHandler(SingleFileHandler):
    """Agent configs discovered from subagent.json / subagent.yaml / subagent.yml."""

    kind = ResourceKind.SUBAGENTS.value
    display_name = "Subagent"
    description = "AI subagent configurations"

    def entry_name(self, name: str, spec: ConsumerSpec) -> str:
        return f"{name}{FORMAT_EXTENSIONS.get(spec.subagent_format, '.json')}"

    def candidate_paths(self, name: str, target: InstallTarget) -> list[Path]:
        directory = self.target_dir(target)
        primary = self.install_path(name, target)
        others = [directory / f"{name}{suffix}" for suffix in INSTALLED_SUFFIXES]
        return [primary] + [p for p in others if p != primary]

    def discover(self, source_root: Path) -> list[DiscoveredItem]:
        source_root = source_root.resolve()
        return [
            self._build_item(source_root, path)
            for path in iter_source_files(source_root)
            if path.name in SUBAGENT_FILE_NAMES
        ]

    def _build_item(self, source_root: Path, path: Path) -> DiscoveredItem:
        raw = path.read_bytes()
        fmt = format_for(path)
        relative = PurePosixPath(path.relative_to(source_root).as_posix())
        agent_dir = relative.parent
        at_root = agent_dir == PurePosixPath(".")

        metadata: dict[str, Any] = {"format": fmt}
        try:
            config = parse_config(raw.decode("utf-8", errors="replace"), fmt)
        except ValueError as e:
            config = {}
            metadata["parseError"] = str(e)

        declared = str(config.get("name") or "")
        original_name = sanitize_name(declared or ("" if at_root else agent_dir.name))
        categories = [] if at_root else category_path(agent_dir.parent)
        name = resolve_name(
            original_name,
            categories,
            self.naming_strategy,
            source_path=None if at_root else agent_dir.parent.as_posix(),
        ) if original_name else ""

        metadata.update(
            {
                "model": config.get("model"),
                "configHash": config_hash(config),
                "config": config,
                "sourcePath": relative.as_posix(),
            }
        )
        return DiscoveredItem(
            kind=self.kind,
            name=name,
            original_name=original_name,
            version=str(config["version"]) if config.get("version") else None,
            description=str(config.get("description") or ""),
            category_path=categories,
            files=[ResourceFile(path=path.name, content=raw, mode=path.stat().st_mode & 0o777)],
            source_file=path,
            metadata=metadata,
        )

    def validate_kind(self, item: DiscoveredItem, result: ValidationResult) -> None:
        super().validate_kind(item, result)
        if item.metadata.get("parseError"):
            result.errors.append(
                f"Subagent config '{item.metadata.get('sourcePath', item.name)}' "
                f"could not be parsed: {item.metadata['parseError']}"
            )
        if not item.metadata.get("format"):
            result.warnings.append(f"Subagent '{item.name}' has no format specified")

    def check_link(self, item: DiscoveredItem, target: InstallTarget) -> None:
        spec = self.consumers.get(target.consumer_id)
        source_format = item.metadata.get("format", "json")
        if source_format != spec.subagent_format:
            raise IncompatibleFormatError(
                f"Cannot link subagent '{item.name}' for {target.consumer_id}: source is "
                f"{source_format} but {spec.display_name} reads {spec.subagent_format}; "
                "use copy mode to convert it"
            )

    def render(self, item: DiscoveredItem, target: InstallTarget) -> bytes:
        spec = self.consumers.get(target.consumer_id)
        source_format = item.metadata.get("format", "json")
        if source_format == spec.subagent_format:
            return item.files[0].content
        config = dict(item.metadata.get("config") or {})
        config["name"] = item.name
        if item.description and not config.get("description"):
            config["description"] = item.description
        if spec.subagent_format == "yaml":
            return render_yaml(config).encode("utf-8")
        return render_json(config).encode("utf-8")

    def scan_dir(self, directory: Path, spec: ConsumerSpec, scope: Scope) -> list[ListedResource]:
        found = []
        for entry in sorted(directory.iterdir()):
            if not entry.is_file() or entry.suffix not in INSTALLED_SUFFIXES:
                continue
            fmt = format_for(entry)
            try:
                config = parse_config(read_text(entry), fmt)
            except ValueError:
                config = {}
            found.append(
                ListedResource(
                    kind=self.kind,
                    name=entry.stem,
                    consumer_id=spec.consumer_id,
                    scope=scope,
                    path=entry,
                    version=str(config["version"]) if config.get("version") else None,
                    description=str(config.get("description") or ""),
                    metadata={
                        "format": fmt,
                        "model": config.get("model"),
                        "linked": entry.is_symlink(),
                    },
                )
            )
        return found
