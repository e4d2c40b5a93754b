"""Persisted state models.

State file format (JSON, camelCase keys):
{
  "schemaVersion": 2,
  "lastUpdated": "2026-01-01T12:00:00+00:00",
  "config": {"preferredConsumers": [...], "defaultScope": "project", ...},
  "plugins": {"<handlerId>": {"version": ..., "installedAt": ..., ...}},
  "resources": {"<name>": {"kind": "skills", "history": [...], ...}}
}

Kind-specific metadata is a tagged union keyed by the record's kind.
Every read and write goes through METADATA_TYPES; kinds without a
dedicated variant use PluginResourceMetadata, so no kind loses fields.
"""

from dataclasses import dataclass, field
from typing import Any

from agent_fabric.constants import (
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_NAMING_STRATEGY,
    DEFAULT_SCOPE,
    DEFAULT_UPDATE_STRATEGY,
    SCHEMA_VERSION,
)
from agent_fabric.core.resource import ResourceKind


@dataclass
class SkillMetadata:
    original_name: str = ""
    installed_name: str = ""
    categories: list[str] = field(default_factory=list)
    naming_strategy: str = DEFAULT_NAMING_STRATEGY
    source_path: str = ""
    folder_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "originalName": self.original_name,
            "installedName": self.installed_name,
            "categories": list(self.categories),
            "namingStrategy": self.naming_strategy,
            "sourcePath": self.source_path,
            "skillFolderHash": self.folder_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SkillMetadata":
        return cls(
            original_name=data.get("originalName", ""),
            installed_name=data.get("installedName", ""),
            categories=list(data.get("categories", [])),
            naming_strategy=data.get("namingStrategy", DEFAULT_NAMING_STRATEGY),
            source_path=data.get("sourcePath", ""),
            folder_hash=data.get("skillFolderHash", data.get("folderHash")),
        )


@dataclass
class RuleMetadata:
    original_name: str = ""
    categories: list[str] = field(default_factory=list)
    naming_strategy: str = DEFAULT_NAMING_STRATEGY
    globs: list[str] = field(default_factory=list)
    source_path: str = ""
    config_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "originalName": self.original_name,
            "categories": list(self.categories),
            "namingStrategy": self.naming_strategy,
            "globs": list(self.globs),
            "sourcePath": self.source_path,
            "configHash": self.config_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuleMetadata":
        return cls(
            original_name=data.get("originalName", ""),
            categories=list(data.get("categories", [])),
            naming_strategy=data.get("namingStrategy", DEFAULT_NAMING_STRATEGY),
            globs=list(data.get("globs") or []),
            source_path=data.get("sourcePath", ""),
            config_hash=data.get("configHash"),
        )


@dataclass
class SubagentMetadata:
    model: str | None = None
    format: str = "json"
    config_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"model": self.model, "format": self.format, "configHash": self.config_hash}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SubagentMetadata":
        return cls(
            model=data.get("model"),
            format=data.get("format", "json"),
            config_hash=data.get("configHash"),
        )


@dataclass
class PluginResourceMetadata:
    """Opaque metadata for kinds provided by third-party handlers."""

    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return dict(self.data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PluginResourceMetadata":
        return cls(data=dict(data))


ResourceMetadata = SkillMetadata | RuleMetadata | SubagentMetadata | PluginResourceMetadata

METADATA_TYPES: dict[str, type] = {
    ResourceKind.SKILLS.value: SkillMetadata,
    ResourceKind.RULES.value: RuleMetadata,
    ResourceKind.SUBAGENTS.value: SubagentMetadata,
}


def metadata_type(kind: str) -> type:
    return METADATA_TYPES.get(kind, PluginResourceMetadata)


def metadata_from_dict(kind: str, data: dict[str, Any] | None) -> ResourceMetadata:
    """Build the metadata variant for a kind from its JSON form."""
    return metadata_type(kind).from_dict(data or {})


def metadata_from_discovery(kind: str, discovered: dict[str, Any]) -> ResourceMetadata:
    """Build the metadata variant for a kind from a DiscoveredItem's metadata.

    Discovery uses the same camelCase keys as the state file. Built-in
    variants drop the transient extras; plugin metadata keeps everything.
    """
    return metadata_type(kind).from_dict(discovered)


@dataclass
class InstallLocation:
    consumer_id: str
    scope: str
    path: str

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.consumer_id, self.scope, self.path)

    def to_dict(self) -> dict[str, Any]:
        return {"consumerId": self.consumer_id, "scope": self.scope, "path": self.path}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InstallLocation":
        return cls(
            consumer_id=data["consumerId"],
            scope=data.get("scope", DEFAULT_SCOPE),
            path=data.get("path", ""),
        )


@dataclass
class HistoryEntry:
    """Snapshot of a record before it was replaced."""

    version: str | None
    origin: str
    origin_url: str
    updated_at: str
    metadata: ResourceMetadata | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "origin": self.origin,
            "originUrl": self.origin_url,
            "updatedAt": self.updated_at,
            "metadata": self.metadata.to_dict() if self.metadata is not None else None,
        }

    @classmethod
    def from_dict(cls, kind: str, data: dict[str, Any]) -> "HistoryEntry":
        raw_metadata = data.get("metadata")
        return cls(
            version=data.get("version"),
            origin=data.get("origin", ""),
            origin_url=data.get("originUrl", ""),
            updated_at=data.get("updatedAt", ""),
            metadata=metadata_from_dict(kind, raw_metadata) if raw_metadata is not None else None,
        )


@dataclass
class InstalledRecord:
    """A resource as tracked by the state store."""

    kind: str
    handler_id: str
    name: str
    origin: str
    origin_kind: str
    origin_url: str
    installed_at: str
    updated_at: str
    version: str | None = None
    description: str = ""
    installed_for: list[InstallLocation] = field(default_factory=list)
    history: list[HistoryEntry] = field(default_factory=list)
    metadata: ResourceMetadata | None = None

    def snapshot(self) -> HistoryEntry:
        """The record's current version/origin/metadata as a history entry."""
        return HistoryEntry(
            version=self.version,
            origin=self.origin,
            origin_url=self.origin_url,
            updated_at=self.updated_at,
            metadata=self.metadata,
        )

    def add_location(self, location: InstallLocation) -> bool:
        """Add a location unless the same (consumer, scope, path) is present."""
        if any(existing.key == location.key for existing in self.installed_for):
            return False
        self.installed_for.append(location)
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "handlerId": self.handler_id,
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "origin": self.origin,
            "originKind": self.origin_kind,
            "originUrl": self.origin_url,
            "installedAt": self.installed_at,
            "updatedAt": self.updated_at,
            "installedFor": [loc.to_dict() for loc in self.installed_for],
            "history": [entry.to_dict() for entry in self.history],
            "metadata": self.metadata.to_dict() if self.metadata is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InstalledRecord":
        kind = data["kind"]
        raw_metadata = data.get("metadata")
        return cls(
            kind=kind,
            handler_id=data.get("handlerId", kind),
            name=data["name"],
            version=data.get("version"),
            description=data.get("description", ""),
            origin=data.get("origin", ""),
            origin_kind=data.get("originKind", ""),
            origin_url=data.get("originUrl", ""),
            installed_at=data.get("installedAt", ""),
            updated_at=data.get("updatedAt", ""),
            installed_for=[InstallLocation.from_dict(loc) for loc in data.get("installedFor", [])],
            history=[HistoryEntry.from_dict(kind, entry) for entry in data.get("history", [])],
            metadata=metadata_from_dict(kind, raw_metadata) if raw_metadata is not None else None,
        )


@dataclass
class PluginRecord:
    version: str
    installed_at: str
    enabled: bool = True
    location: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "installedAt": self.installed_at,
            "enabled": self.enabled,
            "location": self.location,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PluginRecord":
        return cls(
            version=data.get("version", ""),
            installed_at=data.get("installedAt", ""),
            enabled=data.get("enabled", True),
            location=data.get("location", ""),
        )


@dataclass
class StateConfig:
    preferred_consumers: list[str] = field(default_factory=list)
    default_scope: str = DEFAULT_SCOPE
    history_limit: int = DEFAULT_HISTORY_LIMIT
    update_strategy: str = DEFAULT_UPDATE_STRATEGY
    naming_strategy: str = DEFAULT_NAMING_STRATEGY

    def to_dict(self) -> dict[str, Any]:
        return {
            "preferredConsumers": list(self.preferred_consumers),
            "defaultScope": self.default_scope,
            "historyLimit": self.history_limit,
            "updateStrategy": self.update_strategy,
            "namingStrategy": self.naming_strategy,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StateConfig":
        return cls(
            preferred_consumers=list(data.get("preferredConsumers", [])),
            default_scope=data.get("defaultScope", DEFAULT_SCOPE),
            history_limit=int(data.get("historyLimit", DEFAULT_HISTORY_LIMIT)),
            update_strategy=data.get("updateStrategy", DEFAULT_UPDATE_STRATEGY),
            naming_strategy=data.get("namingStrategy", DEFAULT_NAMING_STRATEGY),
        )


@dataclass
class StateFile:
    """Root of the persisted state."""

    schema_version: int = SCHEMA_VERSION
    last_updated: str = ""
    config: StateConfig = field(default_factory=StateConfig)
    plugins: dict[str, PluginRecord] = field(default_factory=dict)
    resources: dict[str, InstalledRecord] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "lastUpdated": self.last_updated,
            "config": self.config.to_dict(),
            "plugins": {hid: plugin.to_dict() for hid, plugin in self.plugins.items()},
            "resources": {name: record.to_dict() for name, record in self.resources.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StateFile":
        return cls(
            schema_version=data["schemaVersion"],
            last_updated=data.get("lastUpdated", ""),
            config=StateConfig.from_dict(data.get("config", {})),
            plugins={
                hid: PluginRecord.from_dict(plugin)
                for hid, plugin in data.get("plugins", {}).items()
            },
            resources={
                name: InstalledRecord.from_dict(record)
                for name, record in data.get("resources", {}).items()
            },
        )
