"""Versioned, history-tracked state store.

The state file lives at `<project>/.agent-fabric/state.json`. Every
mutating call is a full load, mutate, save cycle with an atomic write;
nothing is cached between calls.

Concurrent processes writing the same state file are not supported: there
is no lock, and the last save wins.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from agent_fabric.audit import AuditTrail, utc_now
from agent_fabric.constants import SCHEMA_VERSION, STATE_DIR_NAME, STATE_FILE_NAME
from agent_fabric.exceptions import (
    AlreadyExistsError,
    NoHistoryError,
    NotFoundError,
    SchemaVersionMismatch,
    StateFileError,
)
from agent_fabric.state.models import (
    InstalledRecord,
    InstallLocation,
    PluginRecord,
    StateConfig,
    StateFile,
)

logger = logging.getLogger(__name__)


def state_path_for(project_root: Path) -> Path:
    return project_root / STATE_DIR_NAME / STATE_FILE_NAME


class StateStore:
    """Load and mutate the persisted state.

    Args:
        path: State file path
        audit: Audit trail for state mutations
        default_config: Config written when the file is first created
    """

    def __init__(
        self,
        path: Path,
        audit: AuditTrail | None = None,
        default_config: StateConfig | None = None,
    ) -> None:
        self.path = path
        self.audit = audit or AuditTrail()
        self.default_config = default_config

    @classmethod
    def for_project(cls, project_root: Path, **kwargs) -> "StateStore":
        return cls(state_path_for(project_root), **kwargs)

    def exists(self) -> bool:
        return self.path.exists()

    # --- Persistence --------------------------------------------------------

    def load(self) -> StateFile:
        """Load the state file, creating it with defaults when missing.

        Raises:
            SchemaVersionMismatch: If the file has a different schemaVersion;
                the file is left untouched
            StateFileError: If the file can't be read or parsed
        """
        if not self.path.exists():
            state = StateFile(config=self._fresh_config())
            self.save(state)
            logger.debug("Initialized state file at %s", self.path)
            return state

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StateFileError(f"State file {self.path} is not valid JSON: {e}")
        except OSError as e:
            raise StateFileError(f"Failed to read state file {self.path}: {e}")

        if not isinstance(data, dict):
            raise StateFileError(f"State file {self.path} must contain a JSON object")
        found = data.get("schemaVersion")
        if found != SCHEMA_VERSION:
            raise SchemaVersionMismatch(found, SCHEMA_VERSION)

        try:
            return StateFile.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StateFileError(f"State file {self.path} is malformed: {e}")

    def save(self, state: StateFile) -> None:
        """Write the state atomically, stamping lastUpdated."""
        state.schema_version = SCHEMA_VERSION
        state.last_updated = utc_now()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(state.to_dict(), indent=2) + "\n"

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _fresh_config(self) -> StateConfig:
        if self.default_config is None:
            return StateConfig()
        return StateConfig.from_dict(self.default_config.to_dict())

    # --- Resources ----------------------------------------------------------

    def add(self, record: InstalledRecord) -> InstalledRecord:
        """Insert or update a resource record.

        When a record with the same name exists, its current version, origin
        and metadata are pushed onto the front of the history, the install
        locations are merged, and history is trimmed to the configured limit.

        Raises:
            AlreadyExistsError: If the name is taken by a different kind
        """
        state = self.load()
        limit = max(state.config.history_limit, 0)
        existing = state.resources.get(record.name)

        if existing is not None:
            if existing.kind != record.kind:
                raise AlreadyExistsError(
                    f"'{record.name}' is already installed as {existing.kind}, "
                    f"cannot record it as {record.kind}"
                )
            record.installed_at = existing.installed_at
            record.history = [existing.snapshot()] + existing.history
            merged = list(existing.installed_for)
            keys = {loc.key for loc in merged}
            for location in record.installed_for:
                if location.key not in keys:
                    merged.append(location)
                    keys.add(location.key)
            record.installed_for = merged

        record.history = record.history[:limit]
        state.resources[record.name] = record
        self.save(state)

        self.audit.success(
            "state.add",
            record.name,
            record.kind,
            target_path=self.path,
            details={"version": record.version, "historyLength": len(record.history)},
        )
        return record

    def get(self, name: str) -> InstalledRecord | None:
        return self.load().resources.get(name)

    def require(self, name: str) -> InstalledRecord:
        """Like get, but raises NotFoundError when absent."""
        record = self.get(name)
        if record is None:
            raise NotFoundError(f"Resource '{name}' is not installed")
        return record

    def remove(self, name: str) -> InstalledRecord:
        """Delete a record.

        Raises:
            NotFoundError: If no record has the name
        """
        state = self.load()
        record = state.resources.pop(name, None)
        if record is None:
            raise NotFoundError(f"Resource '{name}' is not installed")
        self.save(state)
        self.audit.success("state.remove", name, record.kind, target_path=self.path)
        return record

    def remove_location(self, name: str, consumer_id: str, scope: str) -> InstalledRecord | None:
        """Drop install locations for one consumer and scope.

        The record itself is deleted once no locations remain.

        Returns:
            The updated record, or None if it was deleted

        Raises:
            NotFoundError: If no record has the name
        """
        state = self.load()
        record = state.resources.get(name)
        if record is None:
            raise NotFoundError(f"Resource '{name}' is not installed")
        record.installed_for = [
            loc for loc in record.installed_for
            if not (loc.consumer_id == consumer_id and loc.scope == scope)
        ]
        if not record.installed_for:
            del state.resources[name]
            self.save(state)
            self.audit.success("state.remove", name, record.kind, target_path=self.path)
            return None
        record.updated_at = utc_now()
        self.save(state)
        return record

    def rollback(self, name: str) -> InstalledRecord:
        """Restore the most recent history entry.

        The current state is pushed onto the history in its place, so a
        second rollback undoes the first.

        Raises:
            NotFoundError: If no record has the name
            NoHistoryError: If the record has no history
        """
        state = self.load()
        record = state.resources.get(name)
        if record is None:
            raise NotFoundError(f"Resource '{name}' is not installed")
        if not record.history:
            raise NoHistoryError(f"Resource '{name}' has no history to roll back to")

        previous, *rest = record.history
        current = record.snapshot()
        record.history = ([current] + rest)[: max(state.config.history_limit, 1)]
        record.version = previous.version
        record.origin = previous.origin
        record.origin_url = previous.origin_url
        record.updated_at = previous.updated_at
        record.metadata = previous.metadata
        self.save(state)

        self.audit.success(
            "state.rollback",
            name,
            record.kind,
            target_path=self.path,
            details={"fromVersion": current.version, "toVersion": previous.version},
        )
        return record

    def all_resources(self) -> list[InstalledRecord]:
        return list(self.load().resources.values())

    def resources_by_kind(self, kind: str) -> list[InstalledRecord]:
        return [r for r in self.all_resources() if r.kind == kind]

    def resources_by_handler(self, handler_id: str) -> list[InstalledRecord]:
        return [r for r in self.all_resources() if r.handler_id == handler_id]

    def resources_for_consumer(self, consumer_id: str) -> list[InstalledRecord]:
        return [
            r for r in self.all_resources()
            if any(loc.consumer_id == consumer_id for loc in r.installed_for)
        ]

    def locations(self, name: str) -> list[InstallLocation]:
        return list(self.require(name).installed_for)

    # --- Plugins ------------------------------------------------------------

    def add_plugin(self, handler_id: str, plugin: PluginRecord) -> None:
        state = self.load()
        state.plugins[handler_id] = plugin
        self.save(state)
        self.audit.success("plugin.add", handler_id, "plugin", target_path=self.path)

    def get_plugin(self, handler_id: str) -> PluginRecord | None:
        return self.load().plugins.get(handler_id)

    def list_plugins(self) -> dict[str, PluginRecord]:
        return dict(self.load().plugins)

    def remove_plugin(self, handler_id: str) -> PluginRecord:
        """Delete a plugin record.

        Raises:
            NotFoundError: If no plugin has the id
        """
        state = self.load()
        plugin = state.plugins.pop(handler_id, None)
        if plugin is None:
            raise NotFoundError(f"Plugin '{handler_id}' is not installed")
        self.save(state)
        self.audit.success("plugin.remove", handler_id, "plugin", target_path=self.path)
        return plugin

    def set_plugin_enabled(self, handler_id: str, enabled: bool) -> PluginRecord:
        state = self.load()
        plugin = state.plugins.get(handler_id)
        if plugin is None:
            raise NotFoundError(f"Plugin '{handler_id}' is not installed")
        plugin.enabled = enabled
        self.save(state)
        return plugin

    # --- Config -------------------------------------------------------------

    def get_config(self) -> StateConfig:
        return self.load().config

    def update_config(self, **changes) -> StateConfig:
        """Update config fields by attribute name, e.g. history_limit=5.

        Raises:
            ValueError: For unknown field names
        """
        state = self.load()
        for key, value in changes.items():
            if not hasattr(state.config, key):
                raise ValueError(f"Unknown config field '{key}'")
            setattr(state.config, key, value)
        self.save(state)
        return state.config
