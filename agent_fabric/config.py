"""Configuration management for agent-fabric.toml.

Example:
    [settings]
    preferred_consumers = ["claude-code", "cursor"]
    default_scope = "project"
    install_mode = "copy"
    naming_strategy = "smart-disambiguation"
    history_limit = 10
    update_strategy = "parallel"
    cache_dir = "~/.cache/agent-fabric"
    audit = "off"            # "off", "console" or a file path
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli
import tomli_w

from agent_fabric.constants import (
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_NAMING_STRATEGY,
    DEFAULT_SCOPE,
    DEFAULT_UPDATE_STRATEGY,
)
from agent_fabric.exceptions import ConfigNotFoundError, ConfigParseError, ConfigValidationError
from agent_fabric.naming import NamingStrategy
from agent_fabric.state.models import StateConfig

CONFIG_FILENAME = "agent-fabric.toml"

VALID_SCOPES = ("project", "global")
VALID_MODES = ("copy", "link")
VALID_UPDATE_STRATEGIES = ("parallel", "sequential")


@dataclass
class FabricSettings:
    """Settings from agent-fabric.toml, or defaults when there is none."""

    path: Path | None = None
    preferred_consumers: list[str] = field(default_factory=list)
    default_scope: str = DEFAULT_SCOPE
    install_mode: str = "copy"
    naming_strategy: str = DEFAULT_NAMING_STRATEGY
    history_limit: int = DEFAULT_HISTORY_LIMIT
    update_strategy: str = DEFAULT_UPDATE_STRATEGY
    cache_dir: str | None = None
    audit: str = "off"

    @property
    def project_root(self) -> Path | None:
        """Directory holding the config file."""
        return self.path.parent if self.path else None

    @classmethod
    def load(cls, path: Path) -> "FabricSettings":
        """Load settings from agent-fabric.toml.

        Args:
            path: Path to the agent-fabric.toml file

        Returns:
            Parsed FabricSettings

        Raises:
            ConfigNotFoundError: If the file doesn't exist
            ConfigParseError: If the file cannot be parsed
            ConfigValidationError: If a setting is invalid
        """
        if not path.exists():
            raise ConfigNotFoundError(f"Config file not found: {path}")

        try:
            with open(path, "rb") as f:
                data = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigParseError(f"Failed to parse {path}: {e}")

        return cls._from_dict(path, data)

    @classmethod
    def _from_dict(cls, path: Path | None, data: dict[str, Any]) -> "FabricSettings":
        settings_data = data.get("settings", {})
        if not isinstance(settings_data, dict):
            raise ConfigValidationError(
                f"[settings] must be a table, got {type(settings_data).__name__}"
            )

        settings = cls(path=path)
        consumers = settings_data.get("preferred_consumers", [])
        if not isinstance(consumers, list) or not all(isinstance(c, str) for c in consumers):
            raise ConfigValidationError("preferred_consumers must be a list of consumer ids")
        settings.preferred_consumers = consumers

        settings.default_scope = _choice(settings_data, "default_scope", DEFAULT_SCOPE, VALID_SCOPES)
        settings.install_mode = _choice(settings_data, "install_mode", "copy", VALID_MODES)
        settings.update_strategy = _choice(
            settings_data, "update_strategy", DEFAULT_UPDATE_STRATEGY, VALID_UPDATE_STRATEGIES
        )
        settings.naming_strategy = _choice(
            settings_data,
            "naming_strategy",
            DEFAULT_NAMING_STRATEGY,
            tuple(s.value for s in NamingStrategy),
        )

        history_limit = settings_data.get("history_limit", DEFAULT_HISTORY_LIMIT)
        if not isinstance(history_limit, int) or isinstance(history_limit, bool) or history_limit < 0:
            raise ConfigValidationError(
                f"history_limit must be a non-negative integer, got {history_limit!r}"
            )
        settings.history_limit = history_limit

        cache_dir = settings_data.get("cache_dir")
        if cache_dir is not None and not isinstance(cache_dir, str):
            raise ConfigValidationError("cache_dir must be a string path")
        settings.cache_dir = cache_dir

        audit = settings_data.get("audit", "off")
        if not isinstance(audit, str) or not audit:
            raise ConfigValidationError("audit must be 'off', 'console' or a file path")
        settings.audit = audit

        return settings

    def save(self) -> None:
        """Save settings to agent-fabric.toml."""
        if self.path is None:
            raise ConfigNotFoundError("Settings have no file path to save to")
        with open(self.path, "wb") as f:
            tomli_w.dump(self._to_dict(), f)

    def _to_dict(self) -> dict[str, Any]:
        settings: dict[str, Any] = {
            "preferred_consumers": list(self.preferred_consumers),
            "default_scope": self.default_scope,
            "install_mode": self.install_mode,
            "naming_strategy": self.naming_strategy,
            "history_limit": self.history_limit,
            "update_strategy": self.update_strategy,
            "audit": self.audit,
        }
        if self.cache_dir:
            settings["cache_dir"] = self.cache_dir
        return {"settings": settings}

    def resolved_cache_dir(self) -> Path | None:
        if not self.cache_dir:
            return None
        cache = Path(self.cache_dir).expanduser()
        if not cache.is_absolute() and self.project_root is not None:
            cache = self.project_root / cache
        return cache

    def state_config(self) -> StateConfig:
        """Config block seeded into a new state file."""
        return StateConfig(
            preferred_consumers=list(self.preferred_consumers),
            default_scope=self.default_scope,
            history_limit=self.history_limit,
            update_strategy=self.update_strategy,
            naming_strategy=self.naming_strategy,
        )


def _choice(data: dict[str, Any], key: str, default: str, choices: tuple[str, ...]) -> str:
    value = data.get(key, default)
    if value not in choices:
        raise ConfigValidationError(
            f"{key} must be one of {', '.join(choices)}, got {value!r}"
        )
    return value


def find_config(start_path: Path | None = None) -> Path | None:
    """Find agent-fabric.toml by walking up the directory tree.

    Args:
        start_path: Starting directory (defaults to current working directory)

    Returns:
        Path to agent-fabric.toml if found, None otherwise
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()

    while True:
        config_path = current / CONFIG_FILENAME
        if config_path.exists():
            return config_path

        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_settings(start_path: Path | None = None) -> FabricSettings:
    """Load the nearest agent-fabric.toml, or defaults when there is none."""
    path = find_config(start_path)
    if path is None:
        return FabricSettings()
    return FabricSettings.load(path)


def create_config(directory: Path, settings: FabricSettings | None = None) -> FabricSettings:
    """Write a new agent-fabric.toml into directory.

    Raises:
        ConfigValidationError: If the file already exists
    """
    path = directory / CONFIG_FILENAME
    if path.exists():
        raise ConfigValidationError(f"{path} already exists")
    settings = settings or FabricSettings()
    settings.path = path
    settings.save()
    return settings
