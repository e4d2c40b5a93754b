"""Persisted install state: models and the versioned store."""

from agent_fabric.state.models import (
    HistoryEntry,
    InstalledRecord,
    InstallLocation,
    PluginRecord,
    PluginResourceMetadata,
    RuleMetadata,
    SkillMetadata,
    StateConfig,
    StateFile,
    SubagentMetadata,
    metadata_from_discovery,
    metadata_from_dict,
)
from agent_fabric.state.store import StateStore, state_path_for

__all__ = [
    "HistoryEntry",
    "InstalledRecord",
    "InstallLocation",
    "PluginRecord",
    "PluginResourceMetadata",
    "RuleMetadata",
    "SkillMetadata",
    "StateConfig",
    "StateFile",
    "SubagentMetadata",
    "metadata_from_discovery",
    "metadata_from_dict",
    "StateStore",
    "state_path_for",
]
