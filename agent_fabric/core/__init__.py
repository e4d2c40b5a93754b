"""Core abstractions for agent_fabric.

- ResourceKind, Scope, InstallMode: enums used throughout
- DiscoveredItem, InstallTarget and the report types: lifecycle values
- ConsumerSpec: how a coding agent lays out its resource directories
- ResourceHandler: the contract each resource kind implements
- ConsumerRegistry, HandlerRegistry: instance-based lookups
"""

from agent_fabric.core.consumer import ConsumerSpec
from agent_fabric.core.handler import ResourceHandler
from agent_fabric.core.registry import ConsumerRegistry, HandlerRegistry
from agent_fabric.core.resource import (
    BUILT_IN_KINDS,
    DiscoveredItem,
    InstallMode,
    InstallReport,
    InstallTarget,
    ListedResource,
    ListError,
    ListResult,
    RemoveReport,
    ResourceFile,
    ResourceKind,
    Scope,
    TargetResult,
    ValidationResult,
)
from agent_fabric.core.specs import BUILT_IN_CONSUMERS

__all__ = [
    "ConsumerSpec",
    "ResourceHandler",
    "ConsumerRegistry",
    "HandlerRegistry",
    "BUILT_IN_KINDS",
    "DiscoveredItem",
    "InstallMode",
    "InstallReport",
    "InstallTarget",
    "ListedResource",
    "ListError",
    "ListResult",
    "RemoveReport",
    "ResourceFile",
    "ResourceKind",
    "Scope",
    "TargetResult",
    "ValidationResult",
    "BUILT_IN_CONSUMERS",
]
