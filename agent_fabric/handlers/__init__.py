"""Built-in resource handlers."""

from pathlib import Path

from agent_fabric.audit import AuditTrail
from agent_fabric.core.registry import ConsumerRegistry, HandlerRegistry
from agent_fabric.handlers.base import BaseHandler
from agent_fabric.handlers.rules import RulesHandler
from agent_fabric.handlers.skills import SkillsHandler
from agent_fabric.handlers.subagents import SubagentsHandler
from agent_fabric.naming import NamingStrategy

BUILT_IN_HANDLERS = (SkillsHandler, RulesHandler, SubagentsHandler)


def register_builtin_handlers(
    registry: HandlerRegistry,
    consumers: ConsumerRegistry,
    project_root: Path,
    audit: AuditTrail | None = None,
    global_root: Path | None = None,
    naming_strategy: NamingStrategy | str = NamingStrategy.SMART_DISAMBIGUATION,
) -> HandlerRegistry:
    """Register skills, rules and subagents handlers sharing one audit trail."""
    for handler_class in BUILT_IN_HANDLERS:
        registry.register(
            handler_class(
                consumers,
                project_root,
                audit=audit,
                global_root=global_root,
                naming_strategy=naming_strategy,
            )
        )
    return registry


__all__ = [
    "BaseHandler",
    "RulesHandler",
    "SkillsHandler",
    "SubagentsHandler",
    "BUILT_IN_HANDLERS",
    "register_builtin_handlers",
]
