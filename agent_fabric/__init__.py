"""agent-fabric: sync skills, rules and subagents into coding agents."""

__version__ = "0.3.0"
