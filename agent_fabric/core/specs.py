"""Built-in consumer specifications."""

from agent_fabric.core.consumer import ConsumerSpec
from agent_fabric.core.resource import ResourceKind

SKILLS = ResourceKind.SKILLS.value
RULES = ResourceKind.RULES.value
SUBAGENTS = ResourceKind.SUBAGENTS.value


CLAUDE_CODE_SPEC = ConsumerSpec(
    consumer_id="claude-code",
    display_name="Claude Code",
    config_dir=".claude",
    global_config_dir="~/.claude",
    resource_dirs={SKILLS: "skills", RULES: "rules", SUBAGENTS: "agents"},
    subagent_format="yaml",
    detection_markers=(".claude", "CLAUDE.md"),
)

# Cursor's own skills directory is reserved, so fabric installs get their own
CURSOR_SPEC = ConsumerSpec(
    consumer_id="cursor",
    display_name="Cursor",
    config_dir=".cursor",
    global_config_dir="~/.cursor",
    resource_dirs={SKILLS: "fabric-skills", RULES: "rules", SUBAGENTS: "agents"},
    rule_extension=".mdc",
    detection_markers=(".cursor", ".cursorrules"),
)

CODEX_SPEC = ConsumerSpec(
    consumer_id="codex",
    display_name="Codex",
    config_dir=".codex",
    global_config_dir="~/.codex",
    resource_dirs={SKILLS: "skills", RULES: "rules", SUBAGENTS: "agents"},
    detection_markers=(".codex",),
)

WINDSURF_SPEC = ConsumerSpec(
    consumer_id="windsurf",
    display_name="Windsurf",
    config_dir=".windsurf",
    global_config_dir="~/.windsurf",
    resource_dirs={SKILLS: "fabric-skills", RULES: "rules", SUBAGENTS: "agents"},
    detection_markers=(".windsurf",),
)

AIDER_SPEC = ConsumerSpec(
    consumer_id="aider",
    display_name="Aider",
    config_dir=".aider",
    global_config_dir="~/.aider",
    resource_dirs={SKILLS: "skills", RULES: "rules", SUBAGENTS: "agents"},
    detection_markers=(".aider",),
)

CONTINUE_SPEC = ConsumerSpec(
    consumer_id="continue",
    display_name="Continue",
    config_dir=".continue",
    global_config_dir="~/.continue",
    resource_dirs={SKILLS: "skills", RULES: "rules", SUBAGENTS: "agents"},
    detection_markers=(".continue",),
)

BUILT_IN_CONSUMERS = (
    CLAUDE_CODE_SPEC,
    CURSOR_SPEC,
    CODEX_SPEC,
    WINDSURF_SPEC,
    AIDER_SPEC,
    CONTINUE_SPEC,
)

DEFAULT_CONSUMER_ID = CLAUDE_CODE_SPEC.consumer_id
