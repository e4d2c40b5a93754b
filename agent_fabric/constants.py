"""Centralized constants for the agent_fabric package."""

# State file location, relative to the project root
STATE_DIR_NAME = ".agent-fabric"
STATE_FILE_NAME = "state.json"
SCHEMA_VERSION = 2

# Defaults seeded into a fresh state file
DEFAULT_HISTORY_LIMIT = 10
DEFAULT_UPDATE_STRATEGY = "parallel"
DEFAULT_SCOPE = "project"
DEFAULT_NAMING_STRATEGY = "smart-disambiguation"

# Marker files for the built-in resource kinds
SKILL_FILE_NAME = "SKILL.md"
RULE_FILE_EXTENSIONS = (".md", ".mdc")
# Repository docs that sit next to rules but are not rules
RULE_IGNORED_FILES = (
    "SKILL.md",
    "README.md",
    "CHANGELOG.md",
    "CONTRIBUTING.md",
    "CODE_OF_CONDUCT.md",
    "LICENSE.md",
    "SECURITY.md",
)
SUBAGENT_FILE_NAMES = ("subagent.json", "subagent.yaml", "subagent.yml")

# Entries never copied out of a source tree
EXCLUDE_PATTERNS = (
    "node_modules",
    ".git",
    "dist",
    "build",
    "coverage",
    ".DS_Store",
    "*.log",
    ".env",
    ".env.*",
)

# Network endpoints
GITHUB_API_BASE = "https://api.github.com"
GITLAB_API_BASE = "https://gitlab.com/api/v4"
NPM_REGISTRY_URL = "https://registry.npmjs.org"
DEFAULT_REGISTRY_URL = "https://api.skills.sh"
DEFAULT_REF = "main"
USER_AGENT = "agent-fabric"
HTTP_TIMEOUT = 30.0

# Retry policy for network fetches
MAX_RETRIES = 3
RETRY_DELAY = 1.0
RETRY_BACKOFF = 2.0

# Cache for staged sources
CACHE_DIR_NAME = "agent-fabric-cache"
