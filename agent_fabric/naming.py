"""Install-name resolution for discovered resources.

Two resources called `patterns` under `frontend/react/` and `backend/api/`
would collide in a consumer's flat skills directory. The strategies here
fold the category path into the installed name to keep them apart.
"""

import re
from collections import defaultdict
from enum import Enum
from pathlib import PurePosixPath
from typing import Iterable, Protocol

# Directory names that only group resources and carry no category meaning
CONTAINER_SEGMENTS = frozenset({"skills", "rules", "agents", "subagents", "resources"})

_SEPARATORS = re.compile(r"[\\/]+")
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_REPEATED_DASHES = re.compile(r"-{2,}")


class NamingStrategy(Enum):
    """How an install name is derived from a name and its category path."""

    SMART_DISAMBIGUATION = "smart-disambiguation"
    FULL_PATH_PREFIX = "full-path-prefix"
    CATEGORY_PREFIX = "category-prefix"
    ORIGINAL_NAME = "original-name"

    @classmethod
    def from_value(cls, value: "str | NamingStrategy") -> "NamingStrategy":
        """Look up a strategy by value, raising ValueError with the valid choices."""
        if isinstance(value, cls):
            return value
        for strategy in cls:
            if strategy.value == value:
                return strategy
        choices = ", ".join(s.value for s in cls)
        raise ValueError(f"Unknown naming strategy '{value}'. Expected one of: {choices}")


def sanitize_name(name: str) -> str:
    """Make a name safe to use as a single filesystem path segment.

    Path separators become dashes, leading dots are stripped, anything
    outside [A-Za-z0-9._-] becomes a dash, dash runs collapse and edge
    dashes are trimmed. Applying it twice gives the same result.

    Examples:
        >>> sanitize_name("../etc/passwd")
        'etc-passwd'
        >>> sanitize_name("My Skill!")
        'My-Skill'
    """
    result = _SEPARATORS.sub("-", name)
    result = result.lstrip(".")
    result = _UNSAFE_CHARS.sub("-", result)
    result = _REPEATED_DASHES.sub("-", result)
    result = result.strip("-")
    # Trimming dashes can expose a leading dot again ("-.x")
    while result.startswith("."):
        result = result.lstrip(".").strip("-")
    return result


def category_path(relative_dir: str | PurePosixPath) -> list[str]:
    """Category segments for an item directory relative to the source root.

    Container directories such as `skills/` and hidden consumer directories
    such as `.cursor/` are dropped; the item's own directory is excluded.

    Args:
        relative_dir: Directory holding the item, relative to the source root
            (for multi-file items this is the item directory itself)

    Returns:
        Ordered list of category segments
    """
    parts = [p for p in PurePosixPath(relative_dir).parts if p not in ("", ".")]
    return [p for p in parts if p not in CONTAINER_SEGMENTS and not p.startswith(".")]


def resolve_name(
    name: str,
    categories: Iterable[str],
    strategy: NamingStrategy | str = NamingStrategy.SMART_DISAMBIGUATION,
    source_path: str | None = None,
) -> str:
    """Resolve the installed name for a resource.

    Args:
        name: Original resource name
        categories: Trimmed category path between the source root and the item
        strategy: Naming strategy to apply
        source_path: Full relative path of the item's parent directory,
            only consulted by full-path-prefix

    Returns:
        Sanitized install name

    Examples:
        >>> resolve_name("patterns", ["frontend", "react"])
        'frontend-react-patterns'
        >>> resolve_name("patterns", ["frontend", "react"], "category-prefix")
        'react-patterns'
    """
    strategy = NamingStrategy.from_value(strategy)
    cats = [c for c in categories if c]

    if strategy == NamingStrategy.ORIGINAL_NAME:
        prefix: list[str] = []
    elif strategy == NamingStrategy.CATEGORY_PREFIX:
        prefix = cats[-1:]
    elif strategy == NamingStrategy.FULL_PATH_PREFIX and source_path is not None:
        prefix = [p for p in PurePosixPath(source_path).parts if p not in ("", ".")]
    else:
        prefix = cats

    return sanitize_name("-".join([*prefix, name]))


class _Named(Protocol):
    name: str


def find_name_collisions(items: Iterable[_Named]) -> dict[str, list[_Named]]:
    """Group items that resolved to the same install name.

    Returns:
        Mapping of colliding name to every item that claims it; empty when
        all names in the batch are unique
    """
    by_name: dict[str, list[_Named]] = defaultdict(list)
    for item in items:
        by_name[item.name].append(item)
    return {name: group for name, group in by_name.items() if len(group) > 1}
