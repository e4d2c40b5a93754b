"""Tests for install-name resolution."""

from dataclasses import dataclass

import pytest

from agent_fabric.naming import (
    NamingStrategy,
    category_path,
    find_name_collisions,
    resolve_name,
    sanitize_name,
)


class TestResolveName:
    """Tests for the naming strategies."""

    def test_smart_disambiguation_joins_all_categories(self):
        """Test the default strategy."""
        assert resolve_name("patterns", ["frontend", "react"]) == "frontend-react-patterns"

    def test_category_prefix_uses_last_category(self):
        """Test that only the innermost category is used."""
        result = resolve_name("patterns", ["frontend", "react"], NamingStrategy.CATEGORY_PREFIX)
        assert result == "react-patterns"

    def test_full_path_prefix_uses_whole_source_path(self):
        """Test that container segments are kept for full-path-prefix."""
        result = resolve_name(
            "patterns",
            ["frontend", "react"],
            NamingStrategy.FULL_PATH_PREFIX,
            source_path="skills/frontend/react",
        )
        assert result == "skills-frontend-react-patterns"

    def test_original_name_ignores_categories(self):
        """Test that original-name only sanitizes."""
        result = resolve_name("my patterns", ["frontend"], NamingStrategy.ORIGINAL_NAME)
        assert result == "my-patterns"

    @pytest.mark.parametrize("strategy", list(NamingStrategy))
    def test_no_categories_leaves_name_unchanged(self, strategy):
        """Test that an uncategorised name is returned as is."""
        assert resolve_name("patterns", [], strategy) == "patterns"

    def test_strategy_accepts_string_value(self):
        """Test that strategies can be given by value."""
        assert resolve_name("x", ["a", "b"], "category-prefix") == "b-x"

    def test_unknown_strategy_lists_choices(self):
        """Test that an unknown strategy raises with the valid values."""
        with pytest.raises(ValueError, match="smart-disambiguation"):
            resolve_name("x", [], "shortest")

    @pytest.mark.parametrize("strategy", list(NamingStrategy))
    @pytest.mark.parametrize(
        "name,categories",
        [
            ("patterns", ["frontend", "react"]),
            ("../evil", ["..", "x/y"]),
            (".hidden", [".dot", "cat"]),
            ("a  b", ["c!d"]),
        ],
    )
    def test_resolution_is_stable_under_sanitize(self, strategy, name, categories):
        """Test that resolved names survive re-sanitization unchanged."""
        resolved = resolve_name(name, categories, strategy, source_path="/".join(categories))
        assert sanitize_name(resolved) == resolved


class TestSanitizeName:
    """Tests for sanitize_name."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("../etc/passwd", "etc-passwd"),
            ("My Skill!", "My-Skill"),
            (".hidden", "hidden"),
            ("a\\b", "a-b"),
            ("--x--", "x"),
            ("-.x", "x"),
            ("v1.2_beta", "v1.2_beta"),
        ],
    )
    def test_sanitize(self, raw, expected):
        assert sanitize_name(raw) == expected


class TestCategoryPath:
    """Tests for category_path."""

    def test_container_and_hidden_segments_are_dropped(self):
        """Test that skills/ and dot directories are not categories."""
        assert category_path("skills/frontend/.cursor/react") == ["frontend", "react"]

    def test_root_has_no_categories(self):
        assert category_path(".") == []


@dataclass
class _Item:
    name: str


class TestCollisions:
    """Tests for find_name_collisions."""

    def test_only_duplicates_are_reported(self):
        """Test that unique names are not part of the result."""
        a, b, c = _Item("x"), _Item("x"), _Item("y")
        assert find_name_collisions([a, b, c]) == {"x": [a, b]}
