"""Tests for agent-fabric.toml handling."""

from pathlib import Path

import pytest

from agent_fabric.config import (
    CONFIG_FILENAME,
    FabricSettings,
    create_config,
    find_config,
    load_settings,
)
from agent_fabric.exceptions import ConfigNotFoundError, ConfigParseError, ConfigValidationError


class TestLoad:
    """Tests for FabricSettings.load."""

    def test_full_settings(self, tmp_path: Path):
        path = tmp_path / CONFIG_FILENAME
        path.write_text(
            "[settings]\n"
            'preferred_consumers = ["cursor", "claude-code"]\n'
            'default_scope = "global"\n'
            'install_mode = "link"\n'
            'naming_strategy = "category-prefix"\n'
            "history_limit = 4\n"
            'cache_dir = ".cache/fabric"\n'
            'audit = "console"\n'
        )

        settings = FabricSettings.load(path)

        assert settings.preferred_consumers == ["cursor", "claude-code"]
        assert settings.default_scope == "global"
        assert settings.install_mode == "link"
        assert settings.naming_strategy == "category-prefix"
        assert settings.history_limit == 4
        assert settings.resolved_cache_dir() == tmp_path / ".cache" / "fabric"
        assert settings.audit == "console"
        assert settings.project_root == tmp_path

    def test_empty_file_uses_defaults(self, tmp_path: Path):
        path = tmp_path / CONFIG_FILENAME
        path.write_text("")
        settings = FabricSettings.load(path)
        assert settings.default_scope == "project"
        assert settings.naming_strategy == "smart-disambiguation"
        assert settings.history_limit == 10
        assert settings.resolved_cache_dir() is None

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigNotFoundError):
            FabricSettings.load(tmp_path / CONFIG_FILENAME)

    def test_invalid_toml(self, tmp_path: Path):
        path = tmp_path / CONFIG_FILENAME
        path.write_text("[settings\n")
        with pytest.raises(ConfigParseError):
            FabricSettings.load(path)

    @pytest.mark.parametrize(
        "line",
        [
            'default_scope = "everywhere"',
            'install_mode = "hardlink"',
            'naming_strategy = "shortest"',
            "history_limit = -1",
            "history_limit = true",
            'preferred_consumers = "cursor"',
        ],
    )
    def test_invalid_values(self, tmp_path: Path, line):
        path = tmp_path / CONFIG_FILENAME
        path.write_text(f"[settings]\n{line}\n")
        with pytest.raises(ConfigValidationError):
            FabricSettings.load(path)


class TestFindAndCreate:
    """Tests for locating and writing config files."""

    def test_find_walks_up(self, tmp_path: Path):
        (tmp_path / CONFIG_FILENAME).write_text("")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config(nested) == (tmp_path / CONFIG_FILENAME).resolve()

    def test_create_and_reload(self, tmp_path: Path):
        settings = FabricSettings(preferred_consumers=["codex"], history_limit=2)
        create_config(tmp_path, settings)

        reloaded = load_settings(tmp_path)
        assert reloaded.preferred_consumers == ["codex"]
        assert reloaded.history_limit == 2
        assert reloaded.state_config().history_limit == 2

    def test_create_refuses_existing(self, tmp_path: Path):
        create_config(tmp_path)
        with pytest.raises(ConfigValidationError):
            create_config(tmp_path)
