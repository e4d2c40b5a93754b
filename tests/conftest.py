"""Test configuration and fixtures."""

import io
import tarfile
from pathlib import Path

import pytest

from agent_fabric.audit import AuditTrail, MemoryAuditSink
from agent_fabric.core.registry import ConsumerRegistry, HandlerRegistry
from agent_fabric.handlers import register_builtin_handlers


def write_files(root: Path, files: dict[str, str]) -> Path:
    """Create files under root from a {relative path: content} mapping."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def make_tar(entries: dict[str, bytes], gzip: bool = True) -> bytes:
    """Build a tar archive in memory, entries are written with their names as given."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz" if gzip else "w") as tar:
        for name, data in entries.items():
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def skill_md(name: str, description: str = "A test skill", version: str | None = None) -> str:
    lines = ["---", f"name: {name}", f"description: {description}"]
    if version:
        lines.append(f"version: {version}")
    lines += ["---", "", f"# {name}", "", "Instructions."]
    return "\n".join(lines) + "\n"


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Empty project directory."""
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Stand-in home directory for global installs."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def source(tmp_path: Path) -> Path:
    """Source tree with nested skills, rules and subagents."""
    root = tmp_path / "source"
    return write_files(
        root,
        {
            "skills/frontend/react/patterns/SKILL.md": skill_md("patterns", "React patterns", "1.0.0"),
            "skills/frontend/react/patterns/examples/hooks.md": "# Hooks\n",
            "skills/backend/review/SKILL.md": skill_md("review", "Review code"),
            "rules/style.md": "---\ndescription: Style guide\nglobs: [\"*.py\"]\n---\n\n# Style\n",
            "rules/testing/pytest.md": "# Pytest\n\nUse fixtures.\n",
            "README.md": "# Source\n",
            "agents/reviewer/subagent.json": (
                '{"name": "reviewer", "description": "Reviews diffs", '
                '"model": "sonnet", "tools": ["Read", "Grep"]}'
            ),
        },
    )


@pytest.fixture
def audit_sink() -> MemoryAuditSink:
    return MemoryAuditSink()


@pytest.fixture
def audit(audit_sink: MemoryAuditSink, project: Path, home: Path) -> AuditTrail:
    return AuditTrail(audit_sink, project_root=project, global_root=home, actor_id="tester")


@pytest.fixture
def consumers() -> ConsumerRegistry:
    return ConsumerRegistry.with_builtins()


@pytest.fixture
def handlers(consumers: ConsumerRegistry, project: Path, home: Path, audit: AuditTrail) -> HandlerRegistry:
    return register_builtin_handlers(
        HandlerRegistry(), consumers, project, audit=audit, global_root=home
    )
