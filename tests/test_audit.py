"""Tests for the audit trail."""

import json
from pathlib import Path

from agent_fabric.audit import AuditTrail, FileAuditSink, MemoryAuditSink


class _BrokenSink:
    def emit(self, record):
        raise RuntimeError("collector down")


class TestRedaction:
    """Absolute paths never leave the audit trail unredacted."""

    def test_project_path(self, tmp_path: Path):
        """Test that project paths are rewritten to <PROJECT_ROOT>."""
        trail = AuditTrail(project_root=tmp_path / "proj", global_root=tmp_path / "home")
        path = tmp_path / "proj" / ".claude" / "skills" / "x"
        assert trail.redact_path(path) == "<PROJECT_ROOT>/.claude/skills/x"

    def test_global_path(self, tmp_path: Path):
        """Test that global paths are rewritten to <GLOBAL_ROOT>."""
        trail = AuditTrail(project_root=tmp_path / "proj", global_root=tmp_path / "home")
        assert trail.redact_path(tmp_path / "home" / ".cursor") == "<GLOBAL_ROOT>/.cursor"

    def test_most_specific_root_wins(self, tmp_path: Path):
        """Test that a project inside the global root is still <PROJECT_ROOT>."""
        trail = AuditTrail(project_root=tmp_path / "home" / "proj", global_root=tmp_path / "home")
        assert trail.redact_path(tmp_path / "home" / "proj" / "a") == "<PROJECT_ROOT>/a"

    def test_external_path_keeps_only_name(self, tmp_path: Path):
        """Test that unknown absolute paths are reduced to their last component."""
        trail = AuditTrail(project_root=tmp_path / "proj", global_root=tmp_path / "home")
        assert trail.redact_path("/var/cache/agent-fabric/x.tar") == "<EXTERNAL>/x.tar"

    def test_relative_path_unchanged(self):
        assert AuditTrail().redact_path("skills/x") == "skills/x"

    def test_details_and_errors_are_redacted(self, tmp_path: Path):
        """Test that nested details and error messages are redacted."""
        sink = MemoryAuditSink()
        project = tmp_path / "proj"
        trail = AuditTrail(sink, project_root=project, global_root=tmp_path / "home")

        trail.failure(
            "install",
            "review",
            "skills",
            target_path=project / "a",
            details={"sourcePath": str(project / "src"), "nested": {"paths": [str(project / "b")]}},
            error=OSError(f"Permission denied: '{project.resolve() / 'a'}'"),
        )

        record = sink.records[0]
        assert record.target_path == "<PROJECT_ROOT>/a"
        assert record.details == {
            "sourcePath": "<PROJECT_ROOT>/src",
            "nested": {"paths": ["<PROJECT_ROOT>/b"]},
        }
        assert str(tmp_path) not in record.error
        assert "<PROJECT_ROOT>/a" in record.error


class TestSinks:
    """Tests for sink behaviour."""

    def test_sink_failure_never_propagates(self):
        """Test that a failing sink does not fail the audited operation."""
        trail = AuditTrail(_BrokenSink())
        record = trail.success("install", "review", "skills")
        assert record.outcome == "success"

    def test_file_sink_writes_json_lines(self, tmp_path: Path):
        """Test that the file sink appends one camelCase JSON object per record."""
        path = tmp_path / "logs" / "audit.jsonl"
        trail = AuditTrail(FileAuditSink(path), actor_id="ci")
        trail.success("install", "review", "skills")
        trail.warning("remove", "review", "skills", details={"reason": "not installed"})

        lines = [json.loads(line) for line in path.read_text().splitlines()]
        assert [line["outcome"] for line in lines] == ["success", "warning"]
        assert lines[0]["actorId"] == "ci"
        assert lines[0]["resourceKind"] == "skills"
        assert "details" not in lines[0]
        assert lines[1]["details"] == {"reason": "not installed"}
