"""End-to-end tests for the add / remove / rollback pipeline."""

import json

import httpx
import pytest

from conftest import make_tar, skill_md, write_files

from agent_fabric.config import FabricSettings
from agent_fabric.core.resource import InstallMode, Scope
from agent_fabric.exceptions import (
    AlreadyExistsError,
    NotFoundError,
    SchemaVersionMismatch,
    UnknownConsumerError,
    ValidationError,
)
from agent_fabric.orchestrator import Orchestrator, build_audit_trail
from agent_fabric.state.models import SkillMetadata


@pytest.fixture
def make_orchestrator(project, home, audit, tmp_path):
    created = []

    def factory(settings=None, handler=None, naming_strategy=None):
        orchestrator = Orchestrator.create(
            project,
            settings or FabricSettings(),
            audit=audit,
            global_root=home,
            naming_strategy=naming_strategy,
            transport=httpx.MockTransport(handler) if handler else None,
            sleep=lambda _: None,
            cache_dir=tmp_path / "cache",
        )
        created.append(orchestrator)
        return orchestrator

    yield factory
    for orchestrator in created:
        orchestrator.close()


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()


class TestAdd:
    """Tests for Orchestrator.add."""

    def test_add_local_skills(self, orchestrator, source, project):
        """Test that every discovered skill is installed and recorded."""
        result = orchestrator.add(str(source), consumer_ids=["claude-code"])

        assert sorted(o.name for o in result.installed) == ["backend-review", "frontend-react-patterns"]
        assert result.failed == []
        assert (project / ".claude" / "skills" / "backend-review" / "SKILL.md").exists()

        record = orchestrator.store.get("frontend-react-patterns")
        assert record.kind == "skills"
        assert record.version == "1.0.0"
        assert record.origin == str(source)
        assert record.origin_kind == "local"
        assert [(loc.consumer_id, loc.path) for loc in record.installed_for] == [
            ("claude-code", ".claude/skills/frontend-react-patterns")
        ]
        assert isinstance(record.metadata, SkillMetadata)
        assert record.metadata.categories == ["frontend", "react"]
        assert record.metadata.source_path == "skills/frontend/react/patterns"

    def test_add_several_kinds(self, orchestrator, source, project):
        result = orchestrator.add(
            str(source), kinds=["rules", "subagents"], consumer_ids=["cursor"]
        )
        assert sorted((o.kind, o.name) for o in result.installed) == [
            ("rules", "style"),
            ("rules", "testing-pytest"),
            ("subagents", "reviewer"),
        ]
        assert (project / ".cursor" / "rules" / "style.mdc").exists()
        assert (project / ".cursor" / "agents" / "reviewer.json").exists()

    def test_only_filters_by_name(self, orchestrator, source):
        result = orchestrator.add(str(source), consumer_ids=["claude-code"], only=["review"])
        assert [o.name for o in result.outcomes] == ["backend-review"]

    def test_global_link_install(self, orchestrator, source, home):
        orchestrator.add(
            str(source),
            consumer_ids=["claude-code"],
            scope=Scope.GLOBAL,
            mode=InstallMode.LINK,
            only=["review"],
        )
        dest = home / ".claude" / "skills" / "backend-review"
        assert dest.is_symlink()
        location = orchestrator.store.get("backend-review").installed_for[0]
        assert location.scope == "global"
        assert location.path == str(dest)

    def test_second_add_requires_force(self, orchestrator, source):
        """Test that existing installs are reported and the state is not touched."""
        orchestrator.add(str(source), consumer_ids=["claude-code"], only=["review"])
        result = orchestrator.add(str(source), consumer_ids=["claude-code"], only=["review"])

        (outcome,) = result.outcomes
        assert not outcome.ok
        assert isinstance(outcome.report.failed[0].error, AlreadyExistsError)
        assert orchestrator.store.get("backend-review").history == []

        forced = orchestrator.add(str(source), consumer_ids=["claude-code"], only=["review"], force=True)
        assert forced.outcomes[0].ok
        assert len(orchestrator.store.get("backend-review").history) == 1

    def test_name_collisions_are_refused(self, make_orchestrator, tmp_path, project):
        """Test that two items resolving to one name are not installed without force."""
        root = write_files(
            tmp_path / "colliding",
            {
                "frontend/lint/SKILL.md": skill_md("lint"),
                "backend/lint/SKILL.md": skill_md("lint"),
                "other/SKILL.md": skill_md("other"),
            },
        )
        orchestrator = make_orchestrator(naming_strategy="original-name")

        result = orchestrator.add(str(root), consumer_ids=["claude-code"])

        errors = [o for o in result.outcomes if o.error is not None]
        assert len(errors) == 2
        assert all(isinstance(o.error, AlreadyExistsError) for o in errors)
        assert [o.name for o in result.installed] == ["other"]
        assert not (project / ".claude" / "skills" / "lint").exists()

    def test_invalid_item_does_not_stop_batch(self, orchestrator, tmp_path, project):
        """Test that one invalid item is reported while the others install."""
        root = write_files(
            tmp_path / "agents-src",
            {
                "good/subagent.json": '{"name": "good", "description": "Fine"}',
                "bad/subagent.json": "{broken",
            },
        )

        result = orchestrator.add(str(root), kinds=["subagents"], consumer_ids=["codex"])

        by_name = {o.name: o for o in result.outcomes}
        assert isinstance(by_name["bad"].error, ValidationError)
        assert by_name["good"].ok
        assert (project / ".codex" / "agents" / "good.json").exists()
        assert orchestrator.store.get("bad") is None

    def test_remote_source(self, make_orchestrator, project):
        """Test the full remote path: download, stage, install, record."""
        tarball = make_tar({"kit-main/skills/review/SKILL.md": skill_md("review").encode()})
        orchestrator = make_orchestrator(handler=lambda request: httpx.Response(200, content=tarball))

        result = orchestrator.add("acme/kit", consumer_ids=["claude-code"])

        assert [o.name for o in result.installed] == ["review"]
        record = orchestrator.store.get("review")
        assert record.origin == "acme/kit"
        assert record.origin_url == "https://github.com/acme/kit"

    def test_unknown_consumer_fails_before_acquiring(self, orchestrator, source, project):
        with pytest.raises(UnknownConsumerError):
            orchestrator.add(str(source), consumer_ids=["vim"])
        assert not (project / ".claude").exists()

    def test_broken_state_aborts_before_install(self, orchestrator, source, project):
        """Test that a schema mismatch stops the whole batch."""
        orchestrator.store.path.parent.mkdir(parents=True)
        orchestrator.store.path.write_text(json.dumps({"schemaVersion": 99}))

        with pytest.raises(SchemaVersionMismatch):
            orchestrator.add(str(source), consumer_ids=["claude-code"])
        assert not (project / ".claude").exists()


class TestTargets:
    """Tests for target resolution."""

    def test_preferred_consumers_from_settings(self, make_orchestrator):
        orchestrator = make_orchestrator(FabricSettings(preferred_consumers=["cursor", "codex"]))
        targets = orchestrator.build_targets()
        assert [t.consumer_id for t in targets] == ["cursor", "codex"]
        assert all(t.scope == Scope.PROJECT and t.mode == InstallMode.COPY for t in targets)

    def test_detected_consumers(self, orchestrator, project):
        (project / ".windsurf").mkdir()
        assert [t.consumer_id for t in orchestrator.build_targets()] == ["windsurf"]

    def test_default_consumer(self, orchestrator):
        assert [t.consumer_id for t in orchestrator.build_targets()] == ["claude-code"]

    def test_settings_scope_and_mode(self, make_orchestrator):
        orchestrator = make_orchestrator(FabricSettings(default_scope="global", install_mode="link"))
        (target,) = orchestrator.build_targets(["codex"])
        assert (target.scope, target.mode) == (Scope.GLOBAL, InstallMode.LINK)


class TestRemoveRollbackList:
    """Tests for remove, rollback, history and list."""

    def test_remove_everywhere(self, orchestrator, source, project):
        orchestrator.add(str(source), consumer_ids=["claude-code", "cursor"], only=["review"])

        report = orchestrator.remove("backend-review")

        assert len(report.removed) == 2
        assert orchestrator.store.get("backend-review") is None
        assert not (project / ".cursor" / "fabric-skills" / "backend-review").exists()

    def test_remove_one_consumer(self, orchestrator, source, project):
        orchestrator.add(str(source), consumer_ids=["claude-code", "cursor"], only=["review"])

        orchestrator.remove("backend-review", consumer_ids=["cursor"])

        record = orchestrator.store.get("backend-review")
        assert [loc.consumer_id for loc in record.installed_for] == ["claude-code"]
        assert (project / ".claude" / "skills" / "backend-review").exists()

    def test_remove_files_already_gone(self, orchestrator, source, project):
        """Test that a missing install still clears the state record."""
        orchestrator.add(str(source), consumer_ids=["claude-code"], only=["review"])
        (project / ".claude" / "skills" / "backend-review" / "SKILL.md").unlink()
        (project / ".claude" / "skills" / "backend-review").rmdir()

        report = orchestrator.remove("backend-review")

        assert len(report.missing) == 1
        assert orchestrator.store.get("backend-review") is None

    def test_remove_unknown(self, orchestrator):
        with pytest.raises(NotFoundError):
            orchestrator.remove("nothing")

    def test_rollback_and_history(self, orchestrator, source):
        skill = source / "skills" / "frontend" / "react" / "patterns" / "SKILL.md"
        orchestrator.add(str(source), consumer_ids=["claude-code"], only=["patterns"])
        skill.write_text(skill_md("patterns", "React patterns", "2.0.0"))
        orchestrator.add(str(source), consumer_ids=["claude-code"], only=["patterns"], force=True)

        assert [e.version for e in orchestrator.history("frontend-react-patterns")] == ["1.0.0"]

        record = orchestrator.rollback("frontend-react-patterns")
        assert record.version == "1.0.0"
        assert [e.version for e in orchestrator.history("frontend-react-patterns")] == ["2.0.0"]

    def test_list_covers_all_kinds(self, orchestrator, source):
        orchestrator.add(str(source), kinds=["skills", "rules"], consumer_ids=["claude-code"])
        result = orchestrator.list(scope=Scope.PROJECT)
        assert sorted((r.kind, r.name) for r in result.resources) == [
            ("rules", "style"),
            ("rules", "testing-pytest"),
            ("skills", "backend-review"),
            ("skills", "frontend-react-patterns"),
        ]
        assert len(orchestrator.installed()) == 4


class TestAuditSetting:
    """Tests for building the audit trail from settings."""

    def test_file_audit(self, project, source, home, tmp_path):
        settings = FabricSettings(audit="audit.jsonl")
        audit = build_audit_trail(settings, project, home)
        with Orchestrator.create(
            project, settings, audit=audit, global_root=home, cache_dir=tmp_path / "cache"
        ) as orchestrator:
            orchestrator.add(str(source), consumer_ids=["claude-code"], only=["review"])

        records = [json.loads(line) for line in (project / "audit.jsonl").read_text().splitlines()]
        assert {r["action"] for r in records} >= {"acquire", "install", "state.add"}
        assert all(str(project) not in json.dumps(r) for r in records)
