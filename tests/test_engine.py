"""Tests for install, link/unlink, unify and delete."""

import os
from pathlib import Path

import pytest

from conftest import make_skill
from skill_kit.config import set_sync_mode
from skill_kit.engine import Provenance, delete, install, set_agent_link, unify
from skill_kit.errors import NotFoundError, SkillKitError, UnsafeLinkState
from skill_kit.lock import ProjectSkillLock, SourceType, compute_skill_folder_hash
from skill_kit.paths import COPY_MARKER_FILE, Scope
from skill_kit.scanner import ManagedStatus, scan_local_skills
from skill_kit.store import check_canonical


def _canonical_folders(canonical_dir: Path):
    return sorted(p.name for p in canonical_dir.iterdir())


# ---------------------------------------------------------------------------
# install
# ---------------------------------------------------------------------------


class TestInstall:
    def test_symlinks_selected_agents(self, registry, source, canonical_dir, claude_dir, codex_dir):
        result = install(source, "foo", ["claude-code", "codex"], registry=registry)

        assert result.success
        assert result.warnings == []
        assert result.linked == ["claude-code", "codex"]
        assert (canonical_dir / "foo" / "SKILL.md").is_file()
        for agent_dir in (claude_dir, codex_dir):
            link = agent_dir / "foo"
            assert link.is_symlink()
            assert os.path.realpath(link) == os.path.realpath(canonical_dir / "foo")

    def test_scan_reports_exactly_selected_agents(self, registry, source, canonical_dir):
        install(source, "foo", ["claude-code", "codex"], registry=registry)

        scan = scan_local_skills(registry)
        foo = scan.managed[(Scope.GLOBAL, "foo")]
        assert foo.managed_status == ManagedStatus.MANAGED
        assert sorted(foo.agents) == ["claude-code", "codex"]
        assert scan.unmanaged == []
        assert _canonical_folders(canonical_dir) == ["foo"]

    def test_reinstall_replaces_content(self, registry, source, tmp_path, canonical_dir):
        install(source, "foo", ["claude-code"], registry=registry)
        (canonical_dir / "foo" / "old.txt").write_text("stale")

        second = make_skill(tmp_path / "other", "foo", body="version two\n")
        install(second, "foo", ["claude-code"], registry=registry)

        assert _canonical_folders(canonical_dir) == ["foo"]
        assert not (canonical_dir / "foo" / "old.txt").exists()
        assert "version two" in (canonical_dir / "foo" / "SKILL.md").read_text()

    def test_reinstall_is_exclusive(self, registry, source, claude_dir, codex_dir):
        install(source, "foo", ["claude-code", "codex"], registry=registry)
        install(source, "foo", ["codex"], registry=registry)

        assert not os.path.lexists(claude_dir / "foo")
        assert (codex_dir / "foo").is_symlink()

    def test_reinstall_replaces_links_under_other_names(self, registry, source, claude_dir, canonical_dir):
        standalone = make_skill(claude_dir, "my-foo", name="foo")
        install(source, "foo", [], registry=registry)
        unify("foo", Scope.GLOBAL, standalone, "canonical", sync_mode="symlink")

        install(source, "foo", ["claude-code"], registry=registry)

        links = [
            child.name for child in claude_dir.iterdir()
            if os.path.realpath(child) == os.path.realpath(canonical_dir / "foo")
        ]
        assert links == ["foo"]
        assert not os.path.lexists(claude_dir / "my-foo")

    def test_name_defaults_to_descriptor(self, registry, tmp_path, canonical_dir):
        staged = make_skill(tmp_path / "staging", "folder", name="Nice Skill")
        result = install(staged, agents=[], registry=registry)
        assert result.name == "Nice Skill"
        assert (canonical_dir / "nice-skill").is_dir()

    def test_copy_mode_writes_marker(self, registry, source, canonical_dir, claude_dir):
        install(source, "foo", ["claude-code"], sync_mode="copy", registry=registry)

        copy = claude_dir / "foo"
        assert copy.is_dir() and not copy.is_symlink()
        marker = (copy / COPY_MARKER_FILE).read_text()
        assert os.path.realpath(marker) == os.path.realpath(canonical_dir / "foo")
        assert not (canonical_dir / "foo" / COPY_MARKER_FILE).exists()

        foo = scan_local_skills(registry).managed[(Scope.GLOBAL, "foo")]
        assert foo.agents == ["claude-code"]

    def test_copy_mode_from_config(self, registry, source, claude_dir):
        set_sync_mode("copy")
        install(source, "foo", ["claude-code"], registry=registry)
        assert not (claude_dir / "foo").is_symlink()
        assert (claude_dir / "foo" / COPY_MARKER_FILE).is_file()

    def test_plain_folder_kept_with_warning(self, registry, source, claude_dir, codex_dir):
        user_copy = make_skill(claude_dir, "foo", body="mine\n")

        result = install(source, "foo", ["claude-code", "codex"], registry=registry)

        assert result.success
        assert result.linked == ["codex"]
        assert len(result.warnings) == 1
        assert "claude-code" in result.stderr
        assert "mine" in (user_copy / "SKILL.md").read_text()
        assert not user_copy.is_symlink()

    def test_unknown_agent_is_a_warning(self, registry, source):
        result = install(source, "foo", ["nope", "codex"], registry=registry)
        assert result.success
        assert result.linked == ["codex"]
        assert result.warnings[0].startswith("nope:")

    def test_missing_source(self, registry, tmp_path):
        with pytest.raises(NotFoundError):
            install(tmp_path / "missing", "foo", [], registry=registry)

    def test_records_global_provenance(self, registry, source, global_lock):
        provenance = Provenance(
            source="acme/skills",
            source_type=SourceType.GITHUB,
            source_url="https://github.com/acme/skills",
            skill_path="foo/SKILL.md",
            skill_folder_hash="abc123",
        )
        install(source, "foo", [], provenance=provenance, registry=registry, lock=global_lock)

        entry = global_lock.get_skill("foo")
        assert entry.source == "acme/skills"
        assert entry.source_type == SourceType.GITHUB
        assert entry.skill_folder_hash == "abc123"
        assert entry.installed_at

    def test_project_scope(self, registry, source, tmp_path):
        project = tmp_path / "project"
        project.mkdir()

        result = install(source, "foo", ["claude-code"], scope=Scope.PROJECT,
                         project_root=project, registry=registry)

        canonical = project / ".agents" / "skills" / "foo"
        assert result.canonical_path == canonical
        assert (project / ".claude" / "skills" / "foo").is_symlink()
        entry = ProjectSkillLock(project).get_skill("foo")
        assert entry.source_type == SourceType.NATIVE
        assert entry.computed_hash == compute_skill_folder_hash(canonical)

    def test_agent_dir_that_is_the_store(self, registry, source, tmp_path):
        # amp's project folder is .agents/skills, the project store itself
        project = tmp_path / "project"
        project.mkdir()
        result = install(source, "foo", ["amp"], scope=Scope.PROJECT,
                         project_root=project, registry=registry)
        assert result.linked == ["amp"]
        assert result.warnings == []
        assert (project / ".agents" / "skills" / "foo" / "SKILL.md").is_file()


# ---------------------------------------------------------------------------
# set_agent_link
# ---------------------------------------------------------------------------


class TestSetAgentLink:
    def test_link_and_unlink(self, registry, source, claude_dir):
        install(source, "foo", [], registry=registry)

        set_agent_link("foo", "claude-code", Scope.GLOBAL, True, registry=registry)
        assert (claude_dir / "foo").is_symlink()

        set_agent_link("foo", "claude-code", Scope.GLOBAL, False, registry=registry)
        assert not os.path.lexists(claude_dir / "foo")

    def test_link_requires_canonical(self, registry):
        with pytest.raises(NotFoundError):
            set_agent_link("ghost", "claude-code", Scope.GLOBAL, True, registry=registry)

    def test_unlink_missing_is_noop(self, registry):
        set_agent_link("ghost", "claude-code", Scope.GLOBAL, False, registry=registry)

    def test_unlink_refuses_foreign_symlink(self, registry, source, tmp_path, claude_dir):
        install(source, "foo", [], registry=registry)
        elsewhere = make_skill(tmp_path / "elsewhere", "foo")
        (claude_dir / "foo").symlink_to(elsewhere, target_is_directory=True)

        with pytest.raises(UnsafeLinkState, match="link points elsewhere"):
            set_agent_link("foo", "claude-code", Scope.GLOBAL, False, registry=registry)
        assert (claude_dir / "foo").is_symlink()

    def test_unlink_refuses_plain_folder(self, registry, claude_dir):
        make_skill(claude_dir, "foo")
        with pytest.raises(UnsafeLinkState, match="not a managed link"):
            set_agent_link("foo", "claude-code", Scope.GLOBAL, False, sync_mode="symlink", registry=registry)
        assert (claude_dir / "foo" / "SKILL.md").is_file()

    def test_unlink_plain_folder_in_copy_mode(self, registry, claude_dir):
        make_skill(claude_dir, "foo")
        set_agent_link("foo", "claude-code", Scope.GLOBAL, False, sync_mode="copy", registry=registry)
        assert not (claude_dir / "foo").exists()

    def test_unlink_marked_copy(self, registry, source, claude_dir):
        install(source, "foo", ["claude-code"], sync_mode="copy", registry=registry)
        set_agent_link("foo", "claude-code", Scope.GLOBAL, False, sync_mode="symlink", registry=registry)
        assert not (claude_dir / "foo").exists()

    def test_relink_replaces_stale_symlink(self, registry, source, tmp_path, claude_dir, canonical_dir):
        install(source, "foo", [], registry=registry)
        (claude_dir / "foo").symlink_to(tmp_path / "gone", target_is_directory=True)

        set_agent_link("foo", "claude-code", Scope.GLOBAL, True, registry=registry)

        assert os.path.realpath(claude_dir / "foo") == os.path.realpath(canonical_dir / "foo")


# ---------------------------------------------------------------------------
# unify
# ---------------------------------------------------------------------------


class TestUnify:
    def test_prefer_canonical(self, registry, source, claude_dir, canonical_dir):
        install(source, "foo", [], registry=registry)
        standalone = make_skill(claude_dir, "foo", body="local edits\n")

        result = unify("foo", Scope.GLOBAL, standalone, "canonical", sync_mode="symlink")

        assert result.success
        assert standalone.is_symlink()
        assert "version one" in (canonical_dir / "foo" / "SKILL.md").read_text()
        assert _canonical_folders(canonical_dir) == ["foo"]

        scan = scan_local_skills(registry)
        assert scan.managed[(Scope.GLOBAL, "foo")].agents == ["claude-code"]
        assert scan.unmanaged == []

    def test_prefer_canonical_seeds_missing_store(self, registry, claude_dir, canonical_dir):
        standalone = make_skill(claude_dir, "notes", body="only copy\n")

        unify("notes", Scope.GLOBAL, standalone, "canonical", sync_mode="symlink")

        assert "only copy" in (canonical_dir / "notes" / "SKILL.md").read_text()
        assert standalone.is_symlink()

    def test_prefer_current(self, registry, source, claude_dir, canonical_dir):
        install(source, "foo", [], registry=registry)
        standalone = make_skill(claude_dir, "foo", body="local edits\n")

        unify("foo", Scope.GLOBAL, standalone, "current", sync_mode="symlink")

        assert "local edits" in (canonical_dir / "foo" / "SKILL.md").read_text()
        assert standalone.is_symlink()

    def test_copy_mode(self, registry, claude_dir):
        standalone = make_skill(claude_dir, "notes")
        result = unify("notes", Scope.GLOBAL, standalone, "canonical", sync_mode="copy")
        assert "tracked copy" in result.message
        assert (standalone / COPY_MARKER_FILE).is_file()

    def test_missing_path(self, tmp_path):
        with pytest.raises(NotFoundError):
            unify("foo", Scope.GLOBAL, tmp_path / "missing", "canonical")

    def test_bad_prefer(self, claude_dir):
        standalone = make_skill(claude_dir, "foo")
        with pytest.raises(SkillKitError):
            unify("foo", Scope.GLOBAL, standalone, "newest")

    def test_refuses_canonical_folder_itself(self, registry, source, canonical_dir):
        install(source, "foo", [], registry=registry)
        with pytest.raises(SkillKitError, match="already the canonical"):
            unify("foo", Scope.GLOBAL, canonical_dir / "foo", "current")
        assert (canonical_dir / "foo" / "SKILL.md").is_file()


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDelete:
    def test_removes_everything(self, registry, source, claude_dir, codex_dir, canonical_dir, global_lock):
        install(source, "foo", ["claude-code"], registry=registry, lock=global_lock)
        install(source, "foo", ["claude-code"], registry=registry, lock=global_lock)
        set_agent_link("foo", "codex", Scope.GLOBAL, True, sync_mode="copy", registry=registry)

        result = delete("foo", registry=registry, lock=global_lock)

        assert result.canonical_removed
        assert sorted(result.removed_links) == ["claude-code", "codex"]
        assert result.lock_removed
        assert not os.path.lexists(claude_dir / "foo")
        assert not os.path.lexists(codex_dir / "foo")
        assert not (canonical_dir / "foo").exists()
        assert global_lock.get_skill("foo") is None
        assert scan_local_skills(registry).find("foo") == []

    def test_is_idempotent(self, registry, source, global_lock):
        install(source, "foo", ["claude-code"], registry=registry, lock=global_lock)
        delete("foo", registry=registry, lock=global_lock)

        again = delete("foo", registry=registry, lock=global_lock)

        assert not again.canonical_removed
        assert again.removed_links == []
        assert not again.lock_removed

    def test_leaves_plain_folders_alone(self, registry, source, codex_dir):
        install(source, "foo", ["claude-code"], registry=registry)
        user_copy = make_skill(codex_dir, "foo")

        delete("foo", registry=registry)

        assert (user_copy / "SKILL.md").is_file()

    def test_removes_renamed_links(self, registry, source, claude_dir, canonical_dir):
        install(source, "foo", [], registry=registry)
        (claude_dir / "foo-alias").symlink_to(canonical_dir / "foo", target_is_directory=True)

        result = delete("foo", registry=registry)

        assert result.removed_links == ["claude-code"]
        assert not os.path.lexists(claude_dir / "foo-alias")

    def test_project_scope(self, registry, source, tmp_path):
        project = tmp_path / "project"
        project.mkdir()
        install(source, "foo", ["codex"], scope=Scope.PROJECT, project_root=project, registry=registry)

        result = delete("foo", Scope.PROJECT, project_root=project, registry=registry)

        assert result.lock_removed
        assert ProjectSkillLock(project).get_skill("foo") is None
        assert not check_canonical("foo", Scope.PROJECT, project).exists
