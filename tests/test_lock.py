"""Tests for the global and project lock files and folder hashing."""

import hashlib
import json
import os
from pathlib import Path

import pytest

from conftest import make_skill
from skill_kit import lock as lock_module
from skill_kit.errors import NotFoundError, SkillKitError
from skill_kit.lock import (
    DriftStatus,
    GlobalSkillLock,
    LockEntry,
    ProjectSkillLock,
    SourceType,
    check_skill_update,
    compute_skill_folder_hash,
    normalize_source,
    verify_project_skills,
)


# ---------------------------------------------------------------------------
# Global lock
# ---------------------------------------------------------------------------


class TestGlobalSkillLock:
    def test_lives_in_config_dir(self, tmp_path: Path):
        assert GlobalSkillLock().path == tmp_path / "config" / "skill-lock.json"

    def test_missing_file_reads_empty(self, global_lock):
        assert global_lock.read() == {"version": 3, "skills": {}, "lastSelectedAgents": []}
        assert global_lock.get_skill("foo") is None

    def test_upsert_keeps_installed_at(self, global_lock, monkeypatch):
        monkeypatch.setattr(lock_module, "utc_now", lambda: "2026-01-01T00:00:00+00:00")
        global_lock.add_skill("foo", LockEntry(source="acme/skills", source_type=SourceType.GITHUB))

        monkeypatch.setattr(lock_module, "utc_now", lambda: "2026-02-01T00:00:00+00:00")
        global_lock.add_skill("foo", LockEntry(source="acme/other", source_type=SourceType.GITHUB,
                                               skill_folder_hash="def"))

        entry = global_lock.get_skill("foo")
        assert entry.source == "acme/other"
        assert entry.skill_folder_hash == "def"
        assert entry.installed_at == "2026-01-01T00:00:00+00:00"
        assert entry.updated_at == "2026-02-01T00:00:00+00:00"

    def test_camel_case_on_disk(self, global_lock):
        global_lock.add_skill("foo", LockEntry(
            source="acme/skills",
            source_type=SourceType.GITHUB,
            source_url="https://github.com/acme/skills",
            skill_path="skills/foo/SKILL.md",
            skill_folder_hash="abc",
        ))

        data = json.loads(global_lock.path.read_text(encoding="utf-8"))
        raw = data["skills"]["foo"]
        assert data["version"] == 3
        assert raw["sourceType"] == "github"
        assert raw["sourceUrl"] == "https://github.com/acme/skills"
        assert raw["skillPath"] == "skills/foo/SKILL.md"
        assert raw["skillFolderHash"] == "abc"

    def test_remove(self, global_lock):
        global_lock.add_skill("foo", LockEntry(source="local"))
        assert global_lock.remove_skill("foo") is True
        assert global_lock.remove_skill("foo") is False
        assert global_lock.all_skills() == {}

    def test_old_version_reads_empty(self, global_lock):
        global_lock.path.parent.mkdir(parents=True, exist_ok=True)
        global_lock.path.write_text(json.dumps({"version": 2, "skills": {"foo": {"source": "x"}}}))
        assert global_lock.all_skills() == {}

    def test_malformed_file_raises(self, global_lock):
        global_lock.path.parent.mkdir(parents=True, exist_ok=True)
        global_lock.path.write_text("{not json")
        with pytest.raises(SkillKitError, match="Failed to parse"):
            global_lock.read()

    def test_unknown_source_type(self, global_lock):
        global_lock.path.parent.mkdir(parents=True, exist_ok=True)
        global_lock.path.write_text(json.dumps({
            "version": 3,
            "skills": {"foo": {"source": "x", "sourceType": "gitlab"}},
        }))
        assert global_lock.get_skill("foo").source_type == SourceType.UNKNOWN

    def test_last_selected_agents(self, global_lock):
        assert global_lock.last_selected_agents() == []
        global_lock.set_last_selected_agents(["claude-code", "codex"])
        assert global_lock.last_selected_agents() == ["claude-code", "codex"]

    def test_concurrent_edits_are_kept(self, global_lock):
        other = GlobalSkillLock(global_lock.path)
        global_lock.add_skill("foo", LockEntry(source="a"))
        other.add_skill("bar", LockEntry(source="b"))
        assert sorted(global_lock.all_skills()) == ["bar", "foo"]


# ---------------------------------------------------------------------------
# Project lock
# ---------------------------------------------------------------------------


class TestProjectSkillLock:
    def test_add_computes_hash(self, tmp_path: Path):
        skill = make_skill(tmp_path / "project" / ".agents" / "skills", "foo")
        project_lock = ProjectSkillLock(tmp_path / "project")

        entry = project_lock.add_skill("foo", "acme/skills", SourceType.GITHUB, skill)

        assert entry.computed_hash == compute_skill_folder_hash(skill)
        assert project_lock.get_skill("foo") == entry

    def test_written_with_sorted_keys(self, tmp_path: Path):
        project_lock = ProjectSkillLock(tmp_path)
        skill = make_skill(tmp_path / "src", "zeta")
        project_lock.add_skill("zeta", "local", SourceType.NATIVE, skill)
        project_lock.add_skill("alpha", "local", SourceType.NATIVE, skill)

        text = (tmp_path / "skills-lock.json").read_text(encoding="utf-8")

        assert text.endswith("}\n")
        assert text.index('"alpha"') < text.index('"zeta"')
        assert text.index('"computedHash"') < text.index('"source"') < text.index('"sourceType"')
        assert json.loads(text)["version"] == 1

    def test_malformed_file_reads_empty(self, tmp_path: Path):
        (tmp_path / "skills-lock.json").write_text("garbage")
        assert ProjectSkillLock(tmp_path).all_skills() == {}

    def test_remove(self, tmp_path: Path):
        project_lock = ProjectSkillLock(tmp_path)
        project_lock.add_skill("foo", "local", SourceType.NATIVE, make_skill(tmp_path / "src", "foo"))
        assert project_lock.remove_skill("foo") is True
        assert project_lock.remove_skill("foo") is False

    def test_independent_from_global(self, tmp_path: Path, global_lock):
        ProjectSkillLock(tmp_path).add_skill("foo", "local", SourceType.NATIVE,
                                             make_skill(tmp_path / "src", "foo"))
        assert global_lock.get_skill("foo") is None


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


class TestFolderHash:
    def test_matches_path_then_content_digest(self, tmp_path: Path):
        skill = tmp_path / "skill"
        (skill / "docs").mkdir(parents=True)
        (skill / "SKILL.md").write_bytes(b"---\nname: x\n---\n")
        (skill / "docs" / "a.txt").write_bytes(b"alpha")

        expected = hashlib.sha256()
        for relative, content in [("SKILL.md", b"---\nname: x\n---\n"), ("docs/a.txt", b"alpha")]:
            expected.update(relative.encode("utf-8"))
            expected.update(content)

        assert compute_skill_folder_hash(skill) == expected.hexdigest()

    def test_ignores_mtime_and_creation_order(self, tmp_path: Path):
        first = tmp_path / "first"
        first.mkdir()
        (first / "b.txt").write_text("b")
        (first / "a.txt").write_text("a")

        second = tmp_path / "second"
        second.mkdir()
        (second / "a.txt").write_text("a")
        (second / "b.txt").write_text("b")
        os.utime(second / "a.txt", (0, 0))

        assert compute_skill_folder_hash(first) == compute_skill_folder_hash(second)

    def test_content_changes_hash(self, tmp_path: Path):
        skill = make_skill(tmp_path, "foo")
        before = compute_skill_folder_hash(skill)
        (skill / "extra.txt").write_text("x")
        assert compute_skill_folder_hash(skill) != before

    def test_excluded_dirs(self, tmp_path: Path):
        skill = make_skill(tmp_path, "foo")
        before = compute_skill_folder_hash(skill)
        (skill / ".git").mkdir()
        (skill / ".git" / "HEAD").write_text("ref: refs/heads/main")
        (skill / "node_modules" / "pkg").mkdir(parents=True)
        (skill / "node_modules" / "pkg" / "index.js").write_text("")
        assert compute_skill_folder_hash(skill) == before

    def test_git_file_excluded(self, tmp_path: Path):
        plain = make_skill(tmp_path / "a", "foo")
        worktree = make_skill(tmp_path / "b", "foo")
        (worktree / ".git").write_text("gitdir: /elsewhere/.git/worktrees/foo")
        assert compute_skill_folder_hash(worktree) == compute_skill_folder_hash(plain)

    def test_symlinked_files_not_followed(self, tmp_path: Path):
        skill = make_skill(tmp_path, "foo")
        before = compute_skill_folder_hash(skill)
        outside = tmp_path / "outside.txt"
        outside.write_text("not part of the skill")
        (skill / "linked.txt").symlink_to(outside)
        assert compute_skill_folder_hash(skill) == before

    def test_missing_folder(self, tmp_path: Path):
        with pytest.raises(NotFoundError):
            compute_skill_folder_hash(tmp_path / "missing")


# ---------------------------------------------------------------------------
# Sources, updates and verification
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("value, expected", [
    ("https://github.com/acme/skills", ("acme/skills", SourceType.GITHUB)),
    ("https://github.com/acme/skills.git", ("acme/skills", SourceType.GITHUB)),
    ("https://github.com/acme/skills/tree/main/pdf", ("acme/skills", SourceType.GITHUB)),
    ("acme/skills", ("acme/skills", SourceType.GITHUB)),
    ("/tmp/my-skill", ("/tmp/my-skill", SourceType.NATIVE)),
    ("", ("local", SourceType.NATIVE)),
])
def test_normalize_source(value, expected):
    assert normalize_source(value) == expected


class TestCheckSkillUpdate:
    def test_differs(self, global_lock):
        global_lock.add_skill("foo", LockEntry(source="acme/skills", skill_folder_hash="old"))
        assert check_skill_update("foo", "new", global_lock) is True
        assert check_skill_update("foo", "old", global_lock) is False

    def test_no_recorded_hash(self, global_lock):
        global_lock.add_skill("foo", LockEntry(source="local"))
        assert check_skill_update("foo", "anything", global_lock) is False

    def test_unknown_skill(self, global_lock):
        assert check_skill_update("ghost", "anything", global_lock) is False


def test_verify_project_skills(tmp_path: Path):
    store = tmp_path / ".agents" / "skills"
    project_lock = ProjectSkillLock(tmp_path)
    for name in ("same", "edited", "gone"):
        project_lock.add_skill(name, "local", SourceType.NATIVE, make_skill(store, name))

    (store / "edited" / "SKILL.md").write_text("changed", encoding="utf-8")
    for child in (store / "gone").iterdir():
        child.unlink()
    (store / "gone").rmdir()

    assert verify_project_skills(tmp_path) == {
        "same": DriftStatus.OK,
        "edited": DriftStatus.MODIFIED,
        "gone": DriftStatus.MISSING,
    }
