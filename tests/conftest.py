"""Shared fixtures: every test runs against a throwaway home and config dir."""

from pathlib import Path
from typing import Optional

import pytest

from skill_kit.agents import AgentRegistry
from skill_kit.lock import GlobalSkillLock


def make_skill(
    base_dir: Path,
    folder: str,
    name: Optional[str] = None,
    description: str = "",
    body: str = "Body text.\n",
) -> Path:
    """Create ``base_dir/folder/SKILL.md`` and return the skill folder."""
    skill_dir = base_dir / folder
    skill_dir.mkdir(parents=True, exist_ok=True)
    name = folder if name is None else name
    content = f"---\nname: {name}\ndescription: {description or name + ' skill'}\n---\n\n# {name}\n{body}"
    (skill_dir / "SKILL.md").write_text(content, encoding="utf-8")
    return skill_dir


@pytest.fixture(autouse=True)
def home(tmp_path: Path, monkeypatch) -> Path:
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    monkeypatch.setenv("USERPROFILE", str(home_dir))
    monkeypatch.setenv("SKILL_KIT_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.delenv("GH_TOKEN", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    return home_dir


@pytest.fixture
def claude_dir(home: Path) -> Path:
    path = home / ".claude" / "skills"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def codex_dir(home: Path) -> Path:
    path = home / ".codex" / "skills"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def registry(claude_dir: Path, codex_dir: Path) -> AgentRegistry:
    """Registry with Claude Code and Codex installed."""
    return AgentRegistry()


@pytest.fixture
def canonical_dir(home: Path) -> Path:
    return home / ".agents" / "skills"


@pytest.fixture
def global_lock() -> GlobalSkillLock:
    return GlobalSkillLock()


@pytest.fixture
def source(tmp_path: Path) -> Path:
    """A staged skill folder named ``foo``."""
    return make_skill(tmp_path / "staging", "foo", body="version one\n")
