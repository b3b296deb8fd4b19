"""Provenance lock files: where each skill came from and what it hashed to.

Two independent stores are kept and never merged:

- the global lock, ``<config_dir>/skill-lock.json`` (version 3)
- one project lock per project root, ``<project>/skills-lock.json`` (version 1)

A lock file written by an older format version is treated as empty rather
than migrated.
"""

import hashlib
import json
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import NotFoundError, SkillKitError, wrap_errors
from .paths import Scope, canonical_root, config_dir, sanitize_name

logger = logging.getLogger(__name__)

GLOBAL_LOCK_FILE = "skill-lock.json"
GLOBAL_LOCK_VERSION = 3

PROJECT_LOCK_FILE = "skills-lock.json"
PROJECT_LOCK_VERSION = 1

# Never part of a skill's content hash
HASH_EXCLUDED_DIRS = {".git", "node_modules"}


class SourceType(str, Enum):
    GITHUB = "github"
    NATIVE = "native"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SourceType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class DriftStatus(str, Enum):
    OK = "ok"
    MODIFIED = "modified"
    MISSING = "missing"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Entries
# =============================================================================

@dataclass
class LockEntry:
    source: str
    source_type: SourceType = SourceType.UNKNOWN
    source_url: str = ""
    skill_path: Optional[str] = None
    skill_folder_hash: Optional[str] = None
    installed_at: str = ""
    updated_at: str = ""

    def to_json(self) -> Dict[str, Any]:
        data = {
            "source": self.source,
            "sourceType": SourceType(self.source_type).value,
            "sourceUrl": self.source_url,
            "installedAt": self.installed_at,
            "updatedAt": self.updated_at,
        }
        if self.skill_path is not None:
            data["skillPath"] = self.skill_path
        if self.skill_folder_hash is not None:
            data["skillFolderHash"] = self.skill_folder_hash
        return data

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "LockEntry":
        return cls(
            source=str(data.get("source", "")),
            source_type=SourceType.parse(data.get("sourceType")),
            source_url=str(data.get("sourceUrl", "")),
            skill_path=data.get("skillPath"),
            skill_folder_hash=data.get("skillFolderHash"),
            installed_at=str(data.get("installedAt", "")),
            updated_at=str(data.get("updatedAt", "")),
        )


@dataclass
class ProjectLockEntry:
    source: str
    source_type: SourceType
    computed_hash: str

    def to_json(self) -> Dict[str, str]:
        return {
            "source": self.source,
            "sourceType": SourceType(self.source_type).value,
            "computedHash": self.computed_hash,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ProjectLockEntry":
        return cls(
            source=str(data.get("source", "")),
            source_type=SourceType.parse(data.get("sourceType")),
            computed_hash=str(data.get("computedHash", "")),
        )


# =============================================================================
# Global Lock
# =============================================================================

class GlobalSkillLock:
    """Read-modify-write access to the global lock file.

    Every mutation re-reads the file first so that edits made by another
    process in between are kept (last write wins per entry).
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else config_dir() / GLOBAL_LOCK_FILE

    @staticmethod
    def empty() -> Dict[str, Any]:
        return {"version": GLOBAL_LOCK_VERSION, "skills": {}, "lastSelectedAgents": []}

    def read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return self.empty()
        with wrap_errors(f"Failed to parse lock file {self.path}"):
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        if not isinstance(data, dict) or not isinstance(data.get("skills", {}), dict):
            raise SkillKitError(f"Failed to parse lock file {self.path}: unexpected layout")

        version = data.get("version", GLOBAL_LOCK_VERSION)
        if not isinstance(version, int) or version < GLOBAL_LOCK_VERSION:
            logger.info("Ignoring lock file %s with old version %r", self.path, version)
            return self.empty()

        data.setdefault("skills", {})
        if not isinstance(data.get("lastSelectedAgents"), list):
            data["lastSelectedAgents"] = []
        return data

    def write(self, data: Dict[str, Any]):
        data["version"] = GLOBAL_LOCK_VERSION
        with wrap_errors(f"Failed to write lock file {self.path}"):
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)

    def add_skill(self, name: str, entry: LockEntry) -> LockEntry:
        """Upsert ``name``; ``installed_at`` survives updates, ``updated_at`` is refreshed."""
        data = self.read()
        now = utc_now()
        existing = data["skills"].get(name)
        entry.installed_at = (existing or {}).get("installedAt") or now
        entry.updated_at = now
        data["skills"][name] = entry.to_json()
        self.write(data)
        return entry

    def remove_skill(self, name: str) -> bool:
        data = self.read()
        if name not in data["skills"]:
            return False
        del data["skills"][name]
        self.write(data)
        return True

    def get_skill(self, name: str) -> Optional[LockEntry]:
        raw = self.read()["skills"].get(name)
        return LockEntry.from_json(raw) if isinstance(raw, dict) else None

    def all_skills(self) -> Dict[str, LockEntry]:
        return {
            name: LockEntry.from_json(raw)
            for name, raw in self.read()["skills"].items()
            if isinstance(raw, dict)
        }

    def last_selected_agents(self) -> List[str]:
        return [str(a) for a in self.read()["lastSelectedAgents"]]

    def set_last_selected_agents(self, agents: List[str]):
        data = self.read()
        data["lastSelectedAgents"] = list(agents)
        self.write(data)


# =============================================================================
# Project Lock
# =============================================================================

class ProjectSkillLock:
    """Lock file committed alongside a project's ``.agents/skills``.

    Unlike the global lock, a damaged project lock is read as empty.
    """

    def __init__(self, project_root: Union[str, Path]):
        self.project_root = Path(project_root)
        self.path = self.project_root / PROJECT_LOCK_FILE

    @staticmethod
    def empty() -> Dict[str, Any]:
        return {"version": PROJECT_LOCK_VERSION, "skills": {}}

    def read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return self.empty()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable project lock %s: %s", self.path, e)
            return self.empty()
        if not isinstance(data, dict) or not isinstance(data.get("skills", {}), dict):
            logger.warning("Ignoring malformed project lock %s", self.path)
            return self.empty()

        version = data.get("version", PROJECT_LOCK_VERSION)
        if not isinstance(version, int) or version < PROJECT_LOCK_VERSION:
            return self.empty()
        data.setdefault("skills", {})
        return data

    def write(self, data: Dict[str, Any]):
        data["version"] = PROJECT_LOCK_VERSION
        with wrap_errors(f"Failed to write lock file {self.path}"):
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
                f.write("\n")

    def add_skill(
        self,
        name: str,
        source: str,
        source_type: SourceType,
        skill_dir: Path,
    ) -> ProjectLockEntry:
        data = self.read()
        entry = ProjectLockEntry(
            source=source,
            source_type=SourceType(source_type),
            computed_hash=compute_skill_folder_hash(skill_dir),
        )
        data["skills"][name] = entry.to_json()
        self.write(data)
        return entry

    def remove_skill(self, name: str) -> bool:
        data = self.read()
        if name not in data["skills"]:
            return False
        del data["skills"][name]
        self.write(data)
        return True

    def get_skill(self, name: str) -> Optional[ProjectLockEntry]:
        raw = self.read()["skills"].get(name)
        return ProjectLockEntry.from_json(raw) if isinstance(raw, dict) else None

    def all_skills(self) -> Dict[str, ProjectLockEntry]:
        return {
            name: ProjectLockEntry.from_json(raw)
            for name, raw in self.read()["skills"].items()
            if isinstance(raw, dict)
        }


# =============================================================================
# Hashing & Update Checks
# =============================================================================

def compute_skill_folder_hash(skill_dir: Union[str, Path]) -> str:
    """SHA-256 over ``(relative posix path, file bytes)`` pairs sorted by path.

    Only names and contents count; mtimes, permissions and walk order do not.
    Symlinks are not followed, and any path with a ``.git`` or
    ``node_modules`` component (directory or file) is left out.
    """
    skill_dir = Path(skill_dir)
    if not skill_dir.is_dir():
        raise NotFoundError(f"Skill directory does not exist: {skill_dir}")

    files: List[Tuple[str, bytes]] = []
    with wrap_errors(f"Failed to hash {skill_dir}"):
        for dirpath, dirnames, filenames in os.walk(skill_dir):
            dirnames[:] = [d for d in dirnames if d not in HASH_EXCLUDED_DIRS]
            for filename in filenames:
                full = Path(dirpath) / filename
                if os.path.islink(full) or not full.is_file():
                    continue
                relative = full.relative_to(skill_dir).as_posix()
                if HASH_EXCLUDED_DIRS.intersection(PurePosixPath(relative).parts):
                    continue
                files.append((relative, full.read_bytes()))

    files.sort(key=lambda item: item[0])
    digest = hashlib.sha256()
    for relative, content in files:
        digest.update(relative.encode("utf-8"))
        digest.update(content)
    return digest.hexdigest()


_GITHUB_URL = re.compile(
    r"^(?:https?://(?:www\.)?github\.com/|git@github\.com:)"
    r"(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+?)(?:\.git)?(?:/.*)?$"
)
_OWNER_REPO = re.compile(r"^(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+)$")


def normalize_source(value: str) -> Tuple[str, SourceType]:
    """Map a GitHub URL or ``owner/repo`` to ``owner/repo``; anything else is a local label."""
    value = (value or "").strip()
    match = _GITHUB_URL.match(value) or _OWNER_REPO.match(value)
    if match:
        return f"{match.group('owner')}/{match.group('repo')}", SourceType.GITHUB
    return (value or "local"), SourceType.NATIVE


def check_skill_update(name: str, remote_hash: str, lock: Optional[GlobalSkillLock] = None) -> bool:
    """True only when a recorded hash exists and differs from ``remote_hash``."""
    entry = (lock or GlobalSkillLock()).get_skill(name)
    if entry is None or not entry.skill_folder_hash:
        return False
    return entry.skill_folder_hash != remote_hash


def verify_project_skills(project_root: Union[str, Path]) -> Dict[str, DriftStatus]:
    """Compare each project lock hash with what is in the project canonical store."""
    project_root = Path(project_root)
    base = canonical_root(Scope.PROJECT, project_root)
    result = {}
    for name, entry in ProjectSkillLock(project_root).all_skills().items():
        skill_dir = base / sanitize_name(name)
        if not skill_dir.is_dir():
            result[name] = DriftStatus.MISSING
        elif compute_skill_folder_hash(skill_dir) == entry.computed_hash:
            result[name] = DriftStatus.OK
        else:
            result[name] = DriftStatus.MODIFIED
    return result
