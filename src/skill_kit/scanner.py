"""Discovery scanner: re-derives what is installed where by walking the disk.

Nothing is cached between calls and the lock files are only used to add
``source`` information, never to decide what exists.
"""

import logging
import os
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from .agents import AgentRegistry
from .descriptor import SkillDescriptor, parse_descriptor
from .errors import SkillKitError
from .lock import GlobalSkillLock, ProjectSkillLock, SourceType
from .paths import IGNORED_DIRS, SKILL_FILE, Scope, canonical_root, is_under, real
from .store import read_copy_marker

logger = logging.getLogger(__name__)

# Extra scan roots are walked this many levels deep
CUSTOM_ROOT_MAX_DEPTH = 5


# =============================================================================
# Skill State
# =============================================================================

class ManagedStatus(str, Enum):
    MANAGED = "managed"
    UNMANAGED = "unmanaged"
    MIXED = "mixed"


@dataclass(frozen=True)
class Managed:
    """Lives in (or links into) the canonical store."""

    status = ManagedStatus.MANAGED


@dataclass(frozen=True)
class Unmanaged:
    """A standalone folder no canonical entry knows about."""

    name_conflict: bool = False
    status = ManagedStatus.UNMANAGED


@dataclass(frozen=True)
class Mixed:
    """A standalone folder whose name is also a managed skill."""

    name_conflict: bool = False
    status = ManagedStatus.MIXED


SkillState = Union[Managed, Unmanaged, Mixed]


@dataclass
class LocalSkill:
    name: str
    scope: Scope
    canonical_path: str
    state: SkillState
    description: Optional[str] = None
    agents: List[str] = field(default_factory=list)
    created_at: Optional[int] = None
    source: Optional[str] = None
    source_type: SourceType = SourceType.UNKNOWN

    @property
    def managed_status(self) -> ManagedStatus:
        return self.state.status

    @property
    def name_conflict(self) -> bool:
        return getattr(self.state, "name_conflict", False)

    @property
    def conflict_with_managed(self) -> bool:
        return isinstance(self.state, Mixed)

    def add_agent(self, agent_id: str):
        if agent_id not in self.agents:
            self.agents.append(agent_id)

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "description": self.description,
            "scope": Scope(self.scope).value,
            "canonical_path": self.canonical_path,
            "agents": list(self.agents),
            "managed_status": self.managed_status.value,
            "name_conflict": self.name_conflict,
            "conflict_with_managed": self.conflict_with_managed,
            "created_at": self.created_at,
            "source": self.source,
            "source_type": SourceType(self.source_type).value,
        }


@dataclass
class ScanResult:
    managed: Dict[Tuple[Scope, str], LocalSkill] = field(default_factory=dict)
    unmanaged: List[LocalSkill] = field(default_factory=list)

    def all_skills(self) -> List[LocalSkill]:
        return list(self.managed.values()) + list(self.unmanaged)

    def find(self, name: str, scope: Optional[Scope] = None) -> List[LocalSkill]:
        return [
            skill for skill in self.all_skills()
            if skill.name == name and (scope is None or skill.scope == scope)
        ]


# =============================================================================
# Helpers
# =============================================================================

def _is_skill_dir(path: Path) -> bool:
    # is_dir() follows symlinks, so directory symlinks count too
    return path.is_dir() and (path / SKILL_FILE).is_file()


def _read_descriptor(skill_dir: Path) -> Optional[SkillDescriptor]:
    try:
        descriptor = parse_descriptor(skill_dir / SKILL_FILE)
    except SkillKitError as e:
        logger.debug("Skipping %s: %s", skill_dir, e)
        return None
    if not descriptor.name:
        logger.debug("Skipping %s: SKILL.md has no name", skill_dir)
        return None
    return descriptor


def _created_at(path: Path) -> Optional[int]:
    """Best-effort creation time in epoch milliseconds."""
    try:
        st = path.stat()
    except OSError:
        return None
    created = getattr(st, "st_birthtime", None) or st.st_mtime
    return int(created * 1000)


def _children(base: Path) -> List[Path]:
    try:
        return sorted(base.iterdir())
    except OSError:
        return []


# =============================================================================
# Scanner
# =============================================================================

class _Scan:
    def __init__(self, roots: Dict[Scope, Path]):
        self.roots = roots
        self.result = ScanResult()
        # resolved path -> (scope, name, description, agent ids)
        self.candidates: Dict[str, Tuple[Scope, str, Optional[str], List[str]]] = {}

    def collect_canonical(self, scope: Scope, base: Path):
        for child in _children(base):
            if not _is_skill_dir(child):
                continue
            descriptor = _read_descriptor(child)
            if descriptor is None:
                continue
            self.result.managed.setdefault((scope, descriptor.name), LocalSkill(
                name=descriptor.name,
                description=descriptor.description,
                scope=scope,
                canonical_path=real(child),
                state=Managed(),
                created_at=_created_at(child),
            ))

    def managed_target(self, scope: Scope, child: Path) -> Optional[str]:
        """Canonical path ``child`` stands for, or None if it is standalone."""
        root = self.roots[scope]
        if is_under(child, root):
            return real(child)
        recorded = read_copy_marker(child)
        if recorded and is_under(recorded, root):
            return real(recorded)
        return None

    def collect_agent(self, scope: Scope, agent_id: str, base: Path):
        for child in _children(base):
            if not _is_skill_dir(child):
                continue
            descriptor = _read_descriptor(child)
            if descriptor is None:
                continue

            target = self.managed_target(scope, child)
            if target is not None:
                record = self.result.managed.setdefault((scope, descriptor.name), LocalSkill(
                    name=descriptor.name,
                    description=descriptor.description,
                    scope=scope,
                    canonical_path=target,
                    state=Managed(),
                    created_at=_created_at(child),
                ))
                record.add_agent(agent_id)
                continue

            key = real(child)
            if key in self.candidates:
                self.candidates[key][3].append(agent_id)
            else:
                self.candidates[key] = (scope, descriptor.name, descriptor.description, [agent_id])

    def collect_custom(self, root: Path):
        root = Path(root)
        if not root.is_dir():
            return
        root_depth = len(root.parts)
        found: List[Path] = []
        for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
            current = Path(dirpath)
            depth = len(current.parts) - root_depth
            dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)

            if SKILL_FILE in filenames and depth < CUSTOM_ROOT_MAX_DEPTH:
                found.append(current)
            for name in dirnames:
                sub = current / name
                if os.path.islink(sub) and _is_skill_dir(sub):
                    found.append(sub)
            if depth + 1 >= CUSTOM_ROOT_MAX_DEPTH:
                dirnames[:] = []

        for skill_dir in found:
            if any(is_under(skill_dir, base) for base in self.roots.values()):
                continue
            recorded = read_copy_marker(skill_dir)
            if recorded and any(is_under(recorded, base) for base in self.roots.values()):
                continue
            key = real(skill_dir)
            if key in self.candidates:
                continue
            descriptor = _read_descriptor(skill_dir)
            if descriptor is None:
                continue
            self.candidates[key] = (Scope.CUSTOM, descriptor.name, descriptor.description, [])

    def classify(self):
        managed_names: Dict[Scope, Set[str]] = {}
        for scope, name in self.result.managed:
            managed_names.setdefault(scope, set()).add(name)
        all_managed = set().union(*managed_names.values()) if managed_names else set()

        counts = Counter(name for _, name, _, _ in self.candidates.values())
        for path, (scope, name, description, agents) in self.candidates.items():
            if scope == Scope.CUSTOM:
                conflicts = name in all_managed
            else:
                conflicts = name in managed_names.get(scope, set())
            duplicated = counts[name] > 1
            state = Mixed(name_conflict=duplicated) if conflicts else Unmanaged(name_conflict=duplicated)
            self.result.unmanaged.append(LocalSkill(
                name=name,
                description=description,
                scope=scope,
                canonical_path=path,
                state=state,
                agents=list(agents),
                created_at=_created_at(Path(path)),
            ))


def _enrich(skills: Iterable[LocalSkill], sources: Dict[Scope, Dict[str, Tuple[str, SourceType]]]):
    for skill in skills:
        found = sources.get(skill.scope, {}).get(skill.name)
        if found:
            skill.source, skill.source_type = found


def _lock_sources(
    project_root: Optional[Path],
    lock: Optional[GlobalSkillLock],
) -> Dict[Scope, Dict[str, Tuple[str, SourceType]]]:
    sources: Dict[Scope, Dict[str, Tuple[str, SourceType]]] = {}
    try:
        entries = (lock or GlobalSkillLock()).all_skills()
    except SkillKitError as e:
        logger.warning("Global lock not used for scan: %s", e)
        entries = {}
    sources[Scope.GLOBAL] = {name: (e.source, e.source_type) for name, e in entries.items()}
    if project_root is not None:
        project_entries = ProjectSkillLock(project_root).all_skills()
        sources[Scope.PROJECT] = {
            name: (e.source, e.source_type) for name, e in project_entries.items()
        }
    return sources


def scan_local_skills(
    registry: Optional[AgentRegistry] = None,
    project_root: Optional[Union[str, Path]] = None,
    scan_roots: Iterable[Union[str, Path]] = (),
    lock: Optional[GlobalSkillLock] = None,
) -> ScanResult:
    """Walk the canonical stores, every installed agent and the extra scan roots.

    Folders without a readable, named SKILL.md are left out; missing
    directories simply contribute nothing.
    """
    registry = registry or AgentRegistry()
    project_root = Path(project_root) if project_root is not None else None

    roots = {Scope.GLOBAL: canonical_root(Scope.GLOBAL)}
    if project_root is not None:
        roots[Scope.PROJECT] = canonical_root(Scope.PROJECT, project_root)

    scan = _Scan(roots)
    for scope, base in roots.items():
        scan.collect_canonical(scope, base)

    for app in registry.installed_agents():
        global_dir = app.global_dir()
        if global_dir is not None:
            scan.collect_agent(Scope.GLOBAL, app.id, global_dir)
        if project_root is not None and app.project_path:
            scan.collect_agent(Scope.PROJECT, app.id, project_root / app.project_path)

    for root in scan_roots:
        scan.collect_custom(Path(root).expanduser())

    scan.classify()
    _enrich(scan.result.all_skills(), _lock_sources(project_root, lock))
    logger.debug(
        "Scan found %d managed and %d unmanaged skills",
        len(scan.result.managed), len(scan.result.unmanaged),
    )
    return scan.result
