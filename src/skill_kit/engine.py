"""Link/unlink engine: install, relink, unify and delete skills.

The canonical copy is the source of truth. Agent links are best-effort: a
failure on one agent is reported as a warning and never undoes the others.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .agents import AgentRegistry
from .config import current_sync_mode
from .descriptor import read_skill_name
from .errors import NotFoundError, SkillKitError, UnsafeLinkState, wrap_errors
from .linking import is_association, owned_by, strategy_for
from .lock import GlobalSkillLock, LockEntry, ProjectSkillLock, SourceType, normalize_source
from .paths import Scope, canonical_root, exists_or_link, is_under, real, sanitize_name
from .store import canonical_skill_path, copy_tree, remove_path

logger = logging.getLogger(__name__)


@dataclass
class Provenance:
    """Where an installed skill came from."""

    source: str
    source_type: SourceType = SourceType.NATIVE
    source_url: str = ""
    skill_path: Optional[str] = None
    skill_folder_hash: Optional[str] = None

    @classmethod
    def from_source(cls, value: str, **kwargs) -> "Provenance":
        source, source_type = normalize_source(value)
        return cls(source=source, source_type=source_type, source_url=value, **kwargs)


@dataclass
class InstallResult:
    name: str
    canonical_path: Path
    linked: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    success: bool = True

    @property
    def stderr(self) -> str:
        return "\n".join(self.warnings)


@dataclass(frozen=True)
class UnifyResult:
    success: bool
    message: str


@dataclass
class DeleteResult:
    name: str
    canonical_removed: bool = False
    removed_links: List[str] = field(default_factory=list)
    lock_removed: bool = False


def _same_dir(a: Path, b: Path) -> bool:
    return real(a) == real(b)


def _agent_dirs(
    registry: AgentRegistry,
    scope: Scope,
    project_root: Optional[Path],
):
    """(agent id, skills dir) for each installed agent supporting ``scope``.

    An agent whose skills dir *is* the canonical store is left out, since
    removing "its" link would remove the canonical folder.
    """
    store = canonical_root(scope, project_root)
    for app in registry.installed_agents():
        try:
            agent_dir = registry.agent_dir(app.id, scope, project_root)
        except NotFoundError:
            continue
        if _same_dir(agent_dir, store):
            continue
        yield app.id, agent_dir


def _remove_associations(agent_dir: Path, canonical: Path) -> int:
    """Remove every association of ``canonical`` in ``agent_dir``.

    That is the same-name entry when it is a symlink or marked copy, plus any
    entry under another name that links to ``canonical``. Unmarked plain
    folders are left alone. Returns the number of entries removed.
    """
    if not agent_dir.is_dir():
        return 0
    removed = 0
    with wrap_errors(f"Failed to list {agent_dir}"):
        children = sorted(agent_dir.iterdir())
    for child in children:
        same_name = child.name == canonical.name and is_association(child)
        if same_name or owned_by(child, canonical):
            remove_path(child)
            removed += 1
    return removed


def _record_provenance(
    name: str,
    canonical: Path,
    scope: Scope,
    project_root: Optional[Path],
    provenance: Provenance,
    lock: Optional[GlobalSkillLock],
):
    if scope == Scope.GLOBAL:
        (lock or GlobalSkillLock()).add_skill(name, LockEntry(
            source=provenance.source,
            source_type=provenance.source_type,
            source_url=provenance.source_url,
            skill_path=provenance.skill_path,
            skill_folder_hash=provenance.skill_folder_hash,
        ))
    else:
        ProjectSkillLock(project_root or Path.cwd()).add_skill(
            name, provenance.source, provenance.source_type, canonical,
        )


# =============================================================================
# Install
# =============================================================================

def install(
    source_dir: Union[str, Path],
    name: Optional[str] = None,
    agents: Iterable[str] = (),
    scope: Scope = Scope.GLOBAL,
    project_root: Optional[Union[str, Path]] = None,
    sync_mode: Optional[str] = None,
    provenance: Optional[Provenance] = None,
    registry: Optional[AgentRegistry] = None,
    lock: Optional[GlobalSkillLock] = None,
) -> InstallResult:
    """Copy a staged skill into the canonical store and link it to ``agents``.

    Steps:
    1. Replace the canonical entry with a copy of ``source_dir``
    2. Remove every existing association for the name, in every installed agent
    3. Link each selected agent with the active sync mode
    4. Record provenance in the global or project lock

    Only step 1 raises; problems in later steps become warnings.
    """
    scope = Scope(scope)
    source_dir = Path(source_dir)
    project_root = Path(project_root) if project_root is not None else None
    registry = registry or AgentRegistry()
    strategy = strategy_for(sync_mode or current_sync_mode())

    if not source_dir.is_dir():
        raise NotFoundError(f"Skill folder does not exist: {source_dir}")
    name = name or read_skill_name(source_dir)

    canonical = canonical_skill_path(name, scope, project_root)
    if not _same_dir(source_dir, canonical):
        if is_under(source_dir, canonical):
            raise SkillKitError(f"Cannot install {source_dir} from inside {canonical}")
        remove_path(canonical)
        copy_tree(source_dir, canonical)
        logger.info("Installed %s into %s", name, canonical)

    result = InstallResult(name=name, canonical_path=canonical)
    link_name = canonical.name

    for agent_id, agent_dir in _agent_dirs(registry, scope, project_root):
        try:
            _remove_associations(agent_dir, canonical)
        except SkillKitError as e:
            result.warnings.append(f"{agent_id}: {e}")

    store = canonical_root(scope, project_root)
    for agent_id in agents:
        try:
            agent_dir = registry.agent_dir(agent_id, scope, project_root)
            if _same_dir(agent_dir, store):
                result.linked.append(agent_id)
                continue
            strategy.create(canonical, agent_dir / link_name)
            result.linked.append(agent_id)
        except SkillKitError as e:
            logger.warning("Could not link %s to %s: %s", name, agent_id, e)
            result.warnings.append(f"{agent_id}: {e}")

    provenance = provenance or Provenance(source=str(source_dir))
    try:
        _record_provenance(name, canonical, scope, project_root, provenance, lock)
    except SkillKitError as e:
        result.warnings.append(f"lock: {e}")

    return result


# =============================================================================
# Link / Unlink
# =============================================================================

def set_agent_link(
    name: str,
    agent: str,
    scope: Scope = Scope.GLOBAL,
    linked: bool = True,
    project_root: Optional[Union[str, Path]] = None,
    sync_mode: Optional[str] = None,
    registry: Optional[AgentRegistry] = None,
):
    """Create or remove one agent's association with a canonical skill.

    Removal refuses to touch anything that is not provably ours: a symlink
    pointing somewhere else, or an unmarked directory outside copy mode.
    """
    scope = Scope(scope)
    project_root = Path(project_root) if project_root is not None else None
    registry = registry or AgentRegistry()
    strategy = strategy_for(sync_mode or current_sync_mode())

    canonical = canonical_root(scope, project_root) / sanitize_name(name)
    agent_dir = registry.agent_dir(agent, scope, project_root)
    link_path = agent_dir / canonical.name
    in_store = _same_dir(agent_dir, canonical_root(scope, project_root))

    if linked:
        if not canonical.is_dir():
            raise NotFoundError(f"Skill '{name}' is not in the canonical store")
        if in_store:
            return
        strategy.create(canonical, link_path)
        logger.info("Linked %s to %s", name, agent)
        return

    if not exists_or_link(link_path):
        return
    if in_store:
        raise UnsafeLinkState("agent directory is the canonical store, aborted")
    strategy.remove(canonical, link_path)
    logger.info("Unlinked %s from %s", name, agent)


# =============================================================================
# Unify
# =============================================================================

def unify(
    name: str,
    scope: Scope,
    current_path: Union[str, Path],
    prefer: str = "canonical",
    project_root: Optional[Union[str, Path]] = None,
    sync_mode: Optional[str] = None,
) -> UnifyResult:
    """Turn a standalone copy into a managed link.

    ``prefer="canonical"`` keeps the canonical content (seeding it from
    ``current_path`` if absent); ``prefer="current"`` overwrites the
    canonical content with ``current_path``. Either way ``current_path``
    ends up as a link to the canonical folder.
    """
    scope = Scope(scope)
    project_root = Path(project_root) if project_root is not None else None
    current_path = Path(current_path)
    strategy = strategy_for(sync_mode or current_sync_mode())

    if prefer not in ("canonical", "current"):
        raise SkillKitError(f"prefer must be 'canonical' or 'current', got '{prefer}'")
    if not exists_or_link(current_path) or not current_path.is_dir():
        raise NotFoundError(f"Skill path does not exist: {current_path}")

    canonical = canonical_skill_path(name, scope, project_root)
    if _same_dir(current_path, canonical) or is_under(current_path, canonical):
        raise SkillKitError(f"{current_path} is already the canonical folder")

    if prefer == "canonical":
        if not canonical.is_dir():
            copy_tree(current_path, canonical)
        message = "Kept canonical version"
    else:
        remove_path(canonical)
        copy_tree(current_path, canonical)
        message = "Replaced canonical version with current"

    remove_path(current_path)
    strategy.create(canonical, current_path)
    logger.info("Unified %s at %s (%s)", name, current_path, prefer)

    return UnifyResult(success=True, message=f"{message} {strategy.linked_message}")


# =============================================================================
# Delete
# =============================================================================

def delete(
    name: str,
    scope: Scope = Scope.GLOBAL,
    project_root: Optional[Union[str, Path]] = None,
    registry: Optional[AgentRegistry] = None,
    lock: Optional[GlobalSkillLock] = None,
) -> DeleteResult:
    """Remove a skill everywhere. Safe to call again on an absent skill."""
    scope = Scope(scope)
    project_root = Path(project_root) if project_root is not None else None
    registry = registry or AgentRegistry()

    canonical = canonical_root(scope, project_root) / sanitize_name(name)
    result = DeleteResult(name=name)

    for agent_id, agent_dir in _agent_dirs(registry, scope, project_root):
        if _remove_associations(agent_dir, canonical):
            result.removed_links.append(agent_id)

    if exists_or_link(canonical):
        remove_path(canonical)
        result.canonical_removed = True

    if scope == Scope.GLOBAL:
        result.lock_removed = (lock or GlobalSkillLock()).remove_skill(name)
    else:
        result.lock_removed = ProjectSkillLock(project_root or Path.cwd()).remove_skill(name)

    logger.info("Deleted %s (%d agent links)", name, len(result.removed_links))
    return result
