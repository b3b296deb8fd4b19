"""Canonical skill store and the filesystem helpers shared with linking."""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .errors import wrap_errors
from .paths import (
    COPY_MARKER_FILE,
    SKILL_FILE,
    Scope,
    canonical_root,
    exists_or_link,
    is_junction,
    is_symlink,
    sanitize_name,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CanonicalCheck:
    exists: bool
    canonical_path: Path


def canonical_skill_path(name: str, scope: Scope, project_root: Optional[Path] = None) -> Path:
    """Path of ``name`` inside the canonical store; creates the store directory."""
    base = canonical_root(scope, project_root)
    with wrap_errors(f"Failed to create {base}"):
        base.mkdir(parents=True, exist_ok=True)
    return base / sanitize_name(name)


def check_canonical(name: str, scope: Scope, project_root: Optional[Path] = None) -> CanonicalCheck:
    path = canonical_root(scope, project_root) / sanitize_name(name)
    return CanonicalCheck(exists=path.is_dir(), canonical_path=path)


def list_canonical(scope: Scope, project_root: Optional[Path] = None) -> List[Path]:
    """Child folders of the canonical store that hold a SKILL.md."""
    base = canonical_root(scope, project_root)
    if not base.is_dir():
        return []
    return sorted(p for p in base.iterdir() if p.is_dir() and (p / SKILL_FILE).exists())


def remove_path(path: Path):
    """Remove a symlink, file or directory tree. Missing paths are ignored."""
    if not exists_or_link(path):
        return
    with wrap_errors(f"Failed to remove {path}"):
        if is_symlink(path) or path.is_file():
            path.unlink()
        elif is_junction(path):
            path.rmdir()
        else:
            shutil.rmtree(path)
    logger.debug("Removed %s", path)


def copy_tree(source: Path, dest: Path):
    """Recursive copy of ``source`` into ``dest``, leaving out copy markers."""
    with wrap_errors(f"Failed to copy {source} to {dest}"):
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(
            source,
            dest,
            symlinks=False,
            ignore=shutil.ignore_patterns(COPY_MARKER_FILE),
            dirs_exist_ok=True,
        )
    logger.debug("Copied %s -> %s", source, dest)


def read_copy_marker(path: Path) -> Optional[str]:
    """Canonical path recorded by a copy-mode association, if any."""
    marker = path / COPY_MARKER_FILE
    if is_symlink(path) or not marker.is_file():
        return None
    try:
        return marker.read_text(encoding="utf-8").strip() or None
    except (OSError, UnicodeDecodeError):
        return None


def write_copy_marker(path: Path, canonical_path: Path):
    with wrap_errors(f"Failed to write copy marker in {path}"):
        (path / COPY_MARKER_FILE).write_text(str(canonical_path), encoding="utf-8")
