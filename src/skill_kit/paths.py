"""Filesystem locations and path helpers shared by every module."""

import os
import sys
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import typer

APP_NAME = "skill-kit"

# Canonical store, relative to the home directory or a project root
CANONICAL_DIR = Path(".agents") / "skills"

SKILL_FILE = "SKILL.md"

# Hidden file written inside copy-mode associations
COPY_MARKER_FILE = ".skill-kit-link"

# Directories never descended into while walking for skills
IGNORED_DIRS = {"node_modules", ".git", "target", "dist"}


class Scope(str, Enum):
    GLOBAL = "global"
    PROJECT = "project"
    CUSTOM = "custom"  # extra scan roots, scanner only


def home_dir() -> Path:
    return Path.home()


def config_dir() -> Path:
    """Per-OS config directory (``SKILL_KIT_CONFIG_DIR`` overrides it)."""
    override = os.getenv("SKILL_KIT_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return Path(typer.get_app_dir(APP_NAME))


def expand_home(path: Union[str, Path]) -> Path:
    """Expand a leading ``~/`` against the current home directory."""
    text = str(path)
    if text == "~":
        return home_dir()
    if text.startswith("~/") or text.startswith("~\\"):
        return home_dir() / text[2:]
    return Path(text)


def normalize_path(path: Union[str, Path]) -> str:
    """Absolute, ``~``-expanded string form used for persisted paths."""
    return os.path.abspath(str(expand_home(path)))


def real(path: Union[str, Path]) -> str:
    """Fully resolved path string; defeats aliases like /private/var on macOS."""
    return os.path.realpath(str(path))


def is_under(path: Union[str, Path], root: Union[str, Path]) -> bool:
    """True if ``path`` resolves to ``root`` or somewhere beneath it."""
    path_real = real(path)
    root_real = real(root)
    if path_real == root_real:
        return True
    return path_real.startswith(root_real.rstrip(os.sep) + os.sep)


def is_symlink(path: Path) -> bool:
    return os.path.islink(path)


def exists_or_link(path: Path) -> bool:
    """True for anything at ``path``, including dangling symlinks."""
    return os.path.lexists(path)


def sanitize_name(name: str) -> str:
    """Folder-safe form of a skill name.

    Lowercases, keeps ``[a-z0-9._-]`` and turns everything else into ``-``.
    Leading/trailing ``-`` and ``.`` are trimmed; an empty result becomes
    ``unnamed-skill``.
    """
    out = []
    for ch in name:
        if ch.isascii() and (ch.isalnum() or ch in "._-"):
            out.append(ch.lower())
        else:
            out.append("-")
    trimmed = "".join(out).strip("-.")
    if not trimmed:
        return "unnamed-skill"
    return trimmed[:255]


def canonical_root(scope: Scope, project_root: Optional[Path] = None) -> Path:
    """Root of the canonical store for ``scope``."""
    scope = Scope(scope)
    if scope == Scope.GLOBAL:
        return home_dir() / CANONICAL_DIR
    if scope == Scope.PROJECT:
        base = Path(project_root) if project_root else Path.cwd()
        return base / CANONICAL_DIR
    raise ValueError(f"Scope '{scope.value}' has no canonical store")


def is_junction(path: Path) -> bool:
    """Check if a path is a Windows junction point."""
    if sys.platform != "win32":
        return False
    try:
        import ctypes
        FILE_ATTRIBUTE_REPARSE_POINT = 0x400
        attrs = ctypes.windll.kernel32.GetFileAttributesW(str(path))
        return attrs != -1 and bool(attrs & FILE_ATTRIBUTE_REPARSE_POINT)
    except (AttributeError, OSError):
        return False
