"""Link strategies: how an agent directory is associated with a canonical skill.

Two representations exist on disk:

- symlink: ``<agent_dir>/<name>`` is a directory symlink (or a junction
  point on Windows) to ``<canonical>/<name>``
- copy: ``<agent_dir>/<name>`` is a real copy carrying a marker file whose
  content is the canonical path it was copied from

The sync mode picks the strategy used to *create* a link. Recognising and
removing links works for both representations regardless of the mode.
"""

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Optional

from .config import DEFAULT_SYNC_MODE, SYNC_MODES
from .errors import SkillKitError, UnsafeLinkState, wrap_errors
from .paths import exists_or_link, is_junction, is_symlink, real
from .store import copy_tree, read_copy_marker, remove_path, write_copy_marker

logger = logging.getLogger(__name__)


# =============================================================================
# Link Inspection
# =============================================================================

def is_link(path: Path) -> bool:
    return is_symlink(path) or is_junction(path)


def link_target(path: Path) -> Optional[str]:
    """Resolve one level of a symlink, then canonicalise the result."""
    try:
        target = os.readlink(path)
    except OSError:
        return None
    if not os.path.isabs(target):
        target = os.path.join(os.path.dirname(str(path)), target)
    return real(target)


def symlink_points_to(path: Path, canonical_path: Path) -> bool:
    target = link_target(path)
    return target is not None and target == real(canonical_path)


def marker_points_to(path: Path, canonical_path: Path) -> bool:
    recorded = read_copy_marker(path)
    return recorded is not None and real(recorded) == real(canonical_path)


def is_association(path: Path) -> bool:
    """A symlink or a marked copy; plain directories are never associations."""
    return is_link(path) or read_copy_marker(path) is not None


def owned_by(path: Path, canonical_path: Path) -> bool:
    """True if ``path`` is an association of ``canonical_path`` in either mode."""
    if is_link(path):
        return symlink_points_to(path, canonical_path)
    return marker_points_to(path, canonical_path)


def create_junction(source: Path, target: Path) -> bool:
    """Create a Windows junction point (directory link that doesn't need admin).

    Junction points work without elevation and are transparent to applications.
    They only work for directories on the same volume.
    """
    if sys.platform != "win32":
        return False

    try:
        result = subprocess.run(
            ["cmd", "/c", "mklink", "/J", str(target), str(source)],
            capture_output=True,
            text=True
        )
    except OSError:
        return False
    return result.returncode == 0


# =============================================================================
# Strategies
# =============================================================================

class LinkStrategy:
    """Creates and removes one representation of an association."""

    mode = None
    # Whether an unmarked directory at the link path may be overwritten
    replaces_plain_dirs = False
    # Appended to user-facing messages once a link exists
    linked_message = "and linked"

    def create(self, canonical_path: Path, link_path: Path):
        raise NotImplementedError

    def is_owned_by(self, link_path: Path, canonical_path: Path) -> bool:
        raise NotImplementedError

    def clear_target(self, canonical_path: Path, link_path: Path) -> bool:
        """Make room for a new association at ``link_path``.

        Returns False when an equivalent link is already in place. A plain
        directory without a marker may hold user data and is only replaced
        in copy mode.
        """
        if not exists_or_link(link_path):
            return True
        if is_link(link_path):
            if self.is_owned_by(link_path, canonical_path):
                return False
            remove_path(link_path)
            return True
        if link_path.is_dir() and read_copy_marker(link_path) is None and not self.replaces_plain_dirs:
            raise UnsafeLinkState(f"{link_path} exists and is not a managed link, skipped")
        remove_path(link_path)
        return True

    def remove(self, canonical_path: Path, link_path: Path):
        """Remove the association at ``link_path``; a missing path is a no-op.

        A symlink must point at ``canonical_path``. A directory must carry a
        marker for ``canonical_path`` unless plain directories are replaceable.
        """
        if not exists_or_link(link_path):
            return
        if is_link(link_path):
            if not symlink_points_to(link_path, canonical_path):
                raise UnsafeLinkState("link points elsewhere, aborted")
        elif not (marker_points_to(link_path, canonical_path) or self.replaces_plain_dirs):
            raise UnsafeLinkState("not a managed link, aborted")
        remove_path(link_path)


class SymlinkStrategy(LinkStrategy):
    mode = "symlink"

    def create(self, canonical_path: Path, link_path: Path):
        if not self.clear_target(canonical_path, link_path):
            logger.debug("%s already links to %s", link_path, canonical_path)
            return
        with wrap_errors(f"Failed to create {link_path.parent}"):
            link_path.parent.mkdir(parents=True, exist_ok=True)

        # Native symlink works on Linux, macOS and Windows with Developer Mode
        try:
            link_path.symlink_to(canonical_path, target_is_directory=True)
            logger.debug("Linked %s -> %s", link_path, canonical_path)
            return
        except OSError as e:
            error = e

        if create_junction(canonical_path, link_path):
            logger.debug("Linked %s -> %s (junction point)", link_path, canonical_path)
            return
        raise SkillKitError(f"Failed to link {link_path}: {error}") from error

    def is_owned_by(self, link_path: Path, canonical_path: Path) -> bool:
        return is_link(link_path) and symlink_points_to(link_path, canonical_path)


class CopyStrategy(LinkStrategy):
    mode = "copy"
    replaces_plain_dirs = True
    linked_message = "and created a tracked copy"

    def create(self, canonical_path: Path, link_path: Path):
        self.clear_target(canonical_path, link_path)
        copy_tree(canonical_path, link_path)
        write_copy_marker(link_path, canonical_path)
        logger.debug("Copied %s -> %s", canonical_path, link_path)

    def is_owned_by(self, link_path: Path, canonical_path: Path) -> bool:
        return not is_link(link_path) and marker_points_to(link_path, canonical_path)


def strategy_for(mode: Optional[str] = None) -> LinkStrategy:
    mode = mode or DEFAULT_SYNC_MODE
    if mode not in SYNC_MODES:
        raise SkillKitError(f"sync mode must be one of: {', '.join(SYNC_MODES)}")
    return CopyStrategy() if mode == "copy" else SymlinkStrategy()
