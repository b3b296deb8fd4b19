"""Exceptions raised by skill-kit operations.

Every error carries a human-readable message; the CLI prints it and exits 1.
"""

import json
from contextlib import contextmanager


class SkillKitError(Exception):
    """Base class for all skill-kit failures."""


class NotFoundError(SkillKitError):
    """An explicitly targeted file, folder, skill or agent does not exist."""


class InvalidDescriptor(SkillKitError):
    """SKILL.md is missing, unreadable, or has malformed front matter."""


class MissingName(InvalidDescriptor):
    """SKILL.md front matter has no usable ``name``."""


class ConflictError(SkillKitError):
    """A user agent app collides with an installed one."""


class UnsafeLinkState(SkillKitError):
    """An on-disk entry is not the association we expected; nothing was removed."""


class InternalAgentError(SkillKitError):
    """Built-in agent apps cannot be updated or removed."""


@contextmanager
def wrap_errors(action: str):
    """Re-raise filesystem and JSON errors as SkillKitError.

    Usage:
        with wrap_errors("Failed to write lock file"):
            path.write_text(...)
    """
    try:
        yield
    except SkillKitError:
        raise
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SkillKitError(f"{action}: {e}") from e
