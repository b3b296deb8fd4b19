"""SKILL.md front-matter parsing."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .errors import InvalidDescriptor, MissingName
from .paths import SKILL_FILE


@dataclass(frozen=True)
class SkillDescriptor:
    name: Optional[str]
    description: Optional[str]


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def split_frontmatter(content: str) -> str:
    """Return the raw YAML between the leading ``---`` delimiters.

    The very first line must be ``---``; the block ends at the next line that
    is exactly ``---``. Anything else raises InvalidDescriptor.
    """
    lines = content.splitlines()
    if not lines or lines[0].strip() != "---":
        raise InvalidDescriptor("SKILL.md frontmatter not found")

    block = []
    for line in lines[1:]:
        if line.strip() == "---":
            return "\n".join(block) + "\n"
        block.append(line)

    raise InvalidDescriptor("SKILL.md frontmatter not closed")


def parse_frontmatter(content: str) -> SkillDescriptor:
    raw = split_frontmatter(content)
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise InvalidDescriptor(f"Failed to parse SKILL.md frontmatter: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidDescriptor("SKILL.md frontmatter is not a mapping")

    return SkillDescriptor(
        name=_clean(data.get("name")),
        description=_clean(data.get("description")),
    )


def parse_descriptor(path: Union[str, Path]) -> SkillDescriptor:
    """Parse a SKILL.md file (or a skill folder containing one)."""
    path = Path(path)
    if path.is_dir():
        path = path / SKILL_FILE
    try:
        # utf-8-sig drops a BOM some editors prepend
        content = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidDescriptor(f"Failed to read {path}: {e}") from e
    return parse_frontmatter(content)


def read_skill_name(path: Union[str, Path]) -> str:
    """Return the declared skill name, raising MissingName if there is none."""
    descriptor = parse_descriptor(path)
    if not descriptor.name:
        raise MissingName(f"SKILL.md at {path} has no name")
    return descriptor.name
