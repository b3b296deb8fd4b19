"""Agent app registry: built-in table plus user-added entries.

An agent app counts as *installed* when its global skills folder exists.
There is no package manager to ask, so path existence is the definition.
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .errors import (
    ConflictError,
    InternalAgentError,
    NotFoundError,
    SkillKitError,
    wrap_errors,
)
from .paths import Scope, config_dir, expand_home

logger = logging.getLogger(__name__)


# =============================================================================
# Built-in Agent Apps
# =============================================================================

# id -> display name, project-relative skills dir, global skills dir
BUILTIN_AGENTS = {
    "claude-code": {
        "name": "Claude Code",
        "project_path": ".claude/skills",
        "global_path": "~/.claude/skills",
    },
    "codex": {
        "name": "Codex",
        "project_path": ".codex/skills",
        "global_path": "~/.codex/skills",
    },
    "cursor": {
        "name": "Cursor",
        "project_path": ".cursor/skills",
        "global_path": "~/.cursor/skills",
    },
    "cline": {
        "name": "Cline",
        "project_path": ".cline/skills",
        "global_path": "~/.cline/skills",
    },
    "opencode": {
        "name": "OpenCode",
        "project_path": ".opencode/skills",
        "global_path": "~/.config/opencode/skills",   # not ~/.opencode
    },
    "openhands": {
        "name": "OpenHands",
        "project_path": ".openhands/skills",
        "global_path": "~/.openhands/skills",
    },
    "github-copilot": {
        "name": "GitHub Copilot",
        "project_path": ".github/skills",
        "global_path": "~/.copilot/skills",
    },
    "continue": {
        "name": "Continue",
        "project_path": ".continue/skills",
        "global_path": "~/.continue/skills",
    },
    "gemini-cli": {
        "name": "Gemini CLI",
        "project_path": ".gemini/skills",
        "global_path": "~/.gemini/skills",
    },
    "goose": {
        "name": "Goose",
        "project_path": ".goose/skills",
        "global_path": "~/.config/goose/skills",
    },
    "windsurf": {
        "name": "Windsurf",
        "project_path": ".windsurf/skills",
        "global_path": "~/.codeium/windsurf/skills",
    },
    "roo": {
        "name": "Roo Code",
        "project_path": ".roo/skills",
        "global_path": "~/.roo/skills",
    },
    "kiro-cli": {
        "name": "Kiro CLI",
        "project_path": ".kiro/skills",
        "global_path": "~/.kiro/skills",
    },
    "qwen-code": {
        "name": "Qwen Code",
        "project_path": ".qwen/skills",
        "global_path": "~/.qwen/skills",
    },
    "amp": {
        "name": "AMP",
        "project_path": ".agents/skills",    # same folder as the project canonical store
        "global_path": "~/.config/agents/skills",
    },
    "antigravity": {
        "name": "Antigravity",
        "project_path": ".agent/skills",
        "global_path": "~/.gemini/antigravity/skills",
    },
    "command-code": {
        "name": "Command Code",
        "project_path": ".commandcode/skills",
        "global_path": "~/.commandcode/skills",
    },
    "crush": {
        "name": "Crush",
        "project_path": ".crush/skills",
        "global_path": "~/.config/crush/skills",
    },
    "trae": {
        "name": "Trae",
        "project_path": ".trae/skills",
        "global_path": "~/.trae/skills",
    },
    "trae-cn": {
        "name": "Trae CN",
        "project_path": ".trae-cn/skills",
        "global_path": "~/.trae-cn/skills",
    },
    "vscode": {
        "name": "VSCode",
        "project_path": ".github/skills",
        "global_path": "~/.vscode/skills",
    },
}


@dataclass(frozen=True)
class AgentApp:
    id: str
    display_name: str
    project_path: Optional[str] = None
    global_path: Optional[str] = None
    is_user_custom: bool = False

    @property
    def is_internal(self) -> bool:
        return not self.is_user_custom

    def global_dir(self) -> Optional[Path]:
        return expand_home(self.global_path) if self.global_path else None

    def to_json(self) -> Dict[str, str]:
        data = {
            "id": self.id,
            "displayName": self.display_name,
            "globalPath": self.global_path or "",
        }
        if self.project_path:
            data["projectPath"] = self.project_path
        return data

    @classmethod
    def from_json(cls, data: Dict) -> "AgentApp":
        return cls(
            id=str(data["id"]),
            display_name=str(data.get("displayName", data["id"])),
            global_path=data.get("globalPath") or None,
            project_path=data.get("projectPath") or None,
            is_user_custom=True,
        )


def builtin_agent_apps() -> List[AgentApp]:
    return [
        AgentApp(
            id=agent_id,
            display_name=info["name"],
            project_path=info["project_path"],
            global_path=info["global_path"],
        )
        for agent_id, info in BUILTIN_AGENTS.items()
    ]


def generate_id_from_display_name(display_name: str) -> str:
    """Lowercase, spaces to hyphens, drop everything but ``[a-z0-9-]``."""
    slug = display_name.strip().lower().replace(" ", "-")
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    return slug or "agent"


def _path_key(path: Optional[str]) -> str:
    return str(expand_home(path)).rstrip("/\\").lower() if path else ""


# =============================================================================
# Registry
# =============================================================================

class AgentRegistry:
    """Merged view of built-in and user agent apps.

    ``installed_agents()`` is memoised on the instance; ``refresh()`` throws
    the memo away and recomputes it in one go. Mutations refresh
    automatically.
    """

    def __init__(self, registry_path: Optional[Path] = None):
        self.registry_path = Path(registry_path) if registry_path else config_dir() / "user_agent_apps.json"
        self._installed: Optional[List[AgentApp]] = None

    # -- persistence ----------------------------------------------------------

    def load_user_agents(self) -> List[AgentApp]:
        if not self.registry_path.exists():
            return []
        with wrap_errors(f"Failed to read {self.registry_path}"):
            with open(self.registry_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        if not isinstance(data, list):
            raise SkillKitError(f"{self.registry_path} must contain a JSON array")
        try:
            return [AgentApp.from_json(item) for item in data]
        except (KeyError, TypeError) as e:
            raise SkillKitError(f"Malformed agent entry in {self.registry_path}: {e}") from e

    def save_user_agents(self, apps: List[AgentApp]):
        with wrap_errors(f"Failed to write {self.registry_path}"):
            self.registry_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.registry_path, "w", encoding="utf-8") as f:
                json.dump([app.to_json() for app in apps], f, indent=2)

    # -- queries --------------------------------------------------------------

    def all_agents(self) -> List[AgentApp]:
        """Built-ins plus user entries; a user entry replaces any built-in
        with the same id or the same global path."""
        result = builtin_agent_apps()
        for user_app in self.load_user_agents():
            user_key = _path_key(user_app.global_path)
            result = [
                app for app in result
                if app.id != user_app.id
                and not (user_key and _path_key(app.global_path) == user_key)
            ]
            result.append(user_app)
        return result

    def resolve_paths(self) -> Dict[str, Dict[str, Optional[str]]]:
        return {
            app.id: {"global_path": app.global_path, "project_path": app.project_path}
            for app in self.all_agents()
        }

    def installed_agents(self) -> List[AgentApp]:
        if self._installed is None:
            self.refresh()
        return list(self._installed)

    def refresh(self) -> List[AgentApp]:
        installed = []
        for app in self.all_agents():
            global_dir = app.global_dir()
            if global_dir is not None and global_dir.is_dir():
                installed.append(app)
        logger.debug("Installed agents: %s", [app.id for app in installed])
        self._installed = installed
        return list(installed)

    def get(self, agent_id: str) -> AgentApp:
        for app in self.all_agents():
            if app.id == agent_id:
                return app
        raise NotFoundError(f"Unknown agent app: {agent_id}")

    def agent_dir(self, agent_id: str, scope: Scope, project_root: Optional[Path] = None) -> Path:
        """Skills directory of an agent for the given scope."""
        app = self.get(agent_id)
        if Scope(scope) == Scope.GLOBAL:
            if not app.global_path:
                raise NotFoundError(f"{app.display_name} does not support global installs")
            return expand_home(app.global_path)
        if not app.project_path:
            raise NotFoundError(f"{app.display_name} does not support project installs")
        base = Path(project_root) if project_root else Path.cwd()
        return base / app.project_path

    # -- mutations ------------------------------------------------------------

    def _validate(self, display_name: str, global_path: str, current_id: Optional[str] = None):
        if not display_name:
            raise SkillKitError("Display name is required")
        if not global_path:
            raise SkillKitError("Global path is required")

        others = [app for app in self.installed_agents() if app.id != current_id]
        if any(app.display_name.lower() == display_name.lower() for app in others):
            raise ConflictError(f"Display name '{display_name}' already exists")
        if any(_path_key(app.global_path) == _path_key(global_path) for app in others):
            raise ConflictError(f"Global path '{global_path}' already exists")

        if not expand_home(global_path).is_dir():
            raise SkillKitError(f"Global path folder does not exist: {global_path}")

    def add(self, display_name: str, global_path: str, project_path: Optional[str] = None) -> AgentApp:
        display_name = display_name.strip()
        global_path = global_path.strip()
        project_path = project_path.strip() if project_path else None
        self._validate(display_name, global_path)

        app = AgentApp(
            id=generate_id_from_display_name(display_name),
            display_name=display_name,
            global_path=global_path,
            project_path=project_path or None,
            is_user_custom=True,
        )
        apps = [a for a in self.load_user_agents() if a.id != app.id]
        apps.append(app)
        self.save_user_agents(apps)
        self.refresh()
        logger.info("Added agent app %s (%s)", app.id, global_path)
        return app

    def update(
        self,
        agent_id: str,
        display_name: str,
        global_path: str,
        project_path: Optional[str] = None,
    ) -> AgentApp:
        existing = self.get(agent_id)
        if existing.is_internal:
            raise InternalAgentError("Cannot update internal agent apps")

        display_name = display_name.strip()
        global_path = global_path.strip()
        project_path = project_path.strip() if project_path else None
        self._validate(display_name, global_path, current_id=agent_id)

        updated = AgentApp(
            id=agent_id,
            display_name=display_name,
            global_path=global_path,
            project_path=project_path or None,
            is_user_custom=True,
        )
        apps = [updated if a.id == agent_id else a for a in self.load_user_agents()]
        self.save_user_agents(apps)
        self.refresh()
        return updated

    def remove(self, agent_id: str):
        existing = self.get(agent_id)
        if existing.is_internal:
            raise InternalAgentError("Cannot remove internal agent apps")
        self.save_user_agents([a for a in self.load_user_agents() if a.id != agent_id])
        self.refresh()
        logger.info("Removed agent app %s", agent_id)
