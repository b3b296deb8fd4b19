"""User preferences: sync mode and extra scan roots."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from .errors import SkillKitError, wrap_errors
from .paths import config_dir, normalize_path

logger = logging.getLogger(__name__)

SYNC_MODES = ("symlink", "copy")
DEFAULT_SYNC_MODE = "symlink"


def get_config_path() -> Path:
    """Get the path to the skill-kit config file."""
    return config_dir() / "config.json"


def default_config() -> Dict[str, Any]:
    return {
        "sync_mode": DEFAULT_SYNC_MODE,
        "scan_roots": [],
    }


def load_config() -> Dict[str, Any]:
    """Load the skill-kit configuration, filling in defaults."""
    config = default_config()
    config_path = get_config_path()
    if config_path.exists():
        with wrap_errors(f"Failed to read config {config_path}"):
            with open(config_path, "r", encoding="utf-8") as f:
                stored = json.load(f)
        if isinstance(stored, dict):
            config.update(stored)

    if config.get("sync_mode") not in SYNC_MODES:
        logger.warning("Unknown sync_mode %r, using %s", config.get("sync_mode"), DEFAULT_SYNC_MODE)
        config["sync_mode"] = DEFAULT_SYNC_MODE
    if not isinstance(config.get("scan_roots"), list):
        config["scan_roots"] = []
    return config


def save_config(config: Dict[str, Any]):
    """Save the skill-kit configuration."""
    config_path = get_config_path()
    with wrap_errors(f"Failed to write config {config_path}"):
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)


def current_sync_mode() -> str:
    return load_config()["sync_mode"]


def set_sync_mode(mode: str) -> Dict[str, Any]:
    if mode not in SYNC_MODES:
        raise SkillKitError(f"sync mode must be one of: {', '.join(SYNC_MODES)}")
    config = load_config()
    config["sync_mode"] = mode
    save_config(config)
    return config


def add_scan_root(path: str) -> List[str]:
    config = load_config()
    normalized = normalize_path(path)
    if normalized not in config["scan_roots"]:
        config["scan_roots"].append(normalized)
    save_config(config)
    return config["scan_roots"]


def remove_scan_root(path: str) -> List[str]:
    config = load_config()
    normalized = normalize_path(path)
    config["scan_roots"] = [root for root in config["scan_roots"] if root != normalized]
    save_config(config)
    return config["scan_roots"]
