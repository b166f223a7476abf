"""Platform-aware configuration path resolution.

Config files are looked up in three places:
- System: %PROGRAMDATA%\\toolrelay (Windows) or /etc/toolrelay (Unix)
- User: %APPDATA%\\toolrelay, $XDG_CONFIG_HOME/toolrelay, ~/.config/toolrelay or ~/.toolrelay
- Project: <project root>/.toolrelay/
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "toolrelay"
PROJECT_DIR = ".toolrelay"


def get_system_config_path() -> Path | None:
    """Path of the system-wide config file (may not exist)."""
    if sys.platform == "win32":
        program_data = os.environ.get("PROGRAMDATA")
        if not program_data:
            return None
        return Path(program_data) / APP_NAME / CONFIG_FILENAME
    return Path("/etc") / APP_NAME / CONFIG_FILENAME


def get_user_config_path() -> Path | None:
    """Path of the per-user config file (may not exist)."""
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if not app_data:
            return None
        return Path(app_data) / APP_NAME / CONFIG_FILENAME

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME

    home = Path.home()
    if (home / ".config").exists():
        return home / ".config" / APP_NAME / CONFIG_FILENAME
    return home / PROJECT_DIR / CONFIG_FILENAME


def get_project_config_path(project_root: str) -> Path:
    """Path of the project config file under ``project_root``."""
    return Path(project_root) / PROJECT_DIR / CONFIG_FILENAME


def get_config_paths(project_root: str | None = None) -> list[Path]:
    """All candidate config paths, lowest priority first."""
    candidates = [get_system_config_path(), get_user_config_path()]
    if project_root:
        candidates.append(get_project_config_path(project_root))
    return [path for path in candidates if path is not None]
