"""Config and data directory resolution."""

from __future__ import annotations

import os
import sys
from pathlib import Path

APP_DIR_NAME = "brigade-cd"


def _app_dir(
    override_env: str,
    windows_env: str,
    windows_default: Path,
    xdg_env: str,
    xdg_default: Path,
) -> Path:
    override = os.environ.get(override_env)
    if override:
        return Path(override)
    if sys.platform == "win32":
        return Path(os.environ.get(windows_env, windows_default)) / APP_DIR_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    return Path(os.environ.get(xdg_env) or xdg_default) / APP_DIR_NAME


def get_config_dir() -> Path:
    return _app_dir(
        "BRIGADE_CD_CONFIG_DIR",
        "APPDATA",
        Path.home() / "AppData" / "Roaming",
        "XDG_CONFIG_HOME",
        Path.home() / ".config",
    )


def get_data_dir() -> Path:
    return _app_dir(
        "BRIGADE_CD_DATA_DIR",
        "LOCALAPPDATA",
        Path.home() / "AppData" / "Local",
        "XDG_DATA_HOME",
        Path.home() / ".local" / "share",
    )
