from __future__ import annotations

import os
from pathlib import Path

TASKS_FILE = "tasks.json"
SESSIONS_FILE = "sessions.json"
WEEKS_DIR = "weeks"


def default_data_dir(profile: str | None = None) -> Path:
    name = f"pomotrack-{profile}" if profile else "pomotrack"
    return Path.home() / ".local" / "share" / name


def default_config_path() -> Path:
    return Path.home() / ".config" / "pomotrack" / "config.json"


def resolve_data_dir(data_arg: str | None, profile: str | None) -> Path:
    if data_arg:
        return Path(data_arg).expanduser().resolve()
    env = os.environ.get("POMOTRACK_DATA_DIR")
    if env:
        return Path(env).expanduser().resolve()
    return default_data_dir(profile).expanduser().resolve()


def resolve_config_path(config_arg: str | None) -> Path:
    if config_arg:
        return Path(config_arg).expanduser().resolve()
    env = os.environ.get("POMOTRACK_CONFIG")
    if env:
        return Path(env).expanduser().resolve()
    return default_config_path().expanduser().resolve()


def tasks_path(data_dir: Path) -> Path:
    return data_dir / TASKS_FILE


def sessions_path(data_dir: Path) -> Path:
    return data_dir / SESSIONS_FILE


def weeks_dir(data_dir: Path) -> Path:
    return data_dir / WEEKS_DIR
