"""User configuration.

Loaded once at startup and passed to whatever needs it. The theme is a
plain value on Config, not module state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .storage import atomic_write_json, read_json_object
from .tracker import DEFAULT_CATEGORIES, Category

log = logging.getLogger(__name__)

DEFAULT_EDITOR = "nvim"


@dataclass
class Theme:
    preset: str = "default"
    colors: dict[str, str] = field(default_factory=dict)

    def color(self, role: str, fallback: str = "white") -> str:
        return self.colors.get(role, fallback)


@dataclass
class Config:
    work_duration: int = 25
    short_break_duration: int = 5
    long_break_duration: int = 15
    long_break_interval: int = 4
    editor_command: str = DEFAULT_EDITOR
    theme: Theme = field(default_factory=Theme)
    categories: list[Category] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))

    def to_dict(self) -> dict[str, Any]:
        return {
            "workDuration": self.work_duration,
            "shortBreakDuration": self.short_break_duration,
            "longBreakDuration": self.long_break_duration,
            "longBreakInterval": self.long_break_interval,
            "editorCommand": self.editor_command,
            "theme": {"preset": self.theme.preset, "colors": dict(self.theme.colors)},
            "categories": [c.to_dict() for c in self.categories],
        }


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for key, val in override.items():
        if isinstance(val, dict) and isinstance(out.get(key), dict):
            out[key] = _deep_merge(out[key], val)
        elif val is not None:
            out[key] = val
    return out


def _positive_int(value: Any, default: int) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return default
    return n if n > 0 else default


def _categories(raw: Any) -> list[Category]:
    if not isinstance(raw, list):
        return list(DEFAULT_CATEGORIES)
    out: list[Category] = []
    seen: set[str] = set()
    for item in raw:
        if not isinstance(item, dict) or not item.get("code"):
            continue
        cat = Category.from_dict(item)
        if cat.code in seen:
            continue
        seen.add(cat.code)
        out.append(cat)
    return out or list(DEFAULT_CATEGORIES)


def config_from_dict(raw: dict[str, Any]) -> Config:
    data = _deep_merge(Config().to_dict(), raw)
    theme = data.get("theme") if isinstance(data.get("theme"), dict) else {}
    colors = theme.get("colors") if isinstance(theme.get("colors"), dict) else {}
    editor = str(data.get("editorCommand") or "").strip()
    return Config(
        work_duration=_positive_int(data.get("workDuration"), 25),
        short_break_duration=_positive_int(data.get("shortBreakDuration"), 5),
        long_break_duration=_positive_int(data.get("longBreakDuration"), 15),
        long_break_interval=_positive_int(data.get("longBreakInterval"), 4),
        editor_command=editor or DEFAULT_EDITOR,
        theme=Theme(
            preset=str(theme.get("preset") or "default"),
            colors={str(k): str(v) for k, v in colors.items()},
        ),
        categories=_categories(raw.get("categories")),
    )


def load_config(path: Path) -> Config:
    """Missing or unreadable config means defaults."""
    raw = read_json_object(path)
    if raw is None:
        log.debug("no usable config at %s, using defaults", path)
        return Config()
    return config_from_dict(raw)


def save_config(path: Path, config: Config) -> None:
    atomic_write_json(path, config.to_dict())
