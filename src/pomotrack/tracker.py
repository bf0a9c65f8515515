"""Weekly time-tracking grid: (date, half-hour slot) -> category code.

Each ISO week lives in its own JSON file under the data directory's
``weeks/`` folder and is written with the same atomic save as the stores.
``pending`` holds unconfirmed codes (a picker overlay, or a suggestion)
that only become real slots through confirm_pending.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Any

from .storage import atomic_write_json, read_json_object


@dataclass(frozen=True)
class Category:
    code: str
    label: str
    color: str
    key: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "label": self.label, "color": self.color, "key": self.key}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Category:
        key = raw.get("key")
        return cls(
            code=str(raw["code"]),
            label=str(raw.get("label", raw["code"])),
            color=str(raw.get("color", "white")),
            key=str(key)[:1] if key else None,
        )


DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category("D", "Deep Work", "cyan", "D"),
    Category("hD", "½ Deep Work", "blueBright", "/"),
    Category("E", "Exercise", "green", "E"),
    Category("O", "Okayish", "yellow", "O"),
    Category("S", "Sleep", "blue", "S"),
    Category("N", "No Deep Work", "gray", "N"),
    Category("W", "Wasted", "red", "W"),
    Category("SF", "Sched. Failed", "redBright", None),
    Category("WU", "Woke Up", "magenta", None),
)

ALL_SLOTS: tuple[str, ...] = tuple(f"{h:02d}:{m:02d}" for h in range(24) for m in (0, 30))
DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
SLOT_HOURS = 0.5


def monday_of_week(d: date) -> date:
    return d - timedelta(days=d.weekday())


def iso_week_str(d: date) -> str:
    year, week, _ = d.isocalendar()
    return f"{year}-W{week:02d}"


def week_dates(start: date) -> list[date]:
    return [start + timedelta(days=i) for i in range(7)]


Grid = dict[str, dict[str, str]]


@dataclass
class WeekData:
    week: str
    start: date
    slots: Grid = field(default_factory=dict)
    pending: Grid = field(default_factory=dict)
    notes: dict[str, str] = field(default_factory=dict)
    categories: list[Category] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))

    @classmethod
    def for_date(cls, d: date, categories: list[Category] | None = None) -> WeekData:
        monday = monday_of_week(d)
        data = cls(week=iso_week_str(monday), start=monday)
        if categories is not None:
            data.categories = list(categories)
        return data

    def dates(self) -> list[date]:
        return week_dates(self.start)

    # ---- categories ----

    def category_by_code(self, code: str) -> Category | None:
        for c in self.categories:
            if c.code == code:
                return c
        return None

    def category_by_key(self, key: str) -> Category | None:
        for c in self.categories:
            if c.key is not None and c.key == key:
                return c
        return None

    def _check_code(self, code: str) -> None:
        if self.category_by_code(code) is None:
            raise ValueError(f"unknown category code {code!r}")

    # ---- confirmed slots ----

    def slot_at(self, day: date | str, time: str) -> str | None:
        return self.slots.get(_day_key(day), {}).get(time)

    def set_slot(self, day: date | str, time: str, code: str) -> None:
        _check_slot(time)
        self._check_code(code)
        self.slots.setdefault(_day_key(day), {})[time] = code

    def clear_slot(self, day: date | str, time: str) -> None:
        _pop(self.slots, _day_key(day), time)

    # ---- pending (picker overlay / suggestions) ----

    def pending_at(self, day: date | str, time: str) -> str | None:
        return self.pending.get(_day_key(day), {}).get(time)

    def set_pending(self, day: date | str, time: str, code: str) -> None:
        _check_slot(time)
        self._check_code(code)
        self.pending.setdefault(_day_key(day), {})[time] = code

    def confirm_pending(self, day: date | str, time: str) -> str | None:
        key = _day_key(day)
        code = _pop(self.pending, key, time)
        if code is not None:
            self.slots.setdefault(key, {})[time] = code
        return code

    def cancel_pending(self, day: date | str, time: str) -> str | None:
        return _pop(self.pending, _day_key(day), time)

    def confirm_all_pending(self) -> int:
        n = 0
        for day, row in list(self.pending.items()):
            for time in list(row):
                self.confirm_pending(day, time)
                n += 1
        return n

    # ---- summaries ----

    def day_stats(self, day: date | str) -> dict[str, float]:
        stats: dict[str, float] = {}
        for code in self.slots.get(_day_key(day), {}).values():
            stats[code] = stats.get(code, 0.0) + SLOT_HOURS
        return stats

    # ---- persistence shape ----

    def to_dict(self) -> dict[str, Any]:
        return {
            "week": self.week,
            "start": self.start.isoformat(),
            "slots": self.slots,
            "pending": self.pending,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any], categories: list[Category] | None = None) -> WeekData:
        start = date.fromisoformat(str(raw["start"]))
        data = cls(
            week=str(raw.get("week") or iso_week_str(start)),
            start=start,
            slots=_grid(raw.get("slots")),
            pending=_grid(raw.get("pending")),
            notes=_notes(raw.get("notes")),
        )
        if categories is not None:
            data.categories = list(categories)
        return data


class WeekStore:
    def __init__(self, directory: Path, categories: list[Category] | None = None) -> None:
        self.directory = Path(directory)
        self.categories = list(categories) if categories is not None else list(DEFAULT_CATEGORIES)

    def path_for(self, week: str) -> Path:
        return self.directory / f"{week}.json"

    def load(self, week: str) -> WeekData | None:
        raw = read_json_object(self.path_for(week))
        if raw is None:
            return None
        try:
            return WeekData.from_dict(raw, self.categories)
        except (KeyError, TypeError, ValueError):
            return None

    def load_or_create(self, d: date) -> WeekData:
        week = iso_week_str(monday_of_week(d))
        data = self.load(week)
        if data is None:
            data = WeekData.for_date(d, self.categories)
        return data

    def save(self, data: WeekData) -> None:
        atomic_write_json(self.path_for(data.week), data.to_dict())

    def list_weeks(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted((p.stem for p in self.directory.glob("*-W*.json")), reverse=True)


def _day_key(day: date | str) -> str:
    return day.isoformat() if isinstance(day, date) else str(day)


def _check_slot(time: str) -> None:
    if time not in ALL_SLOTS:
        raise ValueError(f"not a half-hour slot: {time!r}")


def _pop(grid: Grid, day: str, time: str) -> str | None:
    row = grid.get(day)
    if not row:
        return None
    code = row.pop(time, None)
    if not row:
        del grid[day]
    return code


def _grid(raw: Any) -> Grid:
    out: Grid = {}
    if not isinstance(raw, dict):
        return out
    for day, row in raw.items():
        if not isinstance(row, dict):
            continue
        cells = {str(t): str(c) for t, c in row.items() if isinstance(c, str)}
        if cells:
            out[str(day)] = cells
    return out


def _notes(raw: Any) -> dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): str(v) for k, v in raw.items()}
