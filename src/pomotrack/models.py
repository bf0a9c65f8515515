"""Task and Session records as persisted in the store files.

JSON keys are camelCase so the files stay compatible with earlier
pomodoro-tracker data; attributes are snake_case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

SESSION_TYPES = ("work", "short-break", "long-break")
SESSION_STATUSES = ("completed", "skipped", "abandoned")
ENERGY_LEVELS = ("high", "medium", "low")


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value)
    return s if s else None


def _count(value: Any, minimum: int = 0) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return minimum
    return max(minimum, n)


def _drop_none(d: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


def _unknown(raw: dict[str, Any], known: tuple[str, ...]) -> dict[str, Any]:
    return {k: v for k, v in raw.items() if k not in known}


TASK_KEYS = (
    "id", "text", "completed", "active", "project", "description",
    "expectedPomodoros", "completedPomodoros", "createdAt", "completedAt",
)
SESSION_KEYS = (
    "id", "type", "status", "label", "project", "tag", "energyLevel",
    "distractionScore", "startedAt", "endedAt", "durationPlanned", "durationActual",
)


@dataclass
class Task:
    id: str
    text: str
    created_at: str
    completed: bool = False
    project: str | None = None
    expected_pomodoros: int = 1
    completed_pomodoros: int = 0
    description: str | None = None
    completed_at: str | None = None
    active: bool | None = None
    # keys written by other tools, kept as-is on save
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {**self.extra, **_drop_none({
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "active": self.active,
            "project": self.project,
            "description": self.description,
            "expectedPomodoros": self.expected_pomodoros,
            "completedPomodoros": self.completed_pomodoros,
            "createdAt": self.created_at,
            "completedAt": self.completed_at,
        })}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Task:
        active = raw.get("active")
        return cls(
            id=str(raw.get("id", "")),
            text=str(raw.get("text", "")),
            created_at=str(raw.get("createdAt", "")),
            completed=bool(raw.get("completed", False)),
            project=_opt_str(raw.get("project")),
            expected_pomodoros=_count(raw.get("expectedPomodoros", 1), minimum=1),
            completed_pomodoros=_count(raw.get("completedPomodoros", 0)),
            description=_opt_str(raw.get("description")),
            completed_at=_opt_str(raw.get("completedAt")),
            active=None if active is None else bool(active),
            extra=_unknown(raw, TASK_KEYS),
        )


@dataclass
class Session:
    """One timer run. Only label/project/tag/energy/distraction are user-editable."""

    id: str
    type: str
    status: str
    started_at: str
    ended_at: str | None = None
    duration_planned: int = 0
    duration_actual: int = 0
    label: str | None = None
    project: str | None = None
    tag: str | None = None
    energy_level: str | None = None
    distraction_score: float | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {**self.extra, **_drop_none({
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "label": self.label,
            "project": self.project,
            "tag": self.tag,
            "energyLevel": self.energy_level,
            "distractionScore": self.distraction_score,
            "startedAt": self.started_at,
            "endedAt": self.ended_at,
            "durationPlanned": self.duration_planned,
            "durationActual": self.duration_actual,
        })}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Session:
        energy = raw.get("energyLevel")
        distraction = raw.get("distractionScore")
        try:
            distraction = None if distraction is None else float(distraction)
        except (TypeError, ValueError):
            distraction = None
        return cls(
            id=str(raw.get("id", "")),
            type=str(raw.get("type", "work")),
            status=str(raw.get("status", "completed")),
            started_at=str(raw.get("startedAt", "")),
            ended_at=_opt_str(raw.get("endedAt")),
            duration_planned=_count(raw.get("durationPlanned", 0)),
            duration_actual=_count(raw.get("durationActual", 0)),
            label=_opt_str(raw.get("label")),
            project=_opt_str(raw.get("project")),
            tag=_opt_str(raw.get("tag")),
            energy_level=energy if energy in ENERGY_LEVELS else None,
            distraction_score=distraction,
            extra=_unknown(raw, SESSION_KEYS),
        )
