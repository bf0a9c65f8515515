"""Plain-text views of the stores for editing in an external editor.

Every record is tied back to the store by an identity marker, ``%id:<id>``.
Tasks: one line each; a line without a marker is a new task, a stored task
whose marker is missing from the text is deleted. Sessions: one ``##``
block each; blocks without a known marker are ignored, so sessions are
never created or deleted from text. Week grids: one row per half-hour slot.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Callable

from ._util import _dt_from_entry_ts, _hhmm
from .models import ENERGY_LEVELS, Session, Task
from .tracker import ALL_SLOTS, DAY_NAMES, WeekData, iso_week_str

if TYPE_CHECKING:
    from .sessions import SessionStore
    from .tasks import TaskStore
    from .tracker import WeekStore

ID_MARKER = "%id:"

_ID_RE = re.compile(r"%id:(\S+)")
_CHECK_RE = re.compile(r"^\s*\[([xX ])\]")
_CHECK_STRIP_RE = re.compile(r"^\s*\[[xX ]\]\s*")
_PROGRESS_RE = re.compile(r"\((\d+)/(\d+)\)\s*$")
_EXPECTED_RE = re.compile(r"/(\d+)\s*$")
_PROJECT_RE = re.compile(r"#(\S+)\s*$")

_HEADING_RE = re.compile(r"^## .*$", re.MULTILINE)
_BLOCK_ID_RE = re.compile(r"^%id:(\S+)", re.MULTILINE)
_LABEL_RE = re.compile(r"^label:[ \t]*(.*\S)[ \t]*$", re.MULTILINE)
_SESSION_PROJECT_RE = re.compile(r"^project:[ \t]*(.*\S)[ \t]*$", re.MULTILINE)
_TAG_RE = re.compile(r"^tag:[ \t]*(.*\S)[ \t]*$", re.MULTILINE)
_ENERGY_RE = re.compile(r"^energy:[ \t]*(.*\S)[ \t]*$", re.MULTILINE)
_DISTRACTION_RE = re.compile(r"^distraction:[ \t]*(\d+(?:\.\d+)?)[ \t]*$", re.MULTILINE)

_WEEK_RE = re.compile(r"^Week:\s*(\d{4})-W(\d{2})\b", re.MULTILINE)
_SLOT_ROW_RE = re.compile(r"^(\d{2}:\d{2})\s+(.+)$")
_NOTE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}):\s*(.+)$")
NOTES_HEADING = "--- Notes ---"
EMPTY_CELL = "-"
PENDING_PREFIX = "?"

SESSION_HELP = (
    "# Read-only: type, status, time, duration. "
    "Editable: label, project, tag, energy, distraction."
)


def _normalize(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


# -------------------------
# Tasks
# -------------------------

def format_task_line(task: Task) -> str:
    check = "[x]" if task.completed else "[ ]"
    line = f"{check} {task.text}"
    if task.project:
        line += f" #{task.project}"
    line += f" /{task.expected_pomodoros}"
    if task.completed_pomodoros > 0:
        line += f" ({task.completed_pomodoros}/{task.expected_pomodoros})"
    line += f"  {ID_MARKER}{task.id}"
    return line


def format_tasks(tasks: list[Task]) -> str:
    return "".join(format_task_line(t) + "\n" for t in tasks)


@dataclass
class ParsedTaskLine:
    id: str | None
    text: str
    completed: bool
    project: str | None
    expected_pomodoros: int
    completed_pomodoros: int


def parse_task_line(line: str) -> ParsedTaskLine:
    """Split one task line into its parts. Never fails; unknown text ends up in the title."""
    # the formatter appends the marker last, so only the last one counts
    markers = list(_ID_RE.finditer(line))
    task_id = None
    rest = line
    if markers:
        m = markers[-1]
        task_id = m.group(1)
        rest = line[: m.start()] + line[m.end() :]

    check = _CHECK_RE.match(line)
    completed = bool(check) and check.group(1) in ("x", "X")

    rest = _CHECK_STRIP_RE.sub("", rest).strip()

    completed_pomodoros = 0
    m = _PROGRESS_RE.search(rest)
    if m:
        completed_pomodoros = int(m.group(1))
        rest = rest[: m.start()].strip()

    expected = 1
    m = _EXPECTED_RE.search(rest)
    if m:
        expected = max(1, int(m.group(1)))
        rest = rest[: m.start()].strip()

    project = None
    m = _PROJECT_RE.search(rest)
    if m:
        project = m.group(1)
        rest = rest[: m.start()].strip()

    return ParsedTaskLine(
        id=task_id,
        text=rest,
        completed=completed,
        project=project,
        expected_pomodoros=expected,
        completed_pomodoros=completed_pomodoros,
    )


def merge_tasks(
    text: str,
    existing: list[Task],
    new_id: Callable[[], str],
    now: Callable[[], str],
) -> list[Task]:
    """
    Build the new task list from edited text.
    - order follows the text
    - no marker (or a marker already used above) -> new task with a fresh id
    - description, createdAt, completedAt, the active flag and unknown keys
      carry over by id
    - a progress count of 0 keeps the stored count
    - lines whose title is empty are dropped, as are tasks missing from the text
    """
    by_id = {t.id: t for t in existing}
    used = set(by_id)
    seen: set[str] = set()
    result: list[Task] = []

    for line in _normalize(text).split("\n"):
        if not line.strip():
            continue
        parsed = parse_task_line(line)
        if not parsed.text:
            continue

        task_id = parsed.id
        if task_id is None or task_id in seen:
            task_id = new_id()
            while task_id in used or task_id in seen:
                task_id = new_id()
        seen.add(task_id)

        old = by_id.get(task_id) if parsed.id == task_id else None
        completed_at = None
        if parsed.completed:
            completed_at = (old.completed_at if old and old.completed_at else None) or now()

        result.append(Task(
            id=task_id,
            text=parsed.text,
            created_at=old.created_at if old and old.created_at else now(),
            completed=parsed.completed,
            project=parsed.project,
            expected_pomodoros=parsed.expected_pomodoros,
            completed_pomodoros=parsed.completed_pomodoros or (old.completed_pomodoros if old else 0),
            description=old.description if old else None,
            completed_at=completed_at,
            active=old.active if old else None,
            extra=dict(old.extra) if old else {},
        ))

    return result


def parse_tasks(text: str, store: TaskStore) -> list[Task]:
    tasks = merge_tasks(text, store.load(), store.new_id, store.now)
    store.save(tasks)
    return tasks


# -------------------------
# Sessions
# -------------------------

def _fmt_score(score: float) -> str:
    return f"{score:g}"


def format_session_block(s: Session) -> str:
    start = _dt_from_entry_ts(s.started_at)
    end = _dt_from_entry_ts(s.ended_at)
    start_txt = _hhmm(start) if start else "??:??"
    end_txt = _hhmm(end) if end else "??:??"
    actual = round(s.duration_actual / 60)
    planned = round(s.duration_planned / 60)

    lines = [f"## {start_txt}-{end_txt} {s.type} {s.status} {actual}m ({planned}m planned)"]
    if s.label:
        lines.append(f"label: {s.label}")
    if s.project:
        lines.append(f"project: {s.project}")
    if s.tag:
        lines.append(f"tag: {s.tag}")
    if s.energy_level:
        lines.append(f"energy: {s.energy_level}")
    if s.distraction_score is not None:
        lines.append(f"distraction: {_fmt_score(s.distraction_score)}")
    lines.append(f"{ID_MARKER}{s.id}")
    return "\n".join(lines) + "\n"


def format_sessions(sessions: list[Session], start: date, end: date) -> str:
    """Finished sessions only; the caller picks the date range."""
    span = start.isoformat() if start == end else f"{start.isoformat()} to {end.isoformat()}"
    parts = [f"# Sessions: {span}\n{SESSION_HELP}\n"]
    for s in sessions:
        if not s.ended_at:
            continue
        parts.append(format_session_block(s))
    return "\n".join(parts)


def _field(pattern: re.Pattern[str], block: str) -> str | None:
    m = pattern.search(block)
    return m.group(1).strip() if m else None


def apply_session_block(block: str, session: Session) -> Session:
    """
    Overwrite the editable fields of ``session`` from one block.
    A missing label/project/tag/distraction line clears that field; an
    energy value outside high/medium/low keeps the stored one.
    """
    energy = _field(_ENERGY_RE, block)
    if energy in ENERGY_LEVELS:
        energy_level = energy
    elif energy is None:
        energy_level = None
    else:
        energy_level = session.energy_level

    distraction = _field(_DISTRACTION_RE, block)
    session.label = _field(_LABEL_RE, block)
    session.project = _field(_SESSION_PROJECT_RE, block)
    session.tag = _field(_TAG_RE, block)
    session.energy_level = energy_level
    session.distraction_score = float(distraction) if distraction is not None else None
    return session


def merge_sessions(text: str, existing: list[Session]) -> tuple[list[Session], int]:
    """Returns (sessions, number of blocks applied)."""
    by_id = {s.id: s for s in existing}
    applied = 0
    blocks = _HEADING_RE.split(_normalize(text))[1:]
    for block in blocks:
        m = _BLOCK_ID_RE.search(block)
        if not m:
            continue
        session = by_id.get(m.group(1))
        if session is None:
            continue
        apply_session_block(block, session)
        applied += 1
    return existing, applied


def parse_sessions(text: str, store: SessionStore) -> int:
    sessions, applied = merge_sessions(text, store.load())
    if applied:
        store.save(sessions)
    return applied


# -------------------------
# Week grid
# -------------------------

def format_week(week: WeekData) -> str:
    dates = [d.isoformat() for d in week.dates()]
    lines = [f"Week: {week.week}", ""]
    lines.append(" " * 10 + "".join(" " + name.rjust(5) for name in DAY_NAMES))

    for slot in ALL_SLOTS:
        row = slot.ljust(10)
        for d in dates:
            code = week.slot_at(d, slot)
            if code and week.category_by_code(code):
                row += " " + code.rjust(5)
                continue
            pending = week.pending_at(d, slot)
            row += " " + (PENDING_PREFIX + pending if pending else EMPTY_CELL).rjust(5)
        lines.append(row)

    noted = [d for d in dates if week.notes.get(d)]
    if noted:
        lines.append("")
        lines.append(NOTES_HEADING)
        for d in noted:
            lines.append(f"{d}: {week.notes[d]}")
    return "\n".join(lines) + "\n"


def week_of_text(text: str) -> str | None:
    m = _WEEK_RE.search(_normalize(text))
    if not m:
        return None
    return f"{m.group(1)}-W{m.group(2)}"


def merge_week(text: str, week: WeekData) -> WeekData:
    """
    Replace the confirmed slots and notes of ``week`` from the grid text.
    Pending suggestions (``?CODE``) are left alone; unknown codes are ignored.
    """
    dates = [d.isoformat() for d in week.dates()]
    slots: dict[str, dict[str, str]] = {}
    notes: dict[str, str] = {}
    in_notes = False

    for line in _normalize(text).split("\n"):
        if line.startswith(NOTES_HEADING):
            in_notes = True
            continue
        if in_notes:
            m = _NOTE_RE.match(line)
            if m:
                notes[m.group(1)] = m.group(2).strip()
            continue

        m = _SLOT_ROW_RE.match(line)
        if not m or m.group(1) not in ALL_SLOTS:
            continue
        slot = m.group(1)
        for d, cell in zip(dates, m.group(2).split()):
            if cell == EMPTY_CELL or cell.startswith(PENDING_PREFIX):
                continue
            if week.category_by_code(cell):
                slots.setdefault(d, {})[slot] = cell

    week.slots = slots
    week.notes = notes
    return week


def parse_week(text: str, store: WeekStore) -> WeekData | None:
    week_str = week_of_text(text)
    if week_str is None:
        return None
    year, num = week_str.split("-W")
    try:
        monday = date.fromisocalendar(int(year), int(num), 1)
    except ValueError:
        return None
    week = store.load(week_str) or WeekData.for_date(monday, store.categories)
    if iso_week_str(week.start) != week_str:
        return None
    merge_week(text, week)
    store.save(week)
    return week
