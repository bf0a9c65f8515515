from __future__ import annotations

import argparse
import logging
import os
import stat
import sys
from datetime import date, timedelta
from pathlib import Path

from . import codec
from ._util import _dt_from_entry_ts, _hhmm, _new_id
from .config import load_config
from .editor import EditorError, edit_sessions, edit_tasks, edit_week
from .models import SESSION_STATUSES, SESSION_TYPES, Session, Task
from .paths import resolve_config_path, resolve_data_dir, sessions_path, tasks_path, weeks_dir
from .sessions import SessionStore
from .storage import read_records
from .tasks import TaskStore
from .timeparse import parse_day, parse_ts
from .tracker import DAY_NAMES, WeekStore

log = logging.getLogger(__name__)


# -------------------------
# Store helpers
# -------------------------

def _task_store(args: argparse.Namespace) -> TaskStore:
    return TaskStore(tasks_path(args.data_dir))


def _session_store(args: argparse.Namespace) -> SessionStore:
    return SessionStore(sessions_path(args.data_dir))


def _week_store(args: argparse.Namespace) -> WeekStore:
    return WeekStore(weeks_dir(args.data_dir), args.config.categories)


def _resolve_task_id(store: TaskStore, ref: str) -> str:
    """Accept a full id or any unambiguous prefix of one."""
    ids = [t.id for t in store.load()]
    if ref in ids:
        return ref
    matches = [i for i in ids if i.startswith(ref)]
    if not matches:
        raise SystemExit(f"No task with id {ref!r}.")
    if len(matches) > 1:
        raise SystemExit(f"Task id {ref!r} is ambiguous ({', '.join(matches)}).")
    return matches[0]


def _day_range(args: argparse.Namespace) -> tuple[date, date]:
    start = parse_day(args.start)
    end = parse_day(args.end) if args.end else start
    if end < start:
        raise SystemExit("--to must not be before --from")
    return start, end


# -------------------------
# Formatting helpers
# -------------------------

def _task_line(t: Task) -> str:
    check = "[x]" if t.completed else "[ ]"
    active = "▶" if t.active else " "
    project = f" #{t.project}" if t.project else ""
    progress = f"  🍅 {t.completed_pomodoros}/{t.expected_pomodoros}"
    return f"{active} {t.id}  {check} {t.text}{project}{progress}"


def _session_line(s: Session) -> str:
    start = _dt_from_entry_ts(s.started_at)
    end = _dt_from_entry_ts(s.ended_at)
    when = f"{start.date().isoformat()} {_hhmm(start)}" if start else "unknown-time"
    until = _hhmm(end) if end else "…"
    extra = [x for x in (s.label, f"#{s.project}" if s.project else None, s.tag) if x]
    tail = f"  {' '.join(extra)}" if extra else ""
    return f"{when}-{until} {s.type:<11} {s.status:<9} {round(s.duration_actual / 60):>3}m{tail}"


# -------------------------
# Task commands
# -------------------------

def cmd_task_add(args: argparse.Namespace) -> None:
    text = args.text.strip()
    if not text:
        raise SystemExit("Task text must not be empty.")
    if args.pomodoros < 1:
        raise SystemExit("--pomodoros must be at least 1")
    try:
        task = _task_store(args).add_task(text, args.pomodoros, args.project)
    except ValueError as e:
        raise SystemExit(f"Cannot add task: {e}") from e
    print(f"📝 Added {task.id}: {task.text}")


def cmd_task_list(args: argparse.Namespace) -> None:
    tasks = _task_store(args).load()
    if not args.all:
        tasks = [t for t in tasks if not t.completed]
    if not tasks:
        print("No tasks yet." if args.all else "No open tasks.")
        return
    for t in tasks:
        print(_task_line(t))


def cmd_task_done(args: argparse.Namespace) -> None:
    store = _task_store(args)
    task = store.complete_task(_resolve_task_id(store, args.id))
    print(f"✅ Done: {task.text}")


def cmd_task_undo(args: argparse.Namespace) -> None:
    store = _task_store(args)
    task = store.reopen_task(_resolve_task_id(store, args.id))
    print(f"↩️ Reopened: {task.text}")


def cmd_task_rm(args: argparse.Namespace) -> None:
    store = _task_store(args)
    task_id = _resolve_task_id(store, args.id)
    store.delete_task(task_id)
    print(f"🗑️ Deleted {task_id}")


def cmd_task_start(args: argparse.Namespace) -> None:
    store = _task_store(args)
    task_id = _resolve_task_id(store, args.id)
    store.set_active_task(task_id)
    print(f"▶ Active task: {task_id}")


def cmd_task_stop(args: argparse.Namespace) -> None:
    _task_store(args).set_active_task(None)
    print("⏸ No active task.")


def cmd_task_tick(args: argparse.Namespace) -> None:
    store = _task_store(args)
    task = store.increment_task_pomodoro(_resolve_task_id(store, args.id))
    print(f"🍅 {task.text}: {task.completed_pomodoros}/{task.expected_pomodoros}")


def cmd_task_edit(args: argparse.Namespace) -> None:
    if args.text is None and args.pomodoros is None and args.project is None:
        raise SystemExit("Nothing to change: pass --text, --pomodoros or --project.")
    if args.text is not None and not args.text.strip():
        raise SystemExit("--text must not be empty.")
    if args.pomodoros is not None and args.pomodoros < 1:
        raise SystemExit("--pomodoros must be at least 1")
    store = _task_store(args)
    try:
        task = store.update_task(
            _resolve_task_id(store, args.id),
            text=args.text,
            expected_pomodoros=args.pomodoros,
            project=args.project,
        )
    except ValueError as e:
        raise SystemExit(f"Cannot update task: {e}") from e
    print(_task_line(task))


# -------------------------
# Session commands
# -------------------------

def cmd_session_log(args: argparse.Namespace) -> None:
    if args.minutes < 0:
        raise SystemExit("--minutes must not be negative")
    started = _dt_from_entry_ts(parse_ts(args.start))
    ended = started + timedelta(minutes=args.minutes)
    planned = args.planned if args.planned is not None else args.minutes

    session = Session(
        id=_new_id(),
        type=args.type,
        status=args.status,
        started_at=started.isoformat(timespec="seconds"),
        ended_at=ended.isoformat(timespec="seconds"),
        duration_planned=planned * 60,
        duration_actual=args.minutes * 60,
        label=args.label,
        project=args.project,
    )
    _session_store(args).append_session(session)

    if args.task and session.type == "work" and session.status == "completed":
        store = _task_store(args)
        store.increment_task_pomodoro(_resolve_task_id(store, args.task))

    print(f"⏱️ Logged {_session_line(session)}")


def cmd_session_list(args: argparse.Namespace) -> None:
    start, end = _day_range(args)
    sessions = _session_store(args).sessions_for_range(start, end)
    if not sessions:
        print("No sessions in that range.")
        return
    for s in sessions:
        print(_session_line(s))


# -------------------------
# External editor
# -------------------------

def _run_edit(fn, *fn_args) -> None:
    try:
        changed = fn(*fn_args)
    except EditorError as e:
        raise SystemExit(str(e)) from e
    print("💾 Saved changes." if changed else "No changes.")


def cmd_edit_tasks(args: argparse.Namespace) -> None:
    _run_edit(edit_tasks, _task_store(args), args.config)


def cmd_edit_sessions(args: argparse.Namespace) -> None:
    start, end = _day_range(args)
    _run_edit(edit_sessions, _session_store(args), start, end, args.config)


def cmd_edit_week(args: argparse.Namespace) -> None:
    _run_edit(edit_week, _week_store(args), parse_day(args.date), args.config)


# -------------------------
# Tracker commands
# -------------------------

def cmd_track_set(args: argparse.Namespace) -> None:
    store = _week_store(args)
    day = parse_day(args.day)
    week = store.load_or_create(day)
    code = args.code
    if week.category_by_code(code) is None:
        cat = week.category_by_key(code)
        if cat is None:
            known = ", ".join(c.code for c in week.categories)
            raise SystemExit(f"Unknown category {code!r} (known: {known})")
        code = cat.code
    try:
        week.set_slot(day, args.time, code)
    except ValueError as e:
        raise SystemExit(str(e)) from e
    store.save(week)
    print(f"🗓️ {day.isoformat()} {args.time} = {code}")


def cmd_track_clear(args: argparse.Namespace) -> None:
    store = _week_store(args)
    day = parse_day(args.day)
    week = store.load_or_create(day)
    week.clear_slot(day, args.time)
    store.save(week)
    print(f"🧹 {day.isoformat()} {args.time} cleared")


def cmd_track_show(args: argparse.Namespace) -> None:
    week = _week_store(args).load_or_create(parse_day(args.date))
    print(codec.format_week(week), end="")

    print("\n[Hours per day]")
    for name, d in zip(DAY_NAMES, week.dates()):
        stats = week.day_stats(d)
        if not stats:
            continue
        parts = ", ".join(f"{code} {hours:g}h" for code, hours in sorted(stats.items()))
        print(f"- {name} {d.isoformat()}: {parts}")


# -------------------------
# Core commands
# -------------------------

def cmd_where(args: argparse.Namespace) -> None:
    if args.data_arg:
        reason = "because you passed --data-dir"
    elif os.environ.get("POMOTRACK_DATA_DIR"):
        reason = "because POMOTRACK_DATA_DIR is set"
    elif args.profile:
        reason = f"because you used --profile {args.profile!r}"
    else:
        reason = "default XDG data location"

    print(args.data_dir)
    print(f"↳ using {reason}")
    print(args.config_path)
    print("↳ config file" + ("" if args.config_path.exists() else " (missing, using defaults)"))


def cmd_doctor(args: argparse.Namespace) -> None:
    print("=== pomotrack doctor ===")
    ok = True
    for label, path in (("tasks", tasks_path(args.data_dir)), ("sessions", sessions_path(args.data_dir))):
        result = read_records(path)
        if result.status == "ok":
            print(f"✅ {label}: {len(result.records)} records")
        elif result.status == "absent":
            print(f"⚪ {label}: no file yet ({path})")
        else:
            ok = False
            where = f", raw copy at {result.backup}" if result.backup else ""
            print(f"⚠️ {label}: {path} is corrupt, reading as empty{where}")
        try:
            perms = stat.S_IMODE(path.stat().st_mode)
            print(f"🔐 {label} permissions: {oct(perms)} (target 0o600)")
        except FileNotFoundError:
            pass
    print("=== Done ===")
    if not ok:
        raise SystemExit(1)


# -------------------------
# Entry point
# -------------------------

def _add_range(p: argparse.ArgumentParser) -> None:
    p.add_argument("--from", dest="start", default=None, help="First day (default today)")
    p.add_argument("--to", dest="end", default=None, help="Last day, inclusive (default: same as --from)")


def main(argv=None) -> None:
    p = argparse.ArgumentParser(prog="pomo", description="Pomodoro tasks, sessions and weekly time tracking")
    p.add_argument("--data-dir", default=None, help="Data directory (overrides env/default)")
    p.add_argument("--config", default=None, help="Config JSON path (overrides env/default)")
    p.add_argument("--profile", default=None, help="Profile name (e.g. dev/test)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")

    sub = p.add_subparsers(dest="cmd", required=True)
    sub.add_parser("where", help="Show which data/config files are active and why").set_defaults(func=cmd_where)
    sub.add_parser("doctor", help="Check the store files").set_defaults(func=cmd_doctor)

    # ---- task ----
    task = sub.add_parser("task", help="Task list")
    task_sub = task.add_subparsers(dest="task_cmd", required=True)

    task_add = task_sub.add_parser("add", help="Add a task")
    task_add.add_argument("text")
    task_add.add_argument("--pomodoros", type=int, default=1, help="Expected pomodoros (default 1)")
    task_add.add_argument("--project", default=None)
    task_add.set_defaults(func=cmd_task_add)

    task_list = task_sub.add_parser("list", help="List open tasks")
    task_list.add_argument("--all", action="store_true", help="Include completed tasks")
    task_list.set_defaults(func=cmd_task_list)

    for name, func, help_text in (
        ("done", cmd_task_done, "Mark a task completed"),
        ("undo", cmd_task_undo, "Mark a task not completed"),
        ("rm", cmd_task_rm, "Delete a task"),
        ("start", cmd_task_start, "Make a task the active one"),
        ("tick", cmd_task_tick, "Count one finished pomodoro for a task"),
    ):
        sp = task_sub.add_parser(name, help=help_text)
        sp.add_argument("id", help="Task id or unambiguous prefix")
        sp.set_defaults(func=func)

    task_sub.add_parser("stop", help="Clear the active task").set_defaults(func=cmd_task_stop)

    task_edit = task_sub.add_parser("edit", help="Change one task's fields")
    task_edit.add_argument("id")
    task_edit.add_argument("--text", default=None)
    task_edit.add_argument("--pomodoros", type=int, default=None)
    task_edit.add_argument("--project", default=None, help="New project ('' clears it)")
    task_edit.set_defaults(func=cmd_task_edit)

    # ---- session ----
    session = sub.add_parser("session", help="Timer sessions")
    session_sub = session.add_subparsers(dest="session_cmd", required=True)

    session_log = session_sub.add_parser("log", help="Record a finished session")
    session_log.add_argument("--type", choices=SESSION_TYPES, default="work")
    session_log.add_argument("--status", choices=SESSION_STATUSES, default="completed")
    session_log.add_argument("--start", default=None, help="Start time, e.g. '9:00', 'yesterday 14:30' (default now)")
    session_log.add_argument("--minutes", type=int, required=True, help="Actual length in minutes")
    session_log.add_argument("--planned", type=int, default=None, help="Planned length in minutes (default --minutes)")
    session_log.add_argument("--label", default=None)
    session_log.add_argument("--project", default=None)
    session_log.add_argument("--task", default=None, help="Task to credit with a pomodoro")
    session_log.set_defaults(func=cmd_session_log)

    session_list = session_sub.add_parser("list", help="List sessions for a day range")
    _add_range(session_list)
    session_list.set_defaults(func=cmd_session_list)

    # ---- edit ----
    edit = sub.add_parser("edit", help="Bulk-edit in $EDITOR")
    edit_sub = edit.add_subparsers(dest="edit_cmd", required=True)
    edit_sub.add_parser("tasks", help="Edit the task list").set_defaults(func=cmd_edit_tasks)
    edit_sessions_p = edit_sub.add_parser("sessions", help="Edit labels/projects/tags of finished sessions")
    _add_range(edit_sessions_p)
    edit_sessions_p.set_defaults(func=cmd_edit_sessions)
    edit_week_p = edit_sub.add_parser("week", help="Edit the weekly tracker grid")
    edit_week_p.add_argument("--date", default=None, help="Any day in the week (default today)")
    edit_week_p.set_defaults(func=cmd_edit_week)

    # ---- track ----
    track = sub.add_parser("track", help="Weekly time-tracking grid")
    track_sub = track.add_subparsers(dest="track_cmd", required=True)

    track_set = track_sub.add_parser("set", help="Set a half-hour slot")
    track_set.add_argument("day", help="Day, e.g. today, mon, 2026-02-25")
    track_set.add_argument("time", help="Slot start, HH:00 or HH:30")
    track_set.add_argument("code", help="Category code or shortcut key")
    track_set.set_defaults(func=cmd_track_set)

    track_clear = track_sub.add_parser("clear", help="Clear a half-hour slot")
    track_clear.add_argument("day")
    track_clear.add_argument("time")
    track_clear.set_defaults(func=cmd_track_clear)

    track_show = track_sub.add_parser("show", help="Print a week")
    track_show.add_argument("--date", default=None, help="Any day in the week (default today)")
    track_show.set_defaults(func=cmd_track_show)

    args = p.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    args.data_arg = args.data_dir
    args.data_dir = resolve_data_dir(args.data_dir, args.profile)
    args.config_path = resolve_config_path(args.config)
    args.config = load_config(Path(args.config_path))
    log.debug("data dir %s, config %s", args.data_dir, args.config_path)

    args.func(args)


if __name__ == "__main__":
    main()
