"""Tests for the editor text formats (tasks, sessions, week grid)."""

from __future__ import annotations

import itertools
import json
from datetime import date
from pathlib import Path

import pytest

from pomotrack import codec
from pomotrack.models import Session, Task
from pomotrack.sessions import SessionStore
from pomotrack.tasks import TaskStore
from pomotrack.tracker import Category, WeekData, WeekStore

NOW = "2026-03-02T12:00:00+00:00"
EARLIER = "2026-02-01T08:00:00+00:00"


@pytest.fixture()
def task_store(tmp_path: Path) -> TaskStore:
    ids = (f"new{i}" for i in itertools.count(1))
    return TaskStore(tmp_path / "tasks.json", new_id=lambda: next(ids), now=lambda: NOW)


def _draft() -> Task:
    return Task(id="t1", text="Draft report", created_at=EARLIER, project="work",
                expected_pomodoros=2, completed_pomodoros=1, description="long notes")


# ---- format_tasks ----


def test_format_task_line_matches_documented_form():
    assert codec.format_task_line(_draft()) == "[ ] Draft report #work /2 (1/2)  %id:t1"


def test_format_task_line_no_progress_no_project():
    t = Task(id="t2", text="Email", created_at=EARLIER, completed=True)
    assert codec.format_task_line(t) == "[x] Email /1  %id:t2"


def test_format_tasks_one_line_each_in_order():
    a = Task(id="a", text="A", created_at=EARLIER)
    b = Task(id="b", text="B", created_at=EARLIER)
    assert codec.format_tasks([a, b]) == "[ ] A /1  %id:a\n[ ] B /1  %id:b\n"


def test_format_tasks_empty():
    assert codec.format_tasks([]) == ""


# ---- parse_task_line ----


def test_parse_task_line_all_parts():
    p = codec.parse_task_line("[x] Draft report #work /2 (2/2)  %id:t1")
    assert p.id == "t1"
    assert p.completed is True
    assert p.text == "Draft report"
    assert p.project == "work"
    assert p.expected_pomodoros == 2
    assert p.completed_pomodoros == 2


def test_parse_task_line_plain_text():
    p = codec.parse_task_line("just some words")
    assert p.id is None
    assert p.completed is False
    assert p.text == "just some words"
    assert p.expected_pomodoros == 1
    assert p.project is None


def test_parse_task_line_zero_expected_clamped():
    assert codec.parse_task_line("[ ] a /0").expected_pomodoros == 1


def test_parse_task_line_hash_in_middle_stays_in_title():
    p = codec.parse_task_line("[ ] fix #12 crash /1")
    assert p.text == "fix #12 crash"
    assert p.project is None


# ---- parse_tasks ----


def test_concrete_scenario_completion(task_store):
    task_store.save([_draft()])
    codec.parse_tasks("[x] Draft report #work /2 (2/2)  %id:t1\n", task_store)

    (t,) = task_store.load()
    assert t.id == "t1"
    assert t.completed is True
    assert t.completed_pomodoros == 2
    assert t.completed_at == NOW
    assert t.created_at == EARLIER
    assert t.description == "long notes"


def test_roundtrip_is_idempotent(task_store):
    done = Task(id="t2", text="Email", created_at=EARLIER, completed=True,
                completed_at="2026-02-02T08:00:00+00:00", active=True)
    tasks = [_draft(), done]
    task_store.save(tasks)

    codec.parse_tasks(codec.format_tasks(tasks), task_store)
    assert task_store.load() == tasks


def test_deletion_by_omission(task_store):
    a = Task(id="a", text="A", created_at=EARLIER)
    b = Task(id="b", text="B", created_at=EARLIER)
    task_store.save([a, b])

    codec.parse_tasks(codec.format_task_line(a) + "\n", task_store)
    assert [t.id for t in task_store.load()] == ["a"]


def test_line_without_marker_creates_task(task_store):
    task_store.save([_draft()])
    text = codec.format_tasks(task_store.load()) + "[ ] Call bank #home /1\n"
    codec.parse_tasks(text, task_store)

    tasks = task_store.load()
    assert [t.id for t in tasks] == ["t1", "new1"]
    assert tasks[1].text == "Call bank"
    assert tasks[1].project == "home"
    assert tasks[1].created_at == NOW


def test_fresh_id_never_reuses_existing(tmp_path):
    ids = iter(["t1", "t1", "fresh"])
    store = TaskStore(tmp_path / "tasks.json", new_id=lambda: next(ids), now=lambda: NOW)
    store.save([_draft()])
    codec.parse_tasks(codec.format_tasks(store.load()) + "another\n", store)
    assert [t.id for t in store.load()] == ["t1", "fresh"]


def test_duplicated_marker_becomes_new_task(task_store):
    task_store.save([_draft()])
    line = codec.format_task_line(_draft())
    codec.parse_tasks(f"{line}\n{line}\n", task_store)
    tasks = task_store.load()
    assert [t.id for t in tasks] == ["t1", "new1"]
    assert tasks[1].description is None


def test_progress_preserved_when_suffix_absent(task_store):
    task_store.save([_draft()])
    codec.parse_tasks("[ ] Draft final report #work /2  %id:t1\n", task_store)
    (t,) = task_store.load()
    assert t.text == "Draft final report"
    assert t.completed_pomodoros == 1


def test_uncompleting_clears_completed_at(task_store):
    t = Task(id="t1", text="A", created_at=EARLIER, completed=True, completed_at=EARLIER)
    task_store.save([t])
    codec.parse_tasks("[ ] A /1  %id:t1\n", task_store)
    assert task_store.load()[0].completed_at is None


def test_blank_lines_ignored_and_order_follows_text(task_store):
    a = Task(id="a", text="A", created_at=EARLIER)
    b = Task(id="b", text="B", created_at=EARLIER)
    task_store.save([a, b])
    text = "\n\n" + codec.format_task_line(b) + "\n   \n" + codec.format_task_line(a) + "\n"
    codec.parse_tasks(text, task_store)
    assert [t.id for t in task_store.load()] == ["b", "a"]


def test_empty_title_line_is_dropped(task_store):
    task_store.save([_draft()])
    codec.parse_tasks("[ ]  /2  %id:t1\n", task_store)
    assert task_store.load() == []


def test_crlf_text(task_store):
    task_store.save([_draft()])
    codec.parse_tasks("[ ] Draft report #work /2 (1/2)  %id:t1\r\n", task_store)
    assert task_store.load() == [_draft()]


def test_last_marker_on_line_wins():
    p = codec.parse_task_line("[ ] see %id:zz first /1  %id:a1")
    assert p.id == "a1"
    assert p.text == "see %id:zz first"


@pytest.mark.parametrize("text", ["ship v2 /3", "re-read (1/2)", "fix #12 crash", "x /2 (1/3)"])
def test_awkward_titles_roundtrip(task_store, text):
    tasks = [
        Task(id="a1", text=text, created_at=EARLIER),
        Task(id="a2", text=text, created_at=EARLIER, project="p", expected_pomodoros=3, completed_pomodoros=2),
    ]
    task_store.save(tasks)
    codec.parse_tasks(codec.format_tasks(tasks), task_store)
    assert task_store.load() == tasks


def test_stored_tasks_roundtrip(task_store):
    task_store.add_task("Write", 1, "deep work")
    task_store.add_task("two\nlines", 2, "#home")
    before = task_store.load()
    codec.parse_tasks(codec.format_tasks(before), task_store)
    assert task_store.load() == before
    assert [(t.text, t.project) for t in before] == [("Write", "deep-work"), ("two lines", "home")]


def test_unknown_task_keys_carry_over(task_store):
    task_store.path.write_text(
        '[{"id": "t1", "text": "A", "createdAt": "x", "color": "red"}]', encoding="utf-8"
    )
    codec.parse_tasks("[x] A /1  %id:t1\n", task_store)
    assert task_store.load()[0].extra == {"color": "red"}


# ---- sessions ----


def _sessions() -> list[Session]:
    return [
        Session(id="s1", type="work", status="completed",
                started_at="2026-03-02T09:00:00", ended_at="2026-03-02T09:25:00",
                duration_planned=1500, duration_actual=1500,
                label="writing", project="book", tag="deep", energy_level="high", distraction_score=2.0),
        Session(id="s2", type="short-break", status="skipped",
                started_at="2026-03-02T09:25:00", ended_at="2026-03-02T09:27:00",
                duration_planned=300, duration_actual=120),
        Session(id="s3", type="work", status="completed",
                started_at="2026-03-02T10:00:00", ended_at=None,
                duration_planned=1500, duration_actual=0),
    ]


@pytest.fixture()
def session_store(tmp_path: Path) -> SessionStore:
    store = SessionStore(tmp_path / "sessions.json")
    store.save(_sessions())
    return store


def test_format_sessions_layout():
    text = codec.format_sessions(_sessions(), date(2026, 3, 2), date(2026, 3, 2))
    assert text == (
        "# Sessions: 2026-03-02\n"
        f"{codec.SESSION_HELP}\n"
        "\n"
        "## 09:00-09:25 work completed 25m (25m planned)\n"
        "label: writing\n"
        "project: book\n"
        "tag: deep\n"
        "energy: high\n"
        "distraction: 2\n"
        "%id:s1\n"
        "\n"
        "## 09:25-09:27 short-break skipped 2m (5m planned)\n"
        "%id:s2\n"
    )


def test_format_sessions_skips_unfinished():
    text = codec.format_sessions(_sessions(), date(2026, 3, 2), date(2026, 3, 2))
    assert "%id:s3" not in text


def test_format_sessions_range_header():
    text = codec.format_sessions([], date(2026, 3, 2), date(2026, 3, 8))
    assert text.startswith("# Sessions: 2026-03-02 to 2026-03-08\n")


def test_unchanged_session_text_roundtrips(session_store):
    text = codec.format_sessions(session_store.load(), date(2026, 3, 2), date(2026, 3, 2))
    codec.parse_sessions(text, session_store)
    assert session_store.load() == _sessions()


def test_edit_changes_only_editable_fields(session_store):
    text = (
        "## 23:59-23:59 long-break abandoned 99m (1m planned)\n"
        "label: reading\n"
        "project: school\n"
        "energy: low\n"
        "distraction: 4.5\n"
        "%id:s1\n"
    )
    assert codec.parse_sessions(text, session_store) == 1
    s1 = session_store.load()[0]
    assert (s1.label, s1.project, s1.tag, s1.energy_level, s1.distraction_score) == (
        "reading", "school", None, "low", 4.5)
    orig = _sessions()[0]
    assert (s1.type, s1.status, s1.started_at, s1.ended_at, s1.duration_planned, s1.duration_actual) == (
        orig.type, orig.status, orig.started_at, orig.ended_at, orig.duration_planned, orig.duration_actual)


def test_missing_lines_clear_fields(session_store):
    codec.parse_sessions("## heading\n%id:s1\n", session_store)
    s1 = session_store.load()[0]
    assert s1.label is None
    assert s1.project is None
    assert s1.tag is None
    assert s1.energy_level is None
    assert s1.distraction_score is None


def test_invalid_energy_keeps_previous(session_store):
    codec.parse_sessions("## x\nenergy: ecstatic\n%id:s1\n", session_store)
    assert session_store.load()[0].energy_level == "high"


def test_non_numeric_distraction_clears(session_store):
    codec.parse_sessions("## x\ndistraction: lots\n%id:s1\n", session_store)
    assert session_store.load()[0].distraction_score is None


def test_blocks_without_known_id_are_skipped(session_store):
    before = session_store.path.read_bytes()
    text = "## x\nlabel: a\n\n## y\nlabel: b\n%id:nope\n"
    assert codec.parse_sessions(text, session_store) == 0
    assert session_store.path.read_bytes() == before


def test_sessions_never_created_or_deleted(session_store):
    codec.parse_sessions("## x\nlabel: only this\n%id:s2\n", session_store)
    assert [s.id for s in session_store.load()] == ["s1", "s2", "s3"]
    assert session_store.load()[0].label == "writing"


def test_unedited_sessions_keep_unknown_keys(tmp_path: Path):
    store = SessionStore(tmp_path / "sessions.json")
    raw = [s.to_dict() for s in _sessions()]
    raw[0]["intervals"] = [{"start": "2026-03-02T09:00:00", "end": "2026-03-02T09:25:00"}]
    store.path.write_text(json.dumps(raw), encoding="utf-8")

    codec.parse_sessions("## x\nlabel: break\n%id:s2\n", store)
    saved = json.loads(store.path.read_text(encoding="utf-8"))
    assert saved[0]["intervals"] == raw[0]["intervals"]
    assert saved[1]["label"] == "break"


# ---- week grid ----


def _week() -> WeekData:
    week = WeekData.for_date(date(2026, 3, 4))
    week.set_slot("2026-03-02", "09:00", "D")
    week.set_slot("2026-03-08", "23:30", "S")
    week.set_pending("2026-03-03", "09:00", "E")
    week.notes["2026-03-04"] = "dentist"
    return week


def test_format_week_rows():
    text = codec.format_week(_week())
    lines = text.split("\n")
    assert lines[0] == "Week: 2026-W10"
    row = next(line for line in lines if line.startswith("09:00"))
    assert row.split() == ["09:00", "D", "?E", "-", "-", "-", "-", "-"]
    assert "--- Notes ---\n2026-03-04: dentist\n" in text


def test_merge_week_replaces_slots_keeps_pending():
    week = _week()
    pad = " " * 10
    text = codec.format_week(week).replace(f"09:00{pad}D", f"09:00{pad}W", 1)
    codec.merge_week(text, week)
    assert week.slot_at("2026-03-02", "09:00") == "W"
    assert week.slot_at("2026-03-08", "23:30") == "S"
    assert week.pending_at("2026-03-03", "09:00") == "E"
    assert week.slot_at("2026-03-03", "09:00") is None


def test_merge_week_ignores_unknown_codes():
    week = _week()
    text = "Week: 2026-W10\n09:00 ZZ D\n"
    codec.merge_week(text, week)
    assert week.slots == {"2026-03-03": {"09:00": "D"}}
    assert week.notes == {}


def test_parse_week_persists(tmp_path: Path):
    store = WeekStore(tmp_path / "weeks")
    text = "Week: 2026-W10\n10:30  -  E\n\n--- Notes ---\n2026-03-03: gym\n"
    week = codec.parse_week(text, store)
    loaded = store.load("2026-W10")
    assert loaded.slot_at("2026-03-03", "10:30") == "E"
    assert loaded.notes == {"2026-03-03": "gym"}
    assert week.start == date(2026, 3, 2)


def test_parse_week_without_header(tmp_path: Path):
    store = WeekStore(tmp_path / "weeks")
    assert codec.parse_week("09:00 D\n", store) is None
    assert store.list_weeks() == []


def test_long_codes_keep_their_columns():
    cats = [Category("LONGCODE", "Long", "red"), Category("ABCDE", "Five", "blue"), Category("D", "Deep", "green")]
    week = WeekData.for_date(date(2026, 3, 4), cats)
    week.set_slot("2026-03-02", "09:00", "LONGCODE")
    week.set_slot("2026-03-03", "09:00", "LONGCODE")
    week.set_pending("2026-03-04", "09:00", "ABCDE")
    week.set_slot("2026-03-05", "09:00", "D")

    text = codec.format_week(week)
    row = next(line for line in text.split("\n") if line.startswith("09:00"))
    assert row.split() == ["09:00", "LONGCODE", "LONGCODE", "?ABCDE", "D", "-", "-", "-"]

    codec.merge_week(text, week)
    assert week.slots == {
        "2026-03-02": {"09:00": "LONGCODE"},
        "2026-03-03": {"09:00": "LONGCODE"},
        "2026-03-05": {"09:00": "D"},
    }
    assert week.pending_at("2026-03-04", "09:00") == "ABCDE"
