"""Task store: load-mutate-save over a single JSON file, no caching."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Callable

from ._util import _new_id, _now_iso
from .models import Task
from .storage import LoadResult, atomic_write_json, read_records

_TRAILING_PROJECT_RE = re.compile(r"#\S+$")


def clean_text(text: str) -> str:
    """
    Task titles live on one line of the edit view, ahead of the ``#project``
    and ``%id:`` suffixes. Line breaks become spaces; a title that would be
    read back differently is rejected with ValueError.
    """
    text = " ".join(part.strip() for part in text.splitlines()).strip()
    if not text:
        raise ValueError("task text must not be empty")
    if "%id:" in text:
        raise ValueError("task text must not contain '%id:'")
    if _TRAILING_PROJECT_RE.search(text):
        raise ValueError("task text must not end with a #word; use the project field")
    return text


def clean_project(project: str | None) -> str | None:
    """Projects are a single word: surrounding # is dropped, inner whitespace becomes -."""
    if project is None:
        return None
    return "-".join(project.strip().lstrip("#").split()) or None


class TaskStore:
    def __init__(
        self,
        path: Path,
        new_id: Callable[[], str] = _new_id,
        now: Callable[[], str] = _now_iso,
    ) -> None:
        self.path = Path(path)
        self.new_id = new_id
        self.now = now

    def read(self) -> LoadResult:
        return read_records(self.path)

    def load(self) -> list[Task]:
        return [Task.from_dict(r) for r in self.read().records]

    def save(self, tasks: list[Task]) -> None:
        atomic_write_json(self.path, [t.to_dict() for t in tasks])

    # ---- queries ----

    def get_task(self, task_id: str) -> Task | None:
        for t in self.load():
            if t.id == task_id:
                return t
        return None

    def active_task(self) -> Task | None:
        for t in self.load():
            if t.active:
                return t
        return None

    # ---- mutations ----

    def add_task(self, text: str, expected_pomodoros: int = 1, project: str | None = None) -> Task:
        tasks = self.load()
        task = Task(
            id=self.new_id(),
            text=clean_text(text),
            created_at=self.now(),
            project=clean_project(project),
            expected_pomodoros=max(1, int(expected_pomodoros)),
        )
        tasks.append(task)
        self.save(tasks)
        return task

    def complete_task(self, task_id: str) -> Task | None:
        tasks = self.load()
        task = _find(tasks, task_id)
        if task is None:
            return None
        task.completed = True
        task.completed_at = self.now()
        self.save(tasks)
        return task

    def reopen_task(self, task_id: str) -> Task | None:
        tasks = self.load()
        task = _find(tasks, task_id)
        if task is None:
            return None
        task.completed = False
        task.completed_at = None
        self.save(tasks)
        return task

    def delete_task(self, task_id: str) -> bool:
        tasks = self.load()
        kept = [t for t in tasks if t.id != task_id]
        if len(kept) == len(tasks):
            return False
        self.save(kept)
        return True

    def increment_task_pomodoro(self, task_id: str) -> Task | None:
        tasks = self.load()
        task = _find(tasks, task_id)
        if task is None:
            return None
        task.completed_pomodoros += 1
        self.save(tasks)
        return task

    def update_task(
        self,
        task_id: str,
        *,
        text: str | None = None,
        expected_pomodoros: int | None = None,
        project: str | None = None,
    ) -> Task | None:
        """Change only the fields passed; project="" clears the project.
        Raises ValueError for text that cannot be stored (see clean_text)."""
        tasks = self.load()
        task = _find(tasks, task_id)
        if task is None:
            return None
        if text is not None:
            task.text = clean_text(text)
        if expected_pomodoros is not None:
            task.expected_pomodoros = max(1, int(expected_pomodoros))
        if project is not None:
            task.project = clean_project(project)
        self.save(tasks)
        return task

    def set_active_task(self, task_id: str | None) -> None:
        tasks = self.load()
        for t in tasks:
            t.active = t.id == task_id
        self.save(tasks)


def _find(tasks: list[Task], task_id: str) -> Task | None:
    for t in tasks:
        if t.id == task_id:
            return t
    return None
