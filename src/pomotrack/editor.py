"""Round trip through the user's text editor.

format -> write scratch file -> run editor (blocking) -> read back ->
parse and persist if the bytes changed. The scratch file is removed on
every path, including editor and parse failures.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import tempfile
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Callable, Iterator

from . import codec
from .config import DEFAULT_EDITOR, Config
from .sessions import SessionStore
from .tasks import TaskStore
from .tracker import WeekStore

log = logging.getLogger(__name__)

MAX_EDIT_BYTES = 1024 * 1024


class EditorError(RuntimeError):
    pass


def resolve_editor(config: Config | None = None) -> str:
    env = os.environ.get("EDITOR", "").strip()
    if env:
        return env
    if config is not None and config.editor_command.strip():
        return config.editor_command.strip()
    return DEFAULT_EDITOR


@contextmanager
def scratch_file(view: str) -> Iterator[Path]:
    fd, name = tempfile.mkstemp(prefix=f"pomotrack-{view}-", suffix=".md")
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass


def run_editor(editor: str, path: Path) -> int:
    """Run the editor on ``path`` with the terminal attached and wait for it to exit."""
    argv = [*shlex.split(editor), str(path)]
    log.debug("running editor: %s", argv)
    try:
        proc = subprocess.run(argv, check=False)
    except OSError as e:
        raise EditorError(f"could not start editor {editor!r}: {e}") from e
    log.debug("editor exited with %s", proc.returncode)
    return proc.returncode


def edit_round_trip(
    view: str,
    text: str,
    apply: Callable[[str], object],
    editor: str,
) -> bool:
    """
    Let the user edit ``text``; hand the result to ``apply`` if it changed.
    Returns True when ``apply`` ran.
    """
    original = text.encode("utf-8")
    with scratch_file(view) as path:
        path.write_bytes(original)
        run_editor(editor, path)
        edited = path.read_bytes()

        if edited == original:
            log.info("%s: no changes", view)
            return False
        if len(edited) > MAX_EDIT_BYTES:
            log.warning("%s: edited text is %d bytes, over the %d limit; discarded",
                        view, len(edited), MAX_EDIT_BYTES)
            return False

        try:
            new_text = edited.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EditorError(f"{view}: edited file is not valid UTF-8; nothing saved") from e
        apply(new_text)
        log.info("%s: saved edits", view)
        return True


def edit_tasks(store: TaskStore, config: Config | None = None) -> bool:
    text = codec.format_tasks(store.load())
    return edit_round_trip("tasks", text, lambda t: codec.parse_tasks(t, store), resolve_editor(config))


def edit_sessions(
    store: SessionStore,
    start: date,
    end: date,
    config: Config | None = None,
) -> bool:
    text = codec.format_sessions(store.sessions_for_range(start, end), start, end)
    return edit_round_trip("sessions", text, lambda t: codec.parse_sessions(t, store), resolve_editor(config))


def edit_week(store: WeekStore, day: date, config: Config | None = None) -> bool:
    text = codec.format_week(store.load_or_create(day))
    return edit_round_trip("tracker", text, lambda t: codec.parse_week(t, store), resolve_editor(config))
