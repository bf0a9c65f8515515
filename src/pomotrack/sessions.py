from __future__ import annotations

from datetime import date
from pathlib import Path

from ._util import _dt_from_entry_ts
from .models import Session
from .storage import LoadResult, atomic_write_json, read_records


class SessionStore:
    """Sessions are appended by the timer and edited in place; never deleted here."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> LoadResult:
        return read_records(self.path)

    def load(self) -> list[Session]:
        return [Session.from_dict(r) for r in self.read().records]

    def save(self, sessions: list[Session]) -> None:
        atomic_write_json(self.path, [s.to_dict() for s in sessions])

    def append_session(self, session: Session) -> bool:
        sessions = self.load()
        if any(s.id == session.id for s in sessions):
            return False
        sessions.append(session)
        self.save(sessions)
        return True

    def update_session(self, session: Session) -> bool:
        sessions = self.load()
        for i, s in enumerate(sessions):
            if s.id == session.id:
                sessions[i] = session
                self.save(sessions)
                return True
        return False

    def sessions_for_range(self, start: date, end: date) -> list[Session]:
        return sessions_in_range(self.load(), start, end)


def sessions_in_range(sessions: list[Session], start: date, end: date) -> list[Session]:
    """Sessions whose local start date falls in [start, end]."""
    out: list[Session] = []
    for s in sessions:
        dt = _dt_from_entry_ts(s.started_at)
        if dt is None:
            continue
        if start <= dt.date() <= end:
            out.append(s)
    return out
