"""Shared low-level helpers: clocks, ids and timestamp handling."""

from __future__ import annotations

import uuid
from datetime import datetime


def _now_local() -> datetime:
    return datetime.now().astimezone()


def _now_iso() -> str:
    return _now_local().isoformat(timespec="seconds")


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def _hhmm(dt: datetime) -> str:
    return dt.strftime("%H:%M")


def _dt_from_entry_ts(ts: str | None) -> datetime | None:
    if not ts:
        return None
    try:
        dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=_now_local().tzinfo)
        return dt.astimezone()
    except (TypeError, ValueError):
        return None
