from __future__ import annotations

import re
from datetime import date, datetime, timedelta

from ._util import _now_local

_DAY_WORDS = {"today": 0, "yesterday": -1, "tomorrow": 1}


def _with_local_tz(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=_now_local().tzinfo)
    return dt.astimezone()


def parse_day(value: str | None, today: date | None = None) -> date:
    """
    Parse a day argument.
    Accepts:
      - None / blank -> today
      - "today", "yesterday", "tomorrow"
      - "3 days ago", "1 day ago", "2 weeks ago"
      - "2026-02-25", "2026/02/25"
      - weekday names ("mon", "friday") -> that day of the current week
    """
    base = today or _now_local().date()
    if not value or not value.strip():
        return base

    s = value.strip().lower()

    if s in _DAY_WORDS:
        return base + timedelta(days=_DAY_WORDS[s])

    m = re.fullmatch(r"(\d+)\s*(day|days|week|weeks)\s*ago", s)
    if m:
        n = int(m.group(1))
        return base - timedelta(days=n * 7 if m.group(2).startswith("week") else n)

    for fmt in ("%Y-%m-%d", "%Y/%m/%d"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue

    for i, name in enumerate(("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")):
        if len(s) >= 3 and name.startswith(s):
            return base - timedelta(days=base.weekday()) + timedelta(days=i)

    raise SystemExit(
        f"Could not parse day {value!r}. Try '2026-02-25', 'today', 'yesterday', "
        f"'3 days ago' or a weekday like 'mon'."
    )


def parse_ts(value: str | None) -> str:
    """
    Parse a session start time into ISO 8601 with local timezone.
    Accepts:
      - None -> now
      - ISO 8601 (naive assumed local)
      - "7:34am", "19:34", "7am" (today)
      - "2026-02-25 7:34am", "2026-02-25 19:34"
      - "yesterday 9am", "today 14:30"
      - "25 minutes ago", "2 hours ago"
    Returns: ISO string, seconds precision.
    """
    if not value or not value.strip():
        return _now_local().isoformat(timespec="seconds")

    raw = value.strip()
    s = raw.lower()
    now = _now_local()

    try:
        return _with_local_tz(datetime.fromisoformat(raw)).isoformat(timespec="seconds")
    except ValueError:
        pass

    m = re.fullmatch(r"(\d+)\s*(hour|hours|minute|minutes|min|mins)\s*ago", s)
    if m:
        n = int(m.group(1))
        delta = timedelta(hours=n) if m.group(2).startswith("hour") else timedelta(minutes=n)
        return (now - delta).isoformat(timespec="seconds")

    m = re.fullmatch(r"(today|yesterday|tomorrow)\s+(.+)", s)
    if m:
        base = now + timedelta(days=_DAY_WORDS[m.group(1)])
        return _parse_time_only(m.group(2), base).isoformat(timespec="seconds")

    m = re.fullmatch(r"(\d{4}[-/]\d{2}[-/]\d{2})\s+(.+)", s)
    if m:
        day = parse_day(m.group(1))
        base = now.replace(year=day.year, month=day.month, day=day.day)
        try:
            return _parse_time_only(m.group(2), base).isoformat(timespec="seconds")
        except ValueError:
            pass

    try:
        return _parse_time_only(s, now).isoformat(timespec="seconds")
    except ValueError:
        pass

    raise SystemExit(
        f"Could not parse time {value!r}. Try '2026-02-25 7:34am', '7:34am', "
        f"'yesterday 9am' or '25 minutes ago'."
    )


def _parse_time_only(time_str: str, base_dt: datetime) -> datetime:
    """Apply a time like '9am', '7:34am', '14:30' to base_dt's date."""
    s = time_str.strip().lower()
    for fmt in ("%I:%M%p", "%I:%M %p", "%I%p", "%I %p", "%H:%M"):
        try:
            t = datetime.strptime(s, fmt)
        except ValueError:
            continue
        return base_dt.replace(hour=t.hour, minute=t.minute, second=0, microsecond=0)
    raise ValueError(f"Could not parse time-only value: {time_str!r}")
