from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

log = logging.getLogger(__name__)

LoadStatus = Literal["ok", "absent", "corrupt"]


@dataclass
class LoadResult:
    """Outcome of reading a store file.

    Callers that only want data use ``records``; ``status`` keeps "absent"
    and "corrupt" apart so the difference can be reported.
    """

    status: LoadStatus
    records: list[dict[str, Any]] = field(default_factory=list)
    backup: Path | None = None


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _backup_corrupt(path: Path, raw: bytes) -> Path | None:
    backup = path.with_name(f"{path.stem}.corrupt-{int(time.time())}.json")
    try:
        backup.write_bytes(raw)
    except OSError:
        log.warning("could not back up corrupt file %s", path, exc_info=True)
        return None
    return backup


def _read_json(path: Path) -> tuple[LoadStatus, Any, bytes]:
    path = Path(path)
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        log.debug("%s does not exist yet", path)
        return "absent", None, b""
    except OSError:
        log.warning("could not read %s, treating as empty", path, exc_info=True)
        return "corrupt", None, b""

    if not raw.strip():
        return "absent", None, raw

    try:
        return "ok", json.loads(raw.decode("utf-8")), raw
    except (UnicodeDecodeError, json.JSONDecodeError):
        return "corrupt", None, raw


def read_records(path: Path) -> LoadResult:
    """
    Read a JSON list of records.
    - missing/empty -> status "absent", no records
    - unparseable or not a list -> status "corrupt", raw bytes copied aside
    The canonical file is never modified by a read.
    """
    path = Path(path)
    status, data, raw = _read_json(path)
    if status == "ok" and not isinstance(data, list):
        status = "corrupt"
    if status == "absent":
        return LoadResult("absent")
    if status == "corrupt":
        backup = _backup_corrupt(path, raw) if raw else None
        log.warning("%s is corrupt, using an empty store (backup: %s)", path, backup)
        return LoadResult("corrupt", [], backup)
    return LoadResult("ok", [r for r in data if isinstance(r, dict)])


def load_records(path: Path) -> list[dict[str, Any]]:
    return read_records(path).records


def read_json_object(path: Path) -> dict[str, Any] | None:
    """Like read_records, for files holding a single JSON object. None if absent or unusable."""
    status, data, _ = _read_json(path)
    if status != "ok" or not isinstance(data, dict):
        return None
    return data


def atomic_write_json(path: Path, data: Any) -> None:
    """
    Atomic save:
    - write to temp file in same directory
    - flush + fsync
    - os.replace to target
    - chmod 0600 best-effort
    If anything fails before the replace, the temp file is removed and the
    target keeps its previous content.
    """
    path = Path(path)
    _ensure_parent(path)

    tmp = path.with_name(path.name + ".tmp")

    payload = json.dumps(
        data,
        indent=2,
        ensure_ascii=False,
    ) + "\n"

    try:
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        try:
            tmp.unlink()
        except OSError:
            pass
        raise

    try:
        os.chmod(path, 0o600)
    except OSError:
        pass
    log.debug("saved %s", path)
