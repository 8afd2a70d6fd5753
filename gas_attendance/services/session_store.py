from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass
from pathlib import Path

from ..models.attendance import EmployeeAttendance

"""Persisted client-side state.

- attendance list: the computed full per-employee list, written so another
  view (or a later CLI call) can render it without recomputing
- remembered login / login history: kept for a fixed 3-day window and pruned
  whenever they are loaded

Everything is a small JSON file under the configured state directory. Files
that cannot be parsed are treated as absent.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "REMEMBER_TTL_SECONDS",
    "HISTORY_LIMIT",
    "StoredAttendanceList",
    "AttendanceListStore",
    "LoginEntry",
    "LoginMemory",
]

REMEMBER_TTL_SECONDS = 3 * 24 * 60 * 60
HISTORY_LIMIT = 12

ATTENDANCE_FILE = "attendance_full.json"
REMEMBER_FILE = "login_remember.json"
HISTORY_FILE = "login_history.json"


def _read_json(path: Path) -> object | None:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("ignoring unreadable state file %s: %s", path, e)
        return None


def _write_json(path: Path, data: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")


@dataclass(frozen=True)
class StoredAttendanceList:
    warehouse: str
    page: str
    items: list[EmployeeAttendance]


class AttendanceListStore:
    def __init__(self, directory: Path) -> None:
        self.path = Path(directory) / ATTENDANCE_FILE

    def save(self, warehouse: str, page: str, items: Sequence[EmployeeAttendance]) -> Path:
        _write_json(self.path, {
            "warehouse": warehouse,
            "page": page,
            "items": [i.to_dict() for i in items],
        })
        return self.path

    def load(self) -> StoredAttendanceList | None:
        data = _read_json(self.path)
        if not isinstance(data, dict):
            return None
        items = [EmployeeAttendance.from_dict(x) for x in data.get("items") or [] if isinstance(x, dict)]
        return StoredAttendanceList(
            warehouse=str(data.get("warehouse", "")),
            page=str(data.get("page", "")),
            items=items,
        )


@dataclass(frozen=True)
class LoginEntry:
    name: str
    birthday: str
    ts: float  # epoch seconds


class LoginMemory:
    """Remembered login plus a most-recent-first history, both TTL bounded."""

    def __init__(
        self,
        directory: Path,
        ttl_seconds: float = REMEMBER_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = Path(directory)
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def _fresh(self, entry: LoginEntry, now: float) -> bool:
        return bool(entry.name and entry.birthday and entry.ts) and now - entry.ts <= self.ttl_seconds

    @staticmethod
    def _entry(data: object) -> LoginEntry | None:
        if not isinstance(data, dict):
            return None
        try:
            return LoginEntry(name=str(data.get("name") or ""), birthday=str(data.get("birthday") or ""), ts=float(data.get("ts") or 0))
        except (TypeError, ValueError):
            return None

    def remembered(self) -> LoginEntry | None:
        path = self.directory / REMEMBER_FILE
        entry = self._entry(_read_json(path))
        if entry is None:
            return None
        if not self._fresh(entry, self._clock()):
            path.unlink(missing_ok=True)
            return None
        return entry

    def history(self) -> list[LoginEntry]:
        raw = _read_json(self.directory / HISTORY_FILE)
        now = self._clock()
        entries = [e for e in (self._entry(x) for x in (raw if isinstance(raw, list) else [])) if e]
        return sorted((e for e in entries if self._fresh(e, now)), key=lambda e: e.ts, reverse=True)

    def record(self, name: str, birthday: str) -> LoginEntry:
        item = LoginEntry(name=name, birthday=birthday, ts=self._clock())
        _write_json(self.directory / REMEMBER_FILE, asdict(item))
        others = [e for e in self.history() if not (e.name == name and e.birthday == birthday)]
        _write_json(self.directory / HISTORY_FILE, [asdict(e) for e in [item, *others][:HISTORY_LIMIT]])
        return item
