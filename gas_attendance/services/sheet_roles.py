from __future__ import annotations

import re
from collections.abc import Sequence

"""Header-role and sheet-kind detection.

Sheets come from hand-maintained spreadsheets, so columns are located by label
heuristics: an exact label list first, then a substring/regex fallback.
"""

__all__ = [
    "NAME_LABELS",
    "DEPT_LABELS",
    "find_name_index",
    "find_dept_key",
    "find_shift_key",
    "find_leave_key",
    "find_date_key",
    "SheetKinds",
    "pick_ranking_source",
]

NAME_LABELS = ("姓名", "Name", "name", "員工姓名", "中文姓名")
DEPT_LABELS = ("部門", "組別", "組", "部門別", "Department", "Dept", "dept", "group")

_NAME_RE = re.compile(r"^name$", re.IGNORECASE)
_DEPT_RE = re.compile(r"dept|department|group", re.IGNORECASE)
_SHIFT_RE = re.compile(r"shift", re.IGNORECASE)


def _clean(headers: Sequence[object]) -> list[str]:
    return [str(h if h is not None else "").strip() for h in headers]


def find_name_index(headers: Sequence[object]) -> int:
    """Index of the employee-name column, -1 when none."""
    cleaned = _clean(headers)
    for i, h in enumerate(cleaned):
        if h and h in NAME_LABELS:
            return i
    for i, h in enumerate(cleaned):
        if h and ("姓名" in h or _NAME_RE.match(h)):
            return i
    return -1


def find_dept_key(headers: Sequence[object]) -> str | None:
    cleaned = _clean(headers)
    for h in cleaned:
        if h and h in DEPT_LABELS:
            return h
    for h in cleaned:
        if h and ("部門" in h or "組別" in h or _DEPT_RE.search(h)):
            return h
    return None


def find_shift_key(headers: Sequence[object]) -> str | None:
    for h in _clean(headers):
        if h and ("班" in h or _SHIFT_RE.search(h)):
            return h
    return None


def find_leave_key(headers: Sequence[object]) -> str | None:
    for h in _clean(headers):
        if h and ("假別" in h or "狀態" in h):
            return h
    return None


def find_date_key(headers: Sequence[object]) -> str | None:
    for h in _clean(headers):
        if h and "日期" in h:
            return h
    return None


class SheetKinds:
    """Sheet-name markers for the page types a warehouse exposes."""

    def __init__(
        self,
        schedule_marker: str = "班表",
        record_marker: str = "出勤記錄",
        hours_sheet: str = "出勤時數",
    ) -> None:
        self.schedule_marker = schedule_marker
        self.record_marker = record_marker
        self.hours_sheet = hours_sheet

    def is_schedule(self, sheet: str) -> bool:
        return self.schedule_marker in (sheet or "")

    def is_record(self, sheet: str) -> bool:
        return self.record_marker in (sheet or "")

    def is_hours(self, sheet: str) -> bool:
        return (sheet or "").strip() == self.hours_sheet

    def is_attendance(self, sheet: str) -> bool:
        s = sheet or ""
        return self.is_schedule(s) or self.is_record(s) or "出勤紀律" in s


def pick_ranking_source(warehouse: str, pages: Sequence[str], kinds: SheetKinds | None = None) -> str:
    """Choose the sheet that feeds the worst/best attendance rankings.

    Preference: schedule sheet, then attendance-record sheets, then anything
    with 出勤, then the first sheet. TAO1 additionally prefers 出勤紀律 over
    the record sheet.
    """
    k = kinds or SheetKinds()
    wh = (warehouse or "").strip().upper()
    names = [str(p or "").strip() for p in pages]

    def first(pred) -> str:
        return next((p for p in names if pred(p)), "")

    preferences = [lambda p: k.schedule_marker in p]
    if wh in ("TAO1", "TA01"):
        preferences.append(lambda p: "出勤紀律" in p)
    preferences += [lambda p: k.record_marker in p, lambda p: "出勤" in p]
    for pred in preferences:
        found = first(pred)
        if found:
            return found
    return names[0] if names else ""
