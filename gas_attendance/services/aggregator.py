from __future__ import annotations

import functools
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

from ..models.attendance import AttendanceSummary, EmployeeAttendance
from ..models.row import NormalizedRow, NormalizedSheet
from ..sheets.dates import collation_key, format_month_day
from .classifier import ExclusionSets, classify_cell, iter_date_cells
from .sheet_roles import find_dept_key, find_shift_key

"""Attendance aggregation.

Two folds over the per-cell classification:

- per row: every sheet row gets its own summary (main result table), even when
  one employee spans several rows;
- per employee: rows are grouped by name and each date is counted once, using
  a date identity (ISO header, else header text, else column index) collected
  into an expected set and an attended set. A date only enters the attended set
  when it was should-attend in the same row, so attended is a subset of
  expected.

Range statistics reuse the per-employee fold over a sorted prefix of the date
columns; the single-day statistic folds exactly one column. The all-employee
range table runs the same fold without a name filter.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_RANK_SIZE",
    "RANGE_HEADERS",
    "ALL_RANGE_HEADERS",
    "DateColumn",
    "SheetTotals",
    "Headcount",
    "DeptKpi",
    "summarize_row",
    "annotate_rows",
    "aggregate_by_employee",
    "aggregate_sheet",
    "rank_employees",
    "worst",
    "best",
    "build_date_list",
    "columns_up_to",
    "find_date_column",
    "range_statistics",
    "single_day_statistics",
    "range_label",
    "employee_profile",
    "build_range_rows",
    "build_all_range_rows",
    "sheet_totals",
    "headcount",
    "department_kpi",
    "apply_employee_summaries",
]

DEFAULT_RANK_SIZE = 5
UNFILLED_DEPT = "未填部門"
ALL_DATES_LABEL = "全部日期"
RANGE_HEADERS = ("姓名", "部門", "班別", "統計範圍", "應到天數", "實到天數", "未到天數", "出勤率")
ALL_RANGE_HEADERS = ("部門", "班別", "姓名", "應到天數", "實到天數", "出勤率")
DEPT_KPI_TOP = 4


@dataclass(frozen=True)
class DateColumn:
    index: int
    iso: str
    label: str

    @property
    def key(self) -> str:
        """Selection key used by range / single-day requests."""
        return self.iso or f"idx_{self.index}"


@dataclass(frozen=True)
class SheetTotals:
    total: int  # rows
    attended: int
    expected: int
    absent: int

    @property
    def rate(self) -> float:
        return self.attended / self.expected if self.expected else 0.0


@dataclass(frozen=True)
class Headcount:
    total: int  # distinct names
    leave: int  # names with a 離 token somewhere in their row
    active: int


@dataclass(frozen=True)
class DeptKpi:
    departments: tuple[tuple[str, int], ...]  # (department, distinct names), largest first

    @property
    def total_people(self) -> int:
        return sum(n for _, n in self.departments)

    def top(self, n: int = DEPT_KPI_TOP) -> list[str]:
        return [d for d, _ in self.departments[:n]]


# --- per row ---------------------------------------------------------------

def summarize_row(
    row: NormalizedRow,
    headers: Sequence[str],
    date_columns: Iterable[int],
    exclusions: ExclusionSets | None = None,
) -> AttendanceSummary:
    expected = 0
    attended = 0
    for col, _, cell in iter_date_cells(row.values, headers, date_columns):
        c = classify_cell(cell, col, row.att, exclusions)
        if not c.should_attend:
            continue
        expected += 1
        if c.attended:
            attended += 1
    return AttendanceSummary.from_counts(attended, expected)


def annotate_rows(
    rows: Iterable[NormalizedRow],
    headers: Sequence[str],
    date_columns: Sequence[int],
    exclusions: ExclusionSets | None = None,
) -> list[NormalizedRow]:
    """Return copies of ``rows`` with ``attendance`` / ``attendance_rate`` set."""
    out = []
    for row in rows:
        summary = summarize_row(row, headers, date_columns, exclusions)
        out.append(replace(row, attendance=summary, attendance_rate=summary.rate))
    return out


# --- per employee ----------------------------------------------------------

def aggregate_by_employee(
    rows: Iterable[NormalizedRow],
    headers: Sequence[str],
    date_columns: Sequence[int],
    headers_iso: Sequence[str] | None = None,
    exclusions: ExclusionSets | None = None,
) -> dict[str, AttendanceSummary]:
    """Fold rows into one summary per employee name, deduplicating dates.

    Names keep first-seen order. Rows without a name are skipped.
    """
    iso = list(headers_iso or [])
    expected_sets: dict[str, set[str]] = {}
    attended_sets: dict[str, set[str]] = {}
    for row in rows:
        name = row.name
        if not name:
            continue
        should = expected_sets.setdefault(name, set())
        present = attended_sets.setdefault(name, set())
        for col, header, cell in iter_date_cells(row.values, headers, date_columns):
            c = classify_cell(cell, col, row.att, exclusions)
            if not c.should_attend:
                continue
            identity = (iso[col].strip() if col < len(iso) else "") or header.strip() or str(col)
            should.add(identity)
            if c.attended:
                present.add(identity)
    logger.debug("aggregated %d employees over %d date columns", len(expected_sets), len(date_columns))
    return {
        name: AttendanceSummary.from_counts(len(attended_sets[name]), len(should))
        for name, should in expected_sets.items()
    }


def aggregate_sheet(
    sheet: NormalizedSheet,
    exclusions: ExclusionSets | None = None,
    columns: Sequence[int] | None = None,
    rows: Iterable[NormalizedRow] | None = None,
) -> dict[str, AttendanceSummary]:
    return aggregate_by_employee(
        sheet.rows if rows is None else rows,
        sheet.headers,
        sheet.date_columns if columns is None else columns,
        sheet.headers_iso,
        exclusions,
    )


def rank_employees(summaries: dict[str, AttendanceSummary]) -> list[EmployeeAttendance]:
    """Ascending by rate; ties keep first-seen order. Zero-expected entries are dropped."""
    items = [
        EmployeeAttendance(id=f"att_{name}", name=name, summary=s)
        for name, s in summaries.items()
        if s.expected > 0
    ]
    return sorted(items, key=lambda x: x.summary.rate)


def worst(ranked: Sequence[EmployeeAttendance], n: int = DEFAULT_RANK_SIZE) -> list[EmployeeAttendance]:
    return list(ranked[:n])


def best(ranked: Sequence[EmployeeAttendance], n: int = DEFAULT_RANK_SIZE) -> list[EmployeeAttendance]:
    if n <= 0:
        return []
    return list(reversed(ranked[-n:]))


# --- date ranges -----------------------------------------------------------

def _compare_dates(a: DateColumn, b: DateColumn) -> int:
    if a.iso and b.iso and a.iso != b.iso:
        return -1 if a.iso < b.iso else 1
    ka, kb = collation_key(a.label), collation_key(b.label)
    return (ka > kb) - (ka < kb)


def build_date_list(
    headers: Sequence[str],
    headers_iso: Sequence[str] | None,
    date_columns: Iterable[int],
) -> list[DateColumn]:
    """Date columns sorted by ISO date, then by collated label."""
    iso_list = list(headers_iso or [])
    out = []
    for col in date_columns:
        iso = iso_list[col].strip() if 0 <= col < len(iso_list) else ""
        header = headers[col] if 0 <= col < len(headers) else ""
        out.append(DateColumn(index=col, iso=iso, label=format_month_day(iso) if iso else str(header)))
    return sorted(out, key=functools.cmp_to_key(_compare_dates))


def columns_up_to(date_list: Sequence[DateColumn], end_key: str | None) -> list[int]:
    """Columns from the first date up to and including ``end_key``.

    No key, or a key not in the list, selects every date.
    """
    if not end_key:
        return [d.index for d in date_list]
    for pos, d in enumerate(date_list):
        if d.key == end_key:
            return [x.index for x in date_list[: pos + 1]]
    return [d.index for d in date_list]


def find_date_column(date_list: Sequence[DateColumn], key: str | None) -> DateColumn | None:
    if not key:
        return None
    return next((d for d in date_list if d.key == key), None)


def _sheet_date_list(sheet: NormalizedSheet) -> list[DateColumn]:
    return build_date_list(sheet.headers, sheet.headers_iso, sheet.date_columns)


def range_statistics(
    sheet: NormalizedSheet,
    end_key: str | None = None,
    name: str | None = None,
    exclusions: ExclusionSets | None = None,
) -> dict[str, AttendanceSummary]:
    """Per-employee statistics over all dates up to ``end_key``.

    With ``name`` only that employee's rows are folded.
    """
    columns = columns_up_to(_sheet_date_list(sheet), end_key)
    rows = sheet.rows_for(name) if name else sheet.rows
    return aggregate_sheet(sheet, exclusions, columns=columns, rows=rows)


def single_day_statistics(
    sheet: NormalizedSheet,
    day_key: str,
    name: str | None = None,
    exclusions: ExclusionSets | None = None,
) -> dict[str, AttendanceSummary]:
    day = find_date_column(_sheet_date_list(sheet), day_key)
    if day is None:
        return {}
    rows = sheet.rows_for(name) if name else sheet.rows
    return aggregate_sheet(sheet, exclusions, columns=[day.index], rows=rows)


def range_label(date_list: Sequence[DateColumn], end_key: str | None) -> str:
    if not end_key:
        return ALL_DATES_LABEL
    d = find_date_column(date_list, end_key)
    return f"起始日至 {d.label}" if d else "起始日至選擇日"


def _joined_unique(values: Iterable[str]) -> str:
    seen: dict[str, None] = {}
    for v in values:
        v = v.strip()
        if v:
            seen.setdefault(v, None)
    return "、".join(seen)


def employee_profile(rows: Iterable[NormalizedRow], headers: Sequence[str]) -> tuple[str, str]:
    """Department and shift labels of one employee's rows."""
    rows = list(rows)
    dept_key = find_dept_key(headers)
    shift_key = find_shift_key(headers)
    dept = _joined_unique(r.get(dept_key) for r in rows) if dept_key else ""
    shift = _joined_unique(r.get(shift_key) for r in rows) if shift_key else ""
    return dept or UNFILLED_DEPT, shift


def _rate_text(summary: AttendanceSummary) -> str:
    return f"{summary.rate * 100:.1f}%" if summary.expected > 0 else "—"


def build_range_rows(
    sheet: NormalizedSheet,
    name: str,
    end_key: str | None = None,
    day_key: str | None = None,
    exclusions: ExclusionSets | None = None,
) -> list[list[object]]:
    """Export rows for one employee: the range statistic, plus the single day if requested.

    Columns follow RANGE_HEADERS.
    """
    target = name.strip()
    person_rows = sheet.rows_for(target)
    if not person_rows:
        return []
    dept, shift = employee_profile(person_rows, sheet.headers)
    date_list = _sheet_date_list(sheet)

    out: list[list[object]] = []
    stats = range_statistics(sheet, end_key, target, exclusions)
    s = stats.get(target, AttendanceSummary.from_counts(0, 0))
    out.append([target, dept, shift, range_label(date_list, end_key), s.expected, s.attended, s.absent, _rate_text(s)])

    day = find_date_column(date_list, day_key)
    if day is not None:
        s = single_day_statistics(sheet, day.key, target, exclusions).get(target, AttendanceSummary.from_counts(0, 0))
        out.append([target, dept, shift, f"單日 {day.label}", s.expected, s.attended, s.absent, _rate_text(s)])
    return out


def build_all_range_rows(
    sheet: NormalizedSheet,
    end_key: str | None = None,
    exclusions: ExclusionSets | None = None,
) -> list[list[object]]:
    """One row per employee over all dates up to ``end_key`` (ALL_RANGE_HEADERS).

    Sorted by department, then name, with the Traditional Chinese collator.
    """
    stats = range_statistics(sheet, end_key, exclusions=exclusions)
    out: list[list[object]] = []
    for name, s in stats.items():
        dept, shift = employee_profile(sheet.rows_for(name), sheet.headers)
        out.append([dept, shift, name, s.expected, s.attended, _rate_text(s)])
    out.sort(key=lambda r: (collation_key(r[0]), collation_key(r[2])))
    return out


# --- sheet level -----------------------------------------------------------

def sheet_totals(rows: Sequence[NormalizedRow]) -> SheetTotals:
    attended = expected = 0
    for r in rows:
        if r.attendance is None:
            continue
        attended += r.attendance.attended
        expected += r.attendance.expected
    return SheetTotals(total=len(rows), attended=attended, expected=expected, absent=max(0, expected - attended))


def headcount(rows: Iterable[NormalizedRow]) -> Headcount:
    names: set[str] = set()
    leave: set[str] = set()
    for r in rows:
        nm = r.display_name
        names.add(nm)
        if "離" in r.text():
            leave.add(nm)
    return Headcount(total=len(names), leave=len(leave), active=max(0, len(names) - len(leave)))


def department_kpi(rows: Iterable[NormalizedRow], headers: Sequence[str]) -> DeptKpi | None:
    """Distinct names per department, largest first; None without a 部門 column."""
    dept_key = find_dept_key(headers)
    if not dept_key:
        return None
    by_dept: dict[str, set[str]] = {}
    for r in rows:
        dept = r.get(dept_key).strip() or UNFILLED_DEPT
        by_dept.setdefault(dept, set()).add(r.display_name)
    # stable: equal counts keep first-seen order
    counts = sorted(((d, len(names)) for d, names in by_dept.items()), key=lambda x: -x[1])
    return DeptKpi(departments=tuple(counts))


def apply_employee_summaries(
    rows: Iterable[NormalizedRow],
    summaries: dict[str, AttendanceSummary],
) -> list[NormalizedRow]:
    """Fill rows that have no attendance yet with their employee's summary."""
    out = []
    for r in rows:
        s = summaries.get(r.display_name)
        if r.attendance is None and s is not None:
            r = replace(r, attendance=s, attendance_rate=s.rate)
        out.append(r)
    return out
