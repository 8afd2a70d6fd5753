from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum

from ..models.row import NormalizedRow, NormalizedSheet
from ..sheets.dates import collation_key, format_month_day, guess_iso_from_text
from .classifier import tokenize_cell
from .sheet_roles import find_date_key, find_leave_key

"""Leave / absence tag extraction.

Matrix sheets (one column per day) and record sheets (one row per event with a
date column and a leave-type column) are both reduced to
``{tag: [date label, ...]}``; tags and dates are sorted with the Traditional
Chinese collator, digits by value.
"""

__all__ = [
    "TagMode",
    "LeaveTagStat",
    "extract_matrix_tags",
    "extract_record_tags",
    "extract_tag_dates",
    "tag_statistics",
    "leave_options",
    "filter_rows_by_tag",
    "hidden_date_columns",
]

_TAG_BOUNDARY = r"[\s、，,;／/]"


class TagMode(Enum):
    MATRIX = "matrix"
    RECORD = "record"


@dataclass(frozen=True)
class LeaveTagStat:
    tag: str
    dates: str  # labels joined with 、
    count: int


def _sorted_result(tag_dates: dict[str, set[str]]) -> dict[str, list[str]]:
    return {
        tag: sorted(tag_dates[tag], key=collation_key)
        for tag in sorted(tag_dates, key=collation_key)
    }


def extract_matrix_tags(
    rows: Iterable[NormalizedRow],
    headers: Sequence[str],
    headers_iso: Sequence[str] | None,
    date_columns: Sequence[int],
) -> dict[str, list[str]]:
    rows = list(rows)
    iso_list = list(headers_iso or [])
    tag_dates: dict[str, set[str]] = {}
    for col in date_columns:
        if not 0 <= col < len(headers):
            continue
        iso = iso_list[col].strip() if col < len(iso_list) else ""
        label = format_month_day(iso) if iso else headers[col]
        key = headers[col] or f"col_{col + 1}"
        for row in rows:
            for tag in tokenize_cell(row.get(key)):
                tag_dates.setdefault(tag, set()).add(label)
    return _sorted_result(tag_dates)


def extract_record_tags(
    rows: Iterable[NormalizedRow],
    date_key: str,
    leave_key: str,
    today: date | None = None,
) -> dict[str, list[str]]:
    tag_dates: dict[str, set[str]] = {}
    for row in rows:
        ds = row.get(date_key).strip()
        iso = guess_iso_from_text(ds, today)
        label = format_month_day(iso) if iso else ds
        for tag in tokenize_cell(row.get(leave_key)):
            tag_dates.setdefault(tag, set()).add(label)
    return _sorted_result(tag_dates)


def _detect_mode(sheet: NormalizedSheet) -> TagMode:
    return TagMode.MATRIX if sheet.date_columns else TagMode.RECORD


def extract_tag_dates(
    sheet: NormalizedSheet,
    mode: TagMode | None = None,
    rows: Iterable[NormalizedRow] | None = None,
    today: date | None = None,
) -> dict[str, list[str]]:
    """Tag -> sorted unique date labels for ``rows`` (default: all sheet rows).

    Record mode needs a 日期 column and a 假別/狀態 column; without them the
    result is empty.
    """
    mode = mode or _detect_mode(sheet)
    target = sheet.rows if rows is None else rows
    if mode is TagMode.MATRIX:
        return extract_matrix_tags(target, sheet.headers, sheet.headers_iso, sheet.date_columns)
    date_key = find_date_key(sheet.headers)
    leave_key = find_leave_key(sheet.headers)
    if not date_key or not leave_key:
        return {}
    return extract_record_tags(target, date_key, leave_key, today)


def tag_statistics(tag_dates: dict[str, list[str]], tag_filter: str = "") -> list[LeaveTagStat]:
    f = tag_filter.strip()
    return [
        LeaveTagStat(tag=tag, dates="、".join(dates), count=len(dates))
        for tag, dates in tag_dates.items()
        if not f or tag == f
    ]


def leave_options(sheet: NormalizedSheet, rows: Iterable[NormalizedRow] | None = None) -> list[str]:
    """Distinct tags available for filtering, sorted."""
    target = list(sheet.rows if rows is None else rows)
    tags: set[str] = set()
    if sheet.date_columns:
        keys = [sheet.header_key(c) for c in sheet.date_columns if 0 <= c < len(sheet.headers)]
    else:
        leave_key = find_leave_key(sheet.headers)
        if not leave_key:
            return []
        keys = [leave_key]
    for row in target:
        for key in keys:
            tags.update(tokenize_cell(row.get(key)))
    return sorted(tags, key=collation_key)


def filter_rows_by_tag(sheet: NormalizedSheet, tag: str, rows: Iterable[NormalizedRow] | None = None) -> list[NormalizedRow]:
    """Record sheets: keep rows whose leave column carries ``tag`` as a whole token.

    Matrix sheets are returned unfiltered; use hidden_date_columns() there.
    """
    target = list(sheet.rows if rows is None else rows)
    if not tag or sheet.date_columns:
        return target
    leave_key = find_leave_key(sheet.headers)
    if not leave_key:
        return target
    pattern = re.compile(f"(^|{_TAG_BOUNDARY}){re.escape(tag)}($|{_TAG_BOUNDARY})")
    return [r for r in target if pattern.search(r.get(leave_key))]


def hidden_date_columns(sheet: NormalizedSheet, tag: str, rows: Iterable[NormalizedRow] | None = None) -> set[int]:
    """Matrix sheets: date columns in which no row carries ``tag``."""
    target = list(sheet.rows if rows is None else rows)
    if not tag or not sheet.date_columns or not target:
        return set()
    hidden = set()
    for col in sheet.date_columns:
        key = sheet.header_key(col)
        if not any(tag in tokenize_cell(r.get(key)) for r in target):
            hidden.add(col)
    return hidden
