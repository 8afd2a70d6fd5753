from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from datetime import date

import icu

"""Date helpers shared by the normalizer, aggregator and leave-tag extractor.

- infer_date_columns: the one place where missing ``dateCols`` are derived
- guess_iso_from_text: ordered pattern matchers, first match wins
- format_month_day / collation_key: display labels and their ordering
"""

__all__ = [
    "ISO_DATE_RE",
    "infer_date_columns",
    "guess_iso_from_text",
    "format_month_day",
    "COLLATION_LOCALE",
    "collation_key",
]

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_YMD_RE = re.compile(r"^(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})$")
_MD_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})$")
_CJK_RE = re.compile(r"^(?:(\d{4})年)?\s*(\d{1,2})月\s*(\d{1,2})日$")

COLLATION_LOCALE = "zh_Hant"


def infer_date_columns(headers_iso: Sequence[str] | None) -> list[int]:
    """Indices whose ISO header is a ``YYYY-MM-DD`` date."""
    if not headers_iso:
        return []
    return [i for i, iso in enumerate(headers_iso) if iso and ISO_DATE_RE.match(str(iso).strip())]


def _iso(year: int | str, month: int | str, day: int | str) -> str:
    return f"{int(year):04d}-{int(month):02d}-{int(day):02d}"


def _match_ymd(text: str, today: date) -> str | None:
    m = _YMD_RE.match(text)
    return _iso(m.group(1), m.group(2), m.group(3)) if m else None


def _match_md(text: str, today: date) -> str | None:
    m = _MD_RE.match(text)
    return _iso(today.year, m.group(1), m.group(2)) if m else None


def _match_cjk(text: str, today: date) -> str | None:
    m = _CJK_RE.match(text)
    if not m:
        return None
    return _iso(m.group(1) or today.year, m.group(2), m.group(3))


_MATCHERS: tuple[Callable[[str, date], str | None], ...] = (_match_ymd, _match_md, _match_cjk)


def guess_iso_from_text(text: object, today: date | None = None) -> str | None:
    """Parse free-text dates (``2024/3/5``, ``3/5``, ``2024年3月5日``, ``3月5日``).

    Month/day forms without a year assume the year of ``today``. Values are not
    range-checked; unparseable text returns None so callers fall back to the raw
    label.
    """
    t = ("" if text is None else str(text)).strip()
    if not t:
        return None
    ref = today or date.today()
    for matcher in _MATCHERS:
        iso = matcher(t, ref)
        if iso:
            return iso
    return None


def format_month_day(iso: str) -> str:
    """``2024-03-05`` -> ``3/5``; anything else is returned unchanged."""
    s = str(iso or "")
    if not ISO_DATE_RE.match(s):
        return s
    _, month, day = s.split("-")
    return f"{int(month)}/{int(day)}"


def _make_collator() -> icu.Collator:
    collator = icu.Collator.createInstance(icu.Locale(COLLATION_LOCALE))
    collator.setAttribute(icu.UCollAttribute.NUMERIC_COLLATION, icu.UCollAttributeValue.ON)
    return collator


_COLLATOR = _make_collator()


def collation_key(text: object) -> bytes:
    """Sort key for labels and tags: Traditional Chinese collation, digits by value.

    ``3/10`` sorts after ``3/9``; Han characters follow the zh-Hant stroke
    order (``公假`` < ``事假`` < ``病假`` < ``婚假``). Any text is accepted,
    including circled or superscript digits, which collate as symbols.
    """
    s = "" if text is None else str(text)
    return bytes(_COLLATOR.getSortKey(s))
