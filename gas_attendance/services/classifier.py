from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

"""Per-cell attendance classification.

A schedule cell holds free text: leave codes (休, 例假, 特 ...), shift codes
(A1, N) or time ranges (9:00-18:00). For every date column the classifier
answers two questions:

- should attend: does this day count toward ``expected``?
- attended: given that it counts, was the employee present?

Presence comes either from the cell text itself (auto-attend) or from the
backend-supplied ``att`` flags of the row.
"""

__all__ = [
    "EXCLUDE_FOR_RATE_DENOMINATOR",
    "EXCLUDE_FROM_ABSENCE",
    "ExclusionSets",
    "CellClassification",
    "tokenize_cell",
    "is_should_attend",
    "is_auto_attend",
    "is_actual_attend",
    "classify_cell",
    "iter_date_cells",
]

# Day-off / leave categories that do not count toward expected days
EXCLUDE_FOR_RATE_DENOMINATOR: frozenset[str] = frozenset({
    "例", "例假", "例假日", "例休",
    "休", "休假", "休假日",
    "國", "離",
    "調倉", "調任", "轉正",
})

# Tokens that force a cell to count as attended
EXCLUDE_FROM_ABSENCE: frozenset[str] = EXCLUDE_FOR_RATE_DENOMINATOR | {"未", "特"}

_SEPARATORS_RE = re.compile(r"[、，,;／/\n]+")
_ALNUM_RE = re.compile(r"^[A-Za-z0-9]+$")
_CJK_RE = re.compile(r"[\u4e00-\u9fff]")


@dataclass(frozen=True)
class ExclusionSets:
    for_rate: frozenset[str] = EXCLUDE_FOR_RATE_DENOMINATOR
    from_absence: frozenset[str] = EXCLUDE_FROM_ABSENCE

    def extended(
        self,
        for_rate: Iterable[str] | None = None,
        from_absence: Iterable[str] | None = None,
    ) -> ExclusionSets:
        """Return a copy with caller-supplied tokens added (blank tokens ignored)."""
        return ExclusionSets(
            for_rate=self.for_rate | _clean_tokens(for_rate),
            from_absence=self.from_absence | _clean_tokens(from_absence),
        )


def _clean_tokens(tokens: Iterable[str] | None) -> frozenset[str]:
    out = set()
    for t in tokens or ():
        v = str(t or "").strip()
        if v:
            out.add(v)
    return frozenset(out)


@dataclass(frozen=True)
class CellClassification:
    should_attend: bool
    attended: bool


def tokenize_cell(raw: object) -> list[str]:
    """Split cell text on 、，,;／/ and newlines; trimmed, empties dropped."""
    s = ("" if raw is None else str(raw)).strip()
    if not s:
        return []
    return [t.strip() for t in _SEPARATORS_RE.split(s) if t.strip()]


def is_should_attend(raw: object, exclude_for_rate: frozenset[str] = EXCLUDE_FOR_RATE_DENOMINATOR) -> bool:
    """True unless every token of a non-empty cell names a day off.

    An empty cell counts as an expected, unmarked workday.
    """
    tokens = tokenize_cell(raw)
    if not tokens:
        return True
    return any(t not in exclude_for_rate for t in tokens)


def is_auto_attend(raw: object, exclude_from_absence: frozenset[str] = EXCLUDE_FROM_ABSENCE) -> bool:
    tokens = tokenize_cell(raw)
    if not tokens:
        return False
    if any(t in exclude_from_absence for t in tokens):
        return True
    # a lone shift code (A1, N, 2) implies presence
    return len(tokens) == 1 and bool(_ALNUM_RE.match(tokens[0])) and not _CJK_RE.search(tokens[0])


def is_actual_attend(
    col: int,
    att: Sequence[int] | None,
    raw: object,
    exclude_from_absence: frozenset[str] = EXCLUDE_FROM_ABSENCE,
) -> bool:
    if is_auto_attend(raw, exclude_from_absence):
        return True
    if att:
        return 0 <= col < len(att) and bool(att[col])
    return False


def classify_cell(
    raw: object,
    col: int,
    att: Sequence[int] | None,
    exclusions: ExclusionSets | None = None,
) -> CellClassification:
    ex = exclusions or ExclusionSets()
    if not is_should_attend(raw, ex.for_rate):
        return CellClassification(should_attend=False, attended=False)
    return CellClassification(should_attend=True, attended=is_actual_attend(col, att, raw, ex.from_absence))


def iter_date_cells(
    values: dict[str, str],
    headers: Sequence[str],
    date_columns: Iterable[int],
) -> Iterator[tuple[int, str, str]]:
    """Yield ``(col, header, cell)`` for date columns with a usable header.

    Columns whose header is empty or whitespace-only are skipped, as are
    indices outside the header range.
    """
    for col in date_columns:
        if not 0 <= col < len(headers):
            continue
        header = headers[col]
        if not header or not str(header).strip():
            continue
        yield col, header, values.get(header, "")
