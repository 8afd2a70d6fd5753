from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, replace

from ..models.payload import RawPayload, RawRow
from ..models.row import NAME_KEY, NormalizedRow, NormalizedSheet
from ..services.aggregator import summarize_row
from ..services.classifier import ExclusionSets
from ..services.sheet_roles import find_name_index

"""Row normalizer: raw sheet payload -> header-keyed rows.

Steps:
1. Coerce headers to str; an empty header is addressed as ``col_<n>``
2. Drop rows whose every cell is blank once invisible characters are removed
3. Key the remaining rows by header, ids ``gas_<n>`` in emission order
4. Mirror the detected name column into ``姓名``
5. For schedule sheets, attach the per-row attendance summary
"""

logger = logging.getLogger(__name__)

__all__ = [
    "NormalizeOptions",
    "clean_for_blank_check",
    "is_blank_row",
    "normalize_payload",
]

# NBSP, zero-width marks, bidi embeddings/isolates, word joiner, BOM
_INVISIBLE_RE = re.compile(r"[\u00A0\u200B-\u200F\u202A-\u202E\u2060\u2066-\u2069\uFEFF]")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class NormalizeOptions:
    sheet_name: str = ""
    disable_attendance: bool = False
    exclusions: ExclusionSets | None = None
    schedule_marker: str = "班表"

    @property
    def computes_attendance(self) -> bool:
        return not self.disable_attendance and self.schedule_marker in self.sheet_name.strip()


def clean_for_blank_check(value: object) -> str:
    s = "" if value is None else str(value)
    s = _INVISIBLE_RE.sub("", s)
    s = "".join(ch for ch in s if unicodedata.category(ch) != "Cf")
    return _WHITESPACE_RE.sub("", s).strip()


def is_blank_row(row: RawRow, width: int) -> bool:
    return not any(clean_for_blank_check(row.cell(i)) for i in range(width))


def normalize_payload(payload: RawPayload, options: NormalizeOptions | None = None) -> NormalizedSheet:
    opts = options or NormalizeOptions()
    headers = ["" if h is None else str(h) for h in payload.headers]
    name_idx = find_name_index(headers)
    date_columns = payload.date_columns
    compute = opts.computes_attendance and bool(date_columns)

    rows: list[NormalizedRow] = []
    dropped = 0
    for raw in payload.rows:
        if is_blank_row(raw, len(headers)):
            dropped += 1
            continue
        values: dict[str, str] = {}
        for i, h in enumerate(headers):
            values[h or f"col_{i + 1}"] = raw.cell(i)
        if name_idx >= 0:
            values[NAME_KEY] = raw.cell(name_idx)
        row = NormalizedRow(
            id=f"gas_{len(rows)}",
            values=values,
            bg=raw.bg,
            fc=raw.fc,
            att=raw.att,
        )
        if compute:
            summary = summarize_row(row, headers, date_columns, opts.exclusions)
            row = replace(row, attendance=summary, attendance_rate=summary.rate)
        rows.append(row)

    if dropped:
        logger.debug("sheet '%s': dropped %d blank rows", opts.sheet_name, dropped)

    return NormalizedSheet(
        headers=headers,
        rows=rows,
        headers_iso=list(payload.headers_iso or []),
        date_columns=date_columns,
        frozen_left=payload.frozen_left,
        sheet_name=opts.sheet_name,
    )
