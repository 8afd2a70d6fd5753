from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..sheets.dates import infer_date_columns

"""Raw payload returned by the remote sheet endpoint.

JSON shape::

    {"headers": [...], "headersISO": [...], "rows": [{"v": [...], "bg": [...],
     "fc": [...], "att": [...]}], "dateCols": [...], "frozenLeft": 2}

Optional arrays that are missing stay None; their absence disables the feature
that uses them (coloring, backend attendance flags) instead of failing.
"""

__all__ = [
    "RawRow",
    "RawPayload",
]


def _str_list(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return ["" if v is None else str(v) for v in value]


@dataclass(frozen=True)
class RawRow:
    v: list[str]
    bg: list[str] | None = None
    fc: list[str] | None = None
    att: list[int] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawRow:
        att_raw = data.get("att")
        att = [1 if a else 0 for a in att_raw] if isinstance(att_raw, list) else None
        return cls(
            v=_str_list(data.get("v")) or [],
            bg=_str_list(data.get("bg")),
            fc=_str_list(data.get("fc")),
            att=att,
        )

    def cell(self, index: int) -> str:
        if 0 <= index < len(self.v):
            return self.v[index]
        return ""


@dataclass(frozen=True)
class RawPayload:
    headers: list[str]
    rows: list[RawRow] = field(default_factory=list)
    headers_iso: list[str] | None = None
    date_cols: list[int] | None = None
    frozen_left: int = 0
    headers_top: list[str] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawPayload:
        rows_raw = data.get("rows") or []
        date_cols_raw = data.get("dateCols")
        date_cols = None
        if isinstance(date_cols_raw, list):
            date_cols = [int(c) for c in date_cols_raw if isinstance(c, (int, float)) or str(c).isdigit()]
        try:
            frozen = int(data.get("frozenLeft") or 0)
        except (TypeError, ValueError):
            frozen = 0
        return cls(
            headers=_str_list(data.get("headers")) or [],
            rows=[RawRow.from_dict(r) for r in rows_raw if isinstance(r, dict)],
            headers_iso=_str_list(data.get("headersISO")),
            date_cols=date_cols,
            frozen_left=frozen,
            headers_top=_str_list(data.get("headersTop")),
        )

    @property
    def date_columns(self) -> list[int]:
        """Authoritative ``dateCols`` when given, otherwise inferred from ``headersISO``."""
        if self.date_cols:
            return list(self.date_cols)
        return infer_date_columns(self.headers_iso)

    def iso_at(self, index: int) -> str:
        if self.headers_iso and 0 <= index < len(self.headers_iso):
            return self.headers_iso[index].strip()
        return ""
