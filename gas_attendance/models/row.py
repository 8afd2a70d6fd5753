from __future__ import annotations

from dataclasses import dataclass, field

from .attendance import AttendanceSummary

"""NormalizedRow / NormalizedSheet models.

A NormalizedRow is one non-blank payload row keyed by header name. Arbitrary
sheet columns live in ``values``; the side channels carried over from the raw
row (colors, backend attendance flags) and the computed attendance are fixed
fields.
"""

__all__ = [
    "NAME_KEY",
    "UNNAMED",
    "NormalizedRow",
    "NormalizedSheet",
]

NAME_KEY = "姓名"
UNNAMED = "（未命名）"


@dataclass(frozen=True)
class NormalizedRow:
    id: str  # gas_<n>, emission order after blank-row filtering
    values: dict[str, str]
    bg: list[str] | None = None
    fc: list[str] | None = None
    att: list[int] | None = None
    attendance: AttendanceSummary | None = None
    attendance_rate: float | None = None

    def __getitem__(self, key: str) -> str:
        return self.values[key]

    def get(self, key: str | None, default: str = "") -> str:
        if key is None:
            return default
        return self.values.get(key, default)

    @property
    def name(self) -> str:
        """Trimmed employee name, empty when the sheet has no name column."""
        raw = self.values.get("name") or self.values.get(NAME_KEY) or ""
        return str(raw).strip()

    @property
    def display_name(self) -> str:
        return self.name or UNNAMED

    def text(self) -> str:
        """All cell values joined, for free-text search."""
        return " ".join(self.values.values())


@dataclass(frozen=True)
class NormalizedSheet:
    headers: list[str]
    rows: list[NormalizedRow] = field(default_factory=list)
    headers_iso: list[str] = field(default_factory=list)
    date_columns: list[int] = field(default_factory=list)
    frozen_left: int = 0
    sheet_name: str = ""

    def iso_at(self, index: int) -> str:
        if 0 <= index < len(self.headers_iso):
            return self.headers_iso[index].strip()
        return ""

    def header_key(self, index: int) -> str:
        """Key under which column ``index`` is stored in NormalizedRow.values."""
        header = self.headers[index] if 0 <= index < len(self.headers) else ""
        return header or f"col_{index + 1}"

    def rows_for(self, name: str) -> list[NormalizedRow]:
        target = name.strip()
        return [r for r in self.rows if r.name == target]
