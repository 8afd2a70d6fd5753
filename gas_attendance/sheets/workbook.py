from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.payload import RawPayload, RawRow
from ..services.sheet_roles import find_name_index
from .dates import ISO_DATE_RE, guess_iso_from_text

"""Local workbook source.

Reads an exported warehouse workbook (one sheet per page) with pandas and
turns each sheet into the same RawPayload shape the remote endpoint returns,
so the CLI and tests can run without the web app.

- First row (``header_row``) holds the headers; following rows are data
- Date headers (Excel dates or ``YYYY-MM-DD`` / ``YYYY/M/D`` text) fill
  ``headersISO`` and are rendered as ``M/D`` labels
- A directory source maps warehouse ``TAO1`` to ``<dir>/TAO1.xlsx``
"""

logger = logging.getLogger(__name__)

__all__ = [
    "WorkbookError",
    "read_workbook",
    "dataframe_to_payload",
    "WorkbookSource",
]


class WorkbookError(Exception):
    """Raised when a workbook or sheet cannot be read."""


def read_workbook(path: Path, target_sheets: list[str] | None = None) -> dict[str, pd.DataFrame]:
    """Read every sheet of ``path`` as a header-less, all-object DataFrame."""
    if not path.exists():
        raise WorkbookError(f"workbook not found: {path}")
    try:
        xls = pd.ExcelFile(path)
    except (ValueError, OSError) as e:
        raise WorkbookError(f"cannot open workbook {path}: {e}") from e
    dfs: dict[str, pd.DataFrame] = {}
    for name in xls.sheet_names:
        if target_sheets is not None and str(name) not in target_sheets:
            continue
        # keep "NA"/"N/A" etc. as text: leave codes are free text
        dfs[str(name)] = xls.parse(name, header=None, dtype=object, keep_default_na=False, na_values=[""])
    return dfs


def _cell_text(val: Any) -> str:
    if val is None or (not isinstance(val, str) and pd.isna(val)):
        return ""
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    if isinstance(val, datetime):
        return val.date().isoformat() if val.time() == datetime.min.time() else val.isoformat(sep=" ")
    if isinstance(val, date):
        return val.isoformat()
    return str(val).strip() if isinstance(val, str) else str(val)


def _header_iso(val: Any) -> str:
    if val is None or (not isinstance(val, str) and pd.isna(val)):
        return ""
    if isinstance(val, (datetime, date)):
        d = val.date() if isinstance(val, datetime) else val
        return d.isoformat()
    text = _cell_text(val)
    if ISO_DATE_RE.match(text):
        return text
    # only full-year text counts as a date header; "3/1" may be anything
    if text[:4].isdigit() and (len(text) > 4 and text[4] in "/-年"):
        return guess_iso_from_text(text) or ""
    return ""


def dataframe_to_payload(df: pd.DataFrame, header_row: int = 0) -> RawPayload:
    if df.shape[0] <= header_row:
        return RawPayload(headers=[], rows=[])
    header_cells = df.iloc[header_row].tolist()
    headers_iso = [_header_iso(v) for v in header_cells]
    headers = []
    for val, iso in zip(header_cells, headers_iso, strict=True):
        if iso:
            _, m, d = iso.split("-")
            headers.append(f"{int(m)}/{int(d)}")
        else:
            headers.append(_cell_text(val))
    rows = [RawRow(v=[_cell_text(v) for v in raw]) for raw in df.iloc[header_row + 1:].itertuples(index=False)]
    return RawPayload(headers=headers, rows=rows, headers_iso=headers_iso)


class WorkbookSource:
    """Offline stand-in for the remote sheet API (list_sheets / query_sheet)."""

    def __init__(self, path: Path, header_row: int = 0) -> None:
        self.path = Path(path)
        self.header_row = header_row

    def _workbook_for(self, warehouse: str) -> Path:
        if self.path.is_dir():
            return self.path / f"{warehouse.strip()}.xlsx"
        return self.path

    def _sheet_names(self, warehouse: str) -> list[str]:
        wb = self._workbook_for(warehouse)
        if not wb.exists():
            raise WorkbookError(f"workbook not found: {wb}")
        try:
            return [str(n) for n in pd.ExcelFile(wb).sheet_names]
        except (ValueError, OSError) as e:
            raise WorkbookError(f"cannot open workbook {wb}: {e}") from e

    def _query(self, warehouse: str, sheet: str, name_filter: str) -> RawPayload:
        wb = self._workbook_for(warehouse)
        dfs = read_workbook(wb, target_sheets=[sheet])
        if sheet not in dfs:
            raise WorkbookError(f"sheet '{sheet}' not found in {wb.name}")
        payload = dataframe_to_payload(dfs[sheet], self.header_row)
        target = name_filter.strip()
        if not target:
            return payload
        name_idx = find_name_index(payload.headers)
        if name_idx < 0:
            return RawPayload(headers=payload.headers, rows=[], headers_iso=payload.headers_iso)
        rows = [r for r in payload.rows if r.cell(name_idx).strip() == target]
        logger.debug("workbook filter name=%s kept %d/%d rows", target, len(rows), len(payload.rows))
        return RawPayload(headers=payload.headers, rows=rows, headers_iso=payload.headers_iso)

    async def list_sheets(self, warehouse: str) -> list[str]:
        return await asyncio.to_thread(self._sheet_names, warehouse)

    async def query_sheet(self, warehouse: str, sheet: str, name_filter: str = "") -> RawPayload:
        return await asyncio.to_thread(self._query, warehouse, sheet, name_filter)
