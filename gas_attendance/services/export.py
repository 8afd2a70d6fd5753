from __future__ import annotations

import html
import re
from collections.abc import Iterable, Sequence
from pathlib import Path

"""CSV and spreadsheet-HTML export of already computed tables.

- CSV: UTF-8 with BOM, comma separated, ``\\n`` line separator; a value is
  quoted only when it contains a newline, carriage return, tab, comma or
  double quote, and embedded quotes are doubled
- Excel: a minimal HTML document holding one ``<table>``, saved as ``.xls`` so
  spreadsheet applications import it
"""

__all__ = [
    "BOM",
    "to_csv_cell",
    "to_csv_text",
    "to_excel_html",
    "write_csv",
    "write_excel_html",
]

BOM = "\ufeff"

_NEEDS_QUOTE_RE = re.compile(r'[\n\r\t,"]')


def _text(value: object) -> str:
    return "" if value is None else str(value)


def to_csv_cell(value: object) -> str:
    s = _text(value)
    escaped = s.replace('"', '""')
    return f'"{escaped}"' if _NEEDS_QUOTE_RE.search(s) else escaped


def to_csv_text(headers: Sequence[object], rows: Iterable[Sequence[object]]) -> str:
    lines = [",".join(to_csv_cell(h) for h in headers)]
    for row in rows:
        lines.append(",".join(to_csv_cell(c) for c in row))
    return BOM + "\n".join(lines)


def _escape(value: object) -> str:
    # html.escape(quote=True) renders ' as &#x27;
    return html.escape(_text(value), quote=True).replace("&#x27;", "&#39;")


def to_excel_html(headers: Sequence[object], rows: Iterable[Sequence[object]]) -> str:
    thead = "<tr>" + "".join(f"<th>{_escape(h)}</th>" for h in headers) + "</tr>"
    tbody = "".join("<tr>" + "".join(f"<td>{_escape(c)}</td>" for c in row) + "</tr>" for row in rows)
    return (
        '<!doctype html><html><head><meta charset="utf-8" /></head><body>'
        f"<table>{thead}{tbody}</table></body></html>"
    )


def _target(path: Path, suffix: str) -> Path:
    path = Path(path)
    return path if path.suffix == suffix else path.with_name(path.name + suffix)


def write_csv(path: Path, headers: Sequence[object], rows: Iterable[Sequence[object]]) -> Path:
    """Write CSV bytes to ``path`` (``.csv`` appended when missing)."""
    fp = _target(path, ".csv")
    fp.parent.mkdir(parents=True, exist_ok=True)
    fp.write_bytes(to_csv_text(headers, rows).encode("utf-8"))
    return fp


def write_excel_html(path: Path, headers: Sequence[object], rows: Iterable[Sequence[object]]) -> Path:
    fp = _target(path, ".xls")
    fp.parent.mkdir(parents=True, exist_ok=True)
    fp.write_bytes(to_excel_html(headers, rows).encode("utf-8"))
    return fp
