from __future__ import annotations

from .aggregator import Headcount, SheetTotals

"""SUMMARY line rendering for CLI output.

Format::

    SUMMARY warehouse={wh} sheet={sheet} rows={n} people={p} attended={a}
    expected={e} absent={x} rate={r} elapsed_sec={s}

Whitespace inside warehouse/sheet names is replaced with ``_`` so the line
stays splittable on spaces.
"""


def _format_number(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        # avoid scientific notation for tiny values
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.4f}".rstrip("0").rstrip(".")


def _token(value: str) -> str:
    return "_".join(str(value).split()) or "-"


def render_summary_line(
    warehouse: str,
    sheet: str,
    totals: SheetTotals,
    people: Headcount,
    elapsed_seconds: float,
) -> str:
    """Render the SUMMARY line for one sheet query.

    Examples:
        >>> from gas_attendance.services.aggregator import Headcount, SheetTotals
        >>> render_summary_line("TAO1", "班表", SheetTotals(3, 9, 10, 1), Headcount(3, 0, 3), 0.5)
        'SUMMARY warehouse=TAO1 sheet=班表 rows=3 people=3 attended=9 expected=10 absent=1 rate=0.9 elapsed_sec=0.5'
    """
    return (
        f"SUMMARY warehouse={_token(warehouse)} "
        f"sheet={_token(sheet)} "
        f"rows={totals.total} "
        f"people={people.total} "
        f"attended={totals.attended} "
        f"expected={totals.expected} "
        f"absent={totals.absent} "
        f"rate={_format_number(totals.rate)} "
        f"elapsed_sec={_format_number(elapsed_seconds)}"
    )
