#!/usr/bin/env python3
"""Sample warehouse workbook generator.

Writes a ``<warehouse>.xlsx`` shaped like an exported warehouse spreadsheet,
readable with ``gas-attendance --workbook``:

- ``<month>班表``: 姓名 / 部門 / 班別, then one column per day holding shift
  codes (A1, N), time ranges, leave codes (休, 例, 特 ...) or nothing
- ``出勤記錄``: one row per leave event (日期 / 姓名 / 假別)
"""
from __future__ import annotations

import argparse
import sys
from datetime import date, timedelta
from pathlib import Path

import numpy as np
import pandas as pd

SHIFT_CODES = ["A1", "A2", "N", "9:00-18:00", "13:00-22:00"]
LEAVE_CODES = ["休", "例", "例假", "特", "病假", "事假", "未"]
DEPARTMENTS = ["倉管", "揀貨", "出貨", "品管"]

# shift / leave / blank
CELL_WEIGHTS = [0.72, 0.24, 0.04]


def generate_schedule(people: int, days: int, start: date, seed: int = 42) -> pd.DataFrame:
    """Schedule matrix with a header row; date headers are real dates."""
    rng = np.random.default_rng(seed)
    dates = [start + timedelta(days=i) for i in range(days)]
    header = ["姓名", "部門", "班別", *dates]

    kinds = rng.choice(3, size=(people, days), p=CELL_WEIGHTS)
    shifts = rng.choice(SHIFT_CODES, size=(people, days))
    leaves = rng.choice(LEAVE_CODES, size=(people, days))

    rows = [header]
    for p in range(people):
        cells = []
        for d in range(days):
            k = kinds[p, d]
            cells.append(str(shifts[p, d]) if k == 0 else str(leaves[p, d]) if k == 1 else "")
        rows.append([f"員工{p + 1:03d}", DEPARTMENTS[p % len(DEPARTMENTS)], str(shifts[p, 0]), *cells])
    return pd.DataFrame(rows)


def records_from_schedule(schedule: pd.DataFrame) -> pd.DataFrame:
    """Leave events of the schedule as record rows."""
    header = schedule.iloc[0].tolist()
    out = [["日期", "姓名", "假別"]]
    for _, row in schedule.iloc[1:].iterrows():
        for col in range(3, len(header)):
            code = row.iloc[col]
            if code in LEAVE_CODES:
                out.append([f"{header[col].year}/{header[col].month}/{header[col].day}", row.iloc[0], code])
    return pd.DataFrame(out)


def create_workbook(output_path: Path, people: int, days: int, start: date, seed: int = 42) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    schedule = generate_schedule(people, days, start, seed)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        schedule.to_excel(writer, sheet_name=f"{start.month}月班表", header=False, index=False)
        records_from_schedule(schedule).to_excel(writer, sheet_name="出勤記錄", header=False, index=False)
    return output_path


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a sample warehouse workbook")
    parser.add_argument("output", type=Path, help="Output .xlsx path (e.g. data/TAO1.xlsx)")
    parser.add_argument("--people", type=int, default=40)
    parser.add_argument("--days", type=int, default=31)
    parser.add_argument("--start", type=date.fromisoformat, default=date(2024, 3, 1), help="First day (YYYY-MM-DD)")
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    if args.people <= 0 or args.days <= 0:
        print("Error: --people and --days must be positive", file=sys.stderr)
        return 1

    path = create_workbook(args.output, args.people, args.days, args.start, args.seed)
    print(f"Created workbook: {path}")
    print(f"  People: {args.people}  Days: {args.days}  From: {args.start.isoformat()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
