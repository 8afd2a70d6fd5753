from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest

from gas_attendance.sheets.workbook import WorkbookError, WorkbookSource, dataframe_to_payload, read_workbook


@pytest.fixture()
def workbook(tmp_path: Path, make_workbook) -> Path:
    return make_workbook(tmp_path / "TAO1.xlsx", {
        "3月班表": [
            ["姓名", "部門", datetime(2024, 3, 1), datetime(2024, 3, 2), "2024/3/3", "備註"],
            ["王小明", "倉管", "A1", "休", None, "NA"],
            ["李大華", "揀貨", 9, "特", "病假", ""],
        ],
        "出勤記錄": [
            ["日期", "姓名", "假別"],
            ["2024/3/2", "王小明", "病假"],
        ],
    })


def test_dataframe_to_payload_headers_and_iso(workbook: Path):
    df = read_workbook(workbook, ["3月班表"])["3月班表"]
    payload = dataframe_to_payload(df)
    assert payload.headers == ["姓名", "部門", "3/1", "3/2", "3/3", "備註"]
    assert payload.headers_iso == ["", "", "2024-03-01", "2024-03-02", "2024-03-03", ""]
    assert payload.date_columns == [2, 3, 4]
    assert payload.rows[0].v == ["王小明", "倉管", "A1", "休", "", "NA"]
    # integral numbers lose the float suffix
    assert payload.rows[1].v[2] == "9"


def test_dataframe_to_payload_empty_frame():
    assert dataframe_to_payload(pd.DataFrame()).headers == []


def test_read_workbook_errors(tmp_path: Path):
    with pytest.raises(WorkbookError, match="not found"):
        read_workbook(tmp_path / "missing.xlsx")
    bad = tmp_path / "bad.xlsx"
    bad.write_bytes(b"not a workbook")
    with pytest.raises(WorkbookError, match="cannot open"):
        read_workbook(bad)


def test_source_lists_and_queries(workbook: Path):
    source = WorkbookSource(workbook)
    assert asyncio.run(source.list_sheets("TAO1")) == ["3月班表", "出勤記錄"]
    payload = asyncio.run(source.query_sheet("TAO1", "3月班表", " 李大華 "))
    assert [r.v[0] for r in payload.rows] == ["李大華"]
    assert payload.headers_iso[2] == "2024-03-01"


def test_directory_source_maps_warehouse_to_file(workbook: Path):
    source = WorkbookSource(workbook.parent)
    assert asyncio.run(source.list_sheets("TAO1")) == ["3月班表", "出勤記錄"]
    with pytest.raises(WorkbookError, match="TAO9.xlsx"):
        asyncio.run(source.list_sheets("TAO9"))


def test_unknown_sheet(workbook: Path):
    with pytest.raises(WorkbookError, match="not found"):
        asyncio.run(WorkbookSource(workbook).query_sheet("TAO1", "4月班表"))
