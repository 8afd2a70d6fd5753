from __future__ import annotations

from datetime import date

import pytest

from gas_attendance.models.payload import RawPayload, RawRow
from gas_attendance.services.leave_tags import (
    TagMode,
    extract_tag_dates,
    filter_rows_by_tag,
    hidden_date_columns,
    leave_options,
    tag_statistics,
)
from gas_attendance.sheets.normalizer import NormalizeOptions, normalize_payload


@pytest.fixture()
def matrix(schedule_payload: RawPayload):
    return normalize_payload(schedule_payload, NormalizeOptions(sheet_name="3月班表"))


@pytest.fixture()
def records():
    payload = RawPayload(
        headers=["日期", "姓名", "假別"],
        rows=[
            RawRow(v=["2024/3/10", "Amy", "病假"]),
            RawRow(v=["3/2", "Amy", "特休、事假"]),
            RawRow(v=["2024/3/2", "Bob", "病假"]),
            RawRow(v=["3月1日", "Bob", "病假"]),
            RawRow(v=["下週", "Bob", "事假"]),
        ],
    )
    return normalize_payload(payload, NormalizeOptions(sheet_name="出勤記錄"))


def test_matrix_tags(matrix):
    tags = extract_tag_dates(matrix)
    assert tags["休"] == ["3/2"]
    assert tags["特"] == ["3/2"]
    assert tags["9:00-18:00"] == ["3/1", "3/3"]
    assert list(tags)[:2] == ["9:00-18:00", "A1"]


def test_record_tags_sorted_and_unique(records):
    tags = extract_tag_dates(records, today=date(2024, 6, 1))
    assert tags["病假"] == ["3/1", "3/2", "3/10"]
    assert tags["事假"] == ["3/2", "下週"]
    assert tags["特休"] == ["3/2"]


def test_record_mode_without_columns_is_empty(matrix):
    assert extract_tag_dates(matrix, mode=TagMode.RECORD) == {}


def test_tag_statistics_filter(records):
    stats = tag_statistics(extract_tag_dates(records, today=date(2024, 6, 1)), "病假")
    assert len(stats) == 1
    assert (stats[0].tag, stats[0].dates, stats[0].count) == ("病假", "3/1、3/2、3/10", 3)
    assert len(tag_statistics({"a": ["1"], "b": ["2"]})) == 2


def test_leave_options(records, matrix):
    options = leave_options(records)
    assert options[0] == "事假"
    assert sorted(options) == sorted(["事假", "病假", "特休"])
    assert "A1" in leave_options(matrix)


def test_filter_rows_by_whole_token(records):
    kept = filter_rows_by_tag(records, "事假")
    assert [r["日期"] for r in kept] == ["3/2", "下週"]
    # 特 must not match 特休
    assert filter_rows_by_tag(records, "特") == []
    assert len(filter_rows_by_tag(records, "")) == 5


def test_hidden_date_columns(matrix):
    assert hidden_date_columns(matrix, "特") == {3, 5}
    assert hidden_date_columns(matrix, "") == set()
    # only the given rows are considered
    assert hidden_date_columns(matrix, "A1", rows=matrix.rows[1:]) == {3, 4, 5}


def test_circled_digit_tag_does_not_break_sorting():
    payload = RawPayload(
        headers=["姓名", "3/1", "3/2", "3/10"],
        headers_iso=["", "2024-03-01", "2024-03-02", "2024-03-10"],
        rows=[
            RawRow(v=["王小明", "①", "A1", "①"]),
            RawRow(v=["李大華", "A1", "①", "事假"]),
        ],
    )
    sheet = normalize_payload(payload, NormalizeOptions(sheet_name="3月班表"))
    tags = extract_tag_dates(sheet)
    assert tags["①"] == ["3/1", "3/2", "3/10"]
    assert "①" in leave_options(sheet)
    assert [s.tag for s in tag_statistics(tags, "①")] == ["①"]
