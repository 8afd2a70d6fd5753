from __future__ import annotations

from datetime import date

import pytest

from gas_attendance.sheets.dates import collation_key, format_month_day, guess_iso_from_text, infer_date_columns

TODAY = date(2024, 6, 1)


def test_infer_date_columns():
    assert infer_date_columns(["", "2024-03-01", "x", " 2024-03-02 ", "2024-3-3"]) == [1, 3]
    assert infer_date_columns(None) == []


@pytest.mark.parametrize("text, iso", [
    ("2024/3/5", "2024-03-05"),
    ("2024-03-05", "2024-03-05"),
    ("3/5", "2024-03-05"),
    ("12-31", "2024-12-31"),
    ("2023年3月5日", "2023-03-05"),
    ("3月5日", "2024-03-05"),
    (" 3 / 5 ", None),
    ("週一", None),
    ("", None),
])
def test_guess_iso_from_text(text, iso):
    assert guess_iso_from_text(text, TODAY) == iso


def test_format_month_day():
    assert format_month_day("2024-03-05") == "3/5"
    assert format_month_day("週一") == "週一"


def test_collation_orders_numbers_by_value():
    labels = ["1/10", "1/9", "10/1", "2/1", "3/10", "3/9"]
    assert sorted(labels, key=collation_key) == ["1/9", "1/10", "2/1", "3/9", "3/10", "10/1"]

def test_collation_follows_traditional_stroke_order():
    tags = ["婚假", "病假", "公假", "事假"]
    assert sorted(tags, key=collation_key) == ["公假", "事假", "病假", "婚假"]

def test_collation_accepts_any_text():
    keys = [collation_key(t) for t in ["①", "²", "", None, 3]]
    assert all(isinstance(k, bytes) for k in keys)
    assert collation_key(None) == collation_key("")
