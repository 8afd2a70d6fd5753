from __future__ import annotations

import re

from gas_attendance.services.aggregator import Headcount, SheetTotals
from gas_attendance.services.summary import render_summary_line

"""SUMMARY line format contract."""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+warehouse=(\S+)\s+sheet=(\S+)\s+rows=([0-9]+)\s+people=([0-9]+)\s+"
    r"attended=([0-9]+)\s+expected=([0-9]+)\s+absent=([0-9]+)\s+"
    r"rate=([0-9]+\.?[0-9]*)\s+elapsed_sec=([0-9]+\.?[0-9]*)$"
)


def test_summary_pattern_example_line():
    line = (
        "SUMMARY warehouse=TAO1 sheet=3月班表 rows=3 people=2 attended=4 "
        "expected=8 absent=4 rate=0.5 elapsed_sec=0.12"
    )
    assert SUMMARY_PATTERN.match(line), "SUMMARY line should match contract regex"


def test_rendered_line_matches_contract():
    line = render_summary_line("TAO 1", "出勤 記錄", SheetTotals(10, 7, 9, 2), Headcount(4, 1, 3), 2.5)
    m = SUMMARY_PATTERN.match(line)
    assert m
    attended, expected, absent = int(m.group(5)), int(m.group(6)), int(m.group(7))
    assert absent == expected - attended
    assert m.group(1) == "TAO_1"
