"""Attendance-reporting core for spreadsheet-backed warehouse schedules."""

__version__ = "0.1.0"
