"""Attendance computation and export services."""
