"""Domain models for the attendance dashboard core.

Value types produced fresh per query: raw payloads from the sheet endpoint,
normalized rows, attendance summaries and error log records.
"""

from .attendance import AttendanceStatus, AttendanceSummary, EmployeeAttendance
from .error_record import ErrorRecord
from .payload import RawPayload, RawRow
from .row import NormalizedRow, NormalizedSheet

__all__ = [
    # Payload models
    "RawPayload",
    "RawRow",
    # Normalized models
    "NormalizedRow",
    "NormalizedSheet",
    # Attendance models
    "AttendanceStatus",
    "AttendanceSummary",
    "EmployeeAttendance",
    # Logging
    "ErrorRecord",
]
