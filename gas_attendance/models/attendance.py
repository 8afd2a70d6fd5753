from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

"""Attendance summary value types.

An AttendanceSummary is produced fresh per query, either for a single sheet row
or for one employee folded across all of their rows.
"""

__all__ = [
    "AttendanceStatus",
    "AttendanceSummary",
    "EmployeeAttendance",
    "NORMAL_THRESHOLD",
    "LOW_THRESHOLD",
]

NORMAL_THRESHOLD = 0.90
LOW_THRESHOLD = 0.75


class AttendanceStatus(Enum):
    """Rate band of an AttendanceSummary.

    - NORMAL: rate >= 0.90
    - LOW: 0.75 <= rate < 0.90
    - ABNORMAL: rate < 0.75
    """
    NORMAL = "normal"
    LOW = "low"
    ABNORMAL = "abnormal"

    @classmethod
    def from_rate(cls, rate: float) -> AttendanceStatus:
        if rate >= NORMAL_THRESHOLD:
            return cls.NORMAL
        if rate >= LOW_THRESHOLD:
            return cls.LOW
        return cls.ABNORMAL

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @property
    def rank(self) -> int:
        """Sort rank, worst first."""
        return _STATUS_RANKS[self]


_STATUS_LABELS = {
    AttendanceStatus.NORMAL: "正常",
    AttendanceStatus.LOW: "偏低",
    AttendanceStatus.ABNORMAL: "異常",
}

_STATUS_RANKS = {
    AttendanceStatus.ABNORMAL: 0,
    AttendanceStatus.LOW: 1,
    AttendanceStatus.NORMAL: 2,
}


@dataclass(frozen=True)
class AttendanceSummary:
    """Expected / attended day counts and the derived rate and status.

    Build instances with from_counts() so that rate and status stay consistent
    with the counts (rate is 0 whenever expected is 0).
    """
    rate: float
    attended: int
    expected: int
    status: AttendanceStatus

    @classmethod
    def from_counts(cls, attended: int, expected: int) -> AttendanceSummary:
        rate = attended / expected if expected > 0 else 0.0
        return cls(rate=rate, attended=attended, expected=expected, status=AttendanceStatus.from_rate(rate))

    @property
    def absent(self) -> int:
        return max(0, self.expected - self.attended)

    def label(self) -> str:
        """Render as shown in the rate column, e.g. ``90% (9/10)``."""
        return f"{round(self.rate * 100)}% ({self.attended}/{self.expected})"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AttendanceSummary:
        return cls(
            rate=float(data.get("rate", 0.0)),
            attended=int(data.get("attended", 0)),
            expected=int(data.get("expected", 0)),
            status=AttendanceStatus(data.get("status", AttendanceStatus.ABNORMAL.value)),
        )


@dataclass(frozen=True)
class EmployeeAttendance:
    """One entry of the per-employee attendance list (rankings, full list view)."""
    id: str
    name: str
    summary: AttendanceSummary

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "summary": self.summary.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EmployeeAttendance:
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            summary=AttendanceSummary.from_dict(data.get("summary") or {}),
        )
