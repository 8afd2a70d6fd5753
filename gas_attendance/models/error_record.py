from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record per failed remote operation. The key set is fixed and checked
against gas_attendance/config/error_log_schema.json in the contract tests.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        operation: Remote operation name (list_sheets, query_sheet, ...)
        warehouse: Warehouse key the call was made for ("" when not applicable)
        sheet: Sheet/page name ("" when not applicable)
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Error message as surfaced to the user
    """
    timestamp: str
    operation: str
    warehouse: str
    sheet: str
    error_type: str
    message: str

    @staticmethod
    def create(operation: str, warehouse: str, sheet: str, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            operation=operation,
            warehouse=warehouse,
            sheet=sheet,
            error_type=error_type,
            message=message,
        )

    @staticmethod
    def from_exception(operation: str, warehouse: str, sheet: str, exc: BaseException) -> ErrorRecord:
        """Classify ``exc`` by class name: RemoteConnectionError -> REMOTE_CONNECTION."""
        name = type(exc).__name__
        if name.endswith("Error"):
            name = name[: -len("Error")]
        error_type = "".join(f"_{c}" if c.isupper() else c.upper() for c in name).lstrip("_")
        return ErrorRecord.create(operation, warehouse, sheet, error_type or "UNKNOWN", str(exc))

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
