from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""JSON Lines error log for failed commands.

A failed remote call or workbook read becomes one ErrorRecord (keys fixed by
``config/error_log_schema.json``). Records are held in memory and appended to
``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC stamp of the first flush); a run
without failures leaves no file behind.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
STAMP_FORMAT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    def __init__(self, directory: Path | None = None) -> None:
        self.directory = Path(directory) if directory is not None else LOGS_DIR
        self._pending: list[ErrorRecord] = []
        self._target: Path | None = None

    @property
    def file_path(self) -> Path:
        """Log file of this buffer; the name is fixed on first access."""
        if self._target is None:
            self._target = self.directory / f"errors-{datetime.now(UTC).strftime(STAMP_FORMAT)}.log"
        return self._target

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def append(self, record: ErrorRecord) -> None:
        self._pending.append(record)

    def record_failure(self, operation: str, warehouse: str, sheet: str, exc: BaseException) -> ErrorRecord:
        """Classify ``exc`` (see ErrorRecord.from_exception) and buffer it."""
        rec = ErrorRecord.from_exception(operation, warehouse or "", sheet or "", exc)
        self.append(rec)
        return rec

    def flush(self) -> Path | None:
        """Append pending records and return the file, or None when nothing was pending."""
        if not self._pending:
            return None
        target = self.file_path
        target.parent.mkdir(parents=True, exist_ok=True)
        payload = "".join(rec.to_json_line() + "\n" for rec in self._pending)
        with target.open("a", encoding="utf-8") as fh:
            fh.write(payload)
        self._pending.clear()
        return target
