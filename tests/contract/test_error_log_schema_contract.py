from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from gas_attendance.logging.error_log import ErrorLogBuffer
from gas_attendance.models.error_record import ErrorRecord
from gas_attendance.remote.client import RemoteConnectionError

"""Error log JSON schema contract test."""

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "gas_attendance" / "config" / "error_log_schema.json"


@pytest.fixture()
def schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_error_log_schema_valid_example(schema: dict):
    record = {
        "timestamp": "2024-03-05T10:12:33Z",
        "operation": "query",
        "warehouse": "TAO1",
        "sheet": "3月班表",
        "error_type": "HTTP_STATUS",
        "message": "API 錯誤 500",
    }
    jsonschema.validate(record, schema)


def test_error_log_schema_rejects_extra_key(schema: dict):
    record = {
        "timestamp": "2024-03-05T10:12:33Z",
        "operation": "query",
        "warehouse": "TAO1",
        "sheet": "3月班表",
        "error_type": "HTTP_STATUS",
        "message": "API 錯誤 500",
        "extra": "not allowed",
    }
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(record, schema)


def test_error_log_schema_rejects_lowercase_type(schema: dict):
    record = ErrorRecord.create("query", "", "", "http_status", "x")
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(json.loads(record.to_json_line()), schema)


def test_written_lines_conform(schema: dict, tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(ErrorRecord.from_exception("list_sheets", "TAO1", "", RemoteConnectionError("https://x/exec", "timeout")))
    path = buf.flush()
    for line in path.read_text(encoding="utf-8").splitlines():
        jsonschema.validate(json.loads(line), schema)
