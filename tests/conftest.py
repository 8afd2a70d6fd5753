# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pandas as pd
import pytest

from gas_attendance.logging.init import reset_logging
from gas_attendance.models.payload import RawPayload, RawRow


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        # set then delete so teardown also removes a value loaded from .env
        monkeypatch.setenv("GAS_URL", "")
        monkeypatch.delenv("GAS_URL")
        yield p


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """endpoint:
  base_url: https://example.invalid/exec
  timeout_seconds: 5
cache_ttl_seconds:
  sheets: 60
  query: 30
attendance:
  schedule_marker: 班表
  exclude_for_rate: [公假]
  rank_size: 3
session:
  state_directory: ./state
warehouses: [TAO1, TAO3]
timezone: Asia/Taipei
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "dashboard.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def schedule_payload() -> RawPayload:
    """Three rows, two employees; 王小明 spans two rows over the same dates."""
    return RawPayload(
        headers=["姓名", "部門", "班別", "3/1", "3/2", "3/3"],
        headers_iso=["", "", "", "2024-03-01", "2024-03-02", "2024-03-03"],
        rows=[
            RawRow(v=["王小明", "倉管", "早班", "A1", "休", ""], att=[0, 0, 0, 1, 0, 0]),
            RawRow(v=["王小明", "倉管", "早班", "", "", "9:00-18:00"], att=[0, 0, 0, 0, 0, 1]),
            RawRow(v=["李大華", "揀貨", "晚班", "9:00-18:00", "特", "病假"], att=[0, 0, 0, 1, 0, 0]),
            RawRow(v=["", " ", "\u200b", "", "", ""]),
        ],
    )


@pytest.fixture()
def make_workbook():
    """Factory writing a real .xlsx; first row of each sheet is the header row."""
    def _make(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for sheet_name, rows in sheets.items():
                pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
        return path
    return _make
