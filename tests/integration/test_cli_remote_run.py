from __future__ import annotations

import json
import re
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

import pytest

from gas_attendance.cli.__main__ import main as cli_main

SCHEDULE_BODY = {
    "headers": ["姓名", "部門", "班別", "3/1", "3/2", "3/3"],
    "headersISO": ["", "", "", "2024-03-01", "2024-03-02", "2024-03-03"],
    "rows": [
        {"v": ["王小明", "倉管", "早班", "A1", "休", ""], "att": [0, 0, 0, 1, 0, 0]},
        {"v": ["王小明", "倉管", "早班", "", "", "9:00-18:00"], "att": [0, 0, 0, 0, 0, 1]},
        {"v": ["李大華", "揀貨", "晚班", "9:00-18:00", "特", "病假"], "att": [0, 0, 0, 1, 0, 0]},
    ],
}


class FakeResponse:
    def __init__(self, status_code: int, body) -> None:
        self.status_code = status_code
        self._body = body

    def json(self):
        return self._body


class FakeSession:
    """Answers by the ``mode`` query parameter; records every requested URL."""

    def __init__(self, routes: dict[str, tuple[int, object]]) -> None:
        self.routes = routes
        self.urls: list[str] = []

    def get(self, url, timeout=None, headers=None):
        self.urls.append(url)
        params = {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}
        status, body = self.routes.get(params.get("mode", ""), (404, None))
        return FakeResponse(status, body)


@pytest.fixture()
def fake_remote(monkeypatch):
    def _install(routes: dict[str, tuple[int, object]]) -> FakeSession:
        session = FakeSession(routes)
        monkeypatch.setattr("gas_attendance.remote.client.requests.Session", lambda: session)
        return session
    return _install


def test_query_uses_backend_flags(write_config: Path, fake_remote, capsys):
    session = fake_remote({"api": (200, SCHEDULE_BODY)})
    code = cli_main(["query", "--warehouse", "TAO1", "--sheet", "3月班表"])
    out = capsys.readouterr().out
    assert code == 0
    assert "INFO 李大華: 67% (2/3) 異常" in out
    assert re.search(r"^SUMMARY warehouse=TAO1 sheet=3月班表 rows=3 people=2 attended=4 expected=8 absent=4 rate=0.5 ", out, re.M)

    assert len(session.urls) == 1
    url = session.urls[0]
    assert url.startswith("https://example.invalid/exec?")
    q = parse_qs(urlsplit(url).query)
    assert q["mode"] == ["api"]
    assert q["wh"] == ["TAO1"]
    assert q["sheet"] == ["3月班表"]
    assert "name" not in q
    assert "t" in q


def test_ranking_picks_schedule_from_page_list(write_config: Path, temp_workdir: Path, fake_remote, capsys):
    fake_remote({
        "getSheets": (200, {"sheetNames": ["人員名冊", "3月班表"]}),
        "api": (200, SCHEDULE_BODY),
    })
    assert cli_main(["ranking", "--warehouse", "TAO1"]) == 0
    out = capsys.readouterr().out
    assert "INFO worst: 王小明 67% (2/3) 異常" in out
    stored = json.loads((temp_workdir / "state" / "attendance_full.json").read_text(encoding="utf-8"))
    assert stored["page"] == "3月班表"


def test_sheets_with_spreadsheet_id(write_config: Path, fake_remote, capsys):
    fake_remote({
        "getSheets": (200, {"sheetNames": ["3月班表", "出勤時數"]}),
        "getWarehouseId": (200, {"spreadsheetId": "sid-123"}),
    })
    assert cli_main(["sheets", "--warehouse", "TAO3", "--id"]) == 0
    out = capsys.readouterr().out
    assert "INFO spreadsheet id: sid-123" in out
    assert "INFO sheet: 出勤時數 (other)" in out


def test_application_error_is_fatal(write_config: Path, fake_remote, capsys):
    fake_remote({"getSheets": (200, {"ok": False, "error": "找不到倉別"})})
    assert cli_main(["sheets", "--warehouse", "TAO3"]) == 1
    assert "ERROR sheets: 找不到倉別" in capsys.readouterr().out


def test_unknown_warehouse_is_rejected_before_any_request(write_config: Path, fake_remote, capsys):
    session = fake_remote({"getSheets": (200, {"sheetNames": ["3月班表"]})})
    assert cli_main(["sheets", "--warehouse", "TAO9"]) == 1
    assert "ERROR unknown warehouse: TAO9 (configured: TAO1, TAO3)" in capsys.readouterr().out
    assert session.urls == []


def test_warehouse_check_ignores_case(write_config: Path, fake_remote, capsys):
    fake_remote({"getSheets": (200, {"sheetNames": ["3月班表"]})})
    assert cli_main(["sheets", "--warehouse", "tao1"]) == 0


def test_http_status_error_is_logged(write_config: Path, temp_workdir: Path, fake_remote, capsys):
    fake_remote({"api": (500, None)})
    code = cli_main(["query", "--warehouse", "TAO1", "--sheet", "3月班表"])
    assert code == 1
    assert "ERROR query: API 錯誤 500" in capsys.readouterr().out

    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    record = json.loads(logs[0].read_text(encoding="utf-8").splitlines()[0])
    assert record["error_type"] == "HTTP_STATUS"
    assert record["operation"] == "query"
    assert record["warehouse"] == "TAO1"
    assert record["sheet"] == "3月班表"


def test_login_resolves_warehouse_and_remembers(write_config: Path, temp_workdir: Path, fake_remote, capsys):
    session = fake_remote({
        "verifyLogin": (200, {"ok": True, "name": "王小明"}),
        "findWarehouse": (200, {"ok": True, "warehouseKey": "TAO3"}),
    })
    assert cli_main(["login", "--name", "王小明", "--birthday", "0315"]) == 0
    out = capsys.readouterr().out
    assert "INFO login ok: 王小明 role=user warehouse=TAO3" in out
    assert "SUMMARY login=王小明 warehouse=TAO3 history=1" in out
    assert [parse_qs(urlsplit(u).query)["mode"][0] for u in session.urls] == ["verifyLogin", "findWarehouse"]

    remembered = json.loads((temp_workdir / "state" / "login_remember.json").read_text(encoding="utf-8"))
    assert remembered["name"] == "王小明"
    assert remembered["birthday"] == "0315"


def test_login_rejected(write_config: Path, temp_workdir: Path, fake_remote, capsys):
    fake_remote({"verifyLogin": (200, {"ok": False, "msg": "生日錯誤"})})
    assert cli_main(["login", "--name", "王小明", "--birthday", "0101"]) == 1
    assert "WARN login rejected: 生日錯誤" in capsys.readouterr().out
    assert not (temp_workdir / "state" / "login_remember.json").exists()


def test_dotenv_supplies_endpoint(temp_workdir: Path, fake_remote, capsys):
    (temp_workdir / ".env").write_text("GAS_URL=https://env.example/exec\n", encoding="utf-8")
    session = fake_remote({"getSheets": (200, {"sheetNames": ["3月班表"]})})
    assert cli_main(["sheets", "--warehouse", "TAO1"]) == 0
    assert session.urls[0].startswith("https://env.example/exec?")
    assert "SUMMARY warehouse=TAO1 sheets=1" in capsys.readouterr().out
