from __future__ import annotations

import io
import json
from pathlib import Path

import pytest
from openpyxl import Workbook

from nom035.infrastructure.config import get_settings, reset_settings
from scripts import run_server, score_workbook


@pytest.fixture
def web_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("WEB_HOST", "127.0.0.1")
    monkeypatch.setenv("WEB_PORT", "9001")
    monkeypatch.setenv("APP_ENVIRONMENT", "production")
    reset_settings()
    yield
    reset_settings()


def test_server_options_come_from_settings(web_env) -> None:
    options = run_server.build_server_options(get_settings())

    assert options["host"] == "127.0.0.1"
    assert options["port"] == 9001
    assert options["reload"] is False


def test_command_line_overrides(web_env) -> None:
    args = run_server.parse_args(["--port", "8123", "--reload"])
    options = run_server.build_server_options(get_settings(), args)

    assert options["host"] == "127.0.0.1"
    assert options["port"] == 8123
    assert options["reload"] is True


def test_main_starts_uvicorn(web_env, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[str, dict]] = []

    def fake_run(app: str, **kwargs) -> None:
        calls.append((app, kwargs))

    monkeypatch.setattr(run_server.uvicorn, "run", fake_run)

    run_server.main([])

    assert calls, "uvicorn was not started"
    assert calls[0][0] == "nom035.web.main:app"
    assert calls[0][1]["port"] == 9001


def write_workbook(path: Path, rows: list[tuple]) -> Path:
    wb = Workbook()
    ws = wb.active
    ws.append(("Question number", "Answer", "Notes"))
    for row in rows:
        ws.append(row)
    bio = io.BytesIO()
    wb.save(bio)
    path.write_bytes(bio.getvalue())
    return path


def test_score_workbook_writes_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    workbook = write_workbook(tmp_path / "guia1.xlsx", [(n, "Sí") for n in range(1, 6)])
    output = tmp_path / "report.json"

    code = score_workbook.main([str(workbook), "--guide", "I", "--output", str(output)])

    assert code == 0
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["report"]["overall_score"] == 5
    assert payload["report"]["overall_risk"]["level"] == "Alto"
    assert "5/15 answered" in capsys.readouterr().err


def test_score_workbook_without_usable_rows(tmp_path: Path) -> None:
    workbook = write_workbook(tmp_path / "empty.xlsx", [(99, "Sí")])
    assert score_workbook.main([str(workbook), "--guide", "I"]) == 1


def test_score_workbook_rejects_other_files(tmp_path: Path) -> None:
    other = tmp_path / "answers.csv"
    other.write_text("1,Sí\n", encoding="utf-8")
    assert score_workbook.main([str(other), "--guide", "I"]) == 2
