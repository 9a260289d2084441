from __future__ import annotations

import json

import uvicorn

from routines import main
from routines.api import app


def test_serve_hands_the_api_to_uvicorn(monkeypatch) -> None:
    calls = {}
    monkeypatch.setattr(main, "setup_logging", lambda: None)
    monkeypatch.setattr(uvicorn, "run", lambda served, **options: calls.update(app=served, **options))

    assert main.main(["serve", "--host", "127.0.0.1", "--port", "9000"]) == 0
    assert calls["app"] is app
    assert calls["host"] == "127.0.0.1"
    assert calls["port"] == 9000


def test_generate_rejects_malformed_date(monkeypatch, capsys) -> None:
    monkeypatch.setattr(main, "setup_logging", lambda: None)

    assert main.main(["generate", "--date", "03/06/2026"]) == 2
    assert json.loads(capsys.readouterr().out)["success"] is False
