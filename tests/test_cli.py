"""CLI entry points."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from weather_lookup import cli, server
from weather_lookup.exceptions import ServiceUnavailableError
from weather_lookup.weather import NormalizedWeatherResult, WeatherFetcher


def _mock_result(**overrides: Any) -> NormalizedWeatherResult:
    values: dict[str, Any] = {
        "postal_code": "39002",
        "municipio": "Santander",
        "provincia": "Cantabria",
        "temperatura": "17°C",
        "timestamp": datetime(2026, 10, 17, 9, 0, tzinfo=UTC),
        "data_source": "mock_data",
        "note": "Test data - connectivity error with upstream API",
    }
    values.update(overrides)
    return NormalizedWeatherResult(**values)


def test_parse_args_flags() -> None:
    args = cli.parse_args(["39001", "--verbose", "--json"])
    assert args.postal_code == "39001"
    assert args.verbose is True
    assert args.as_json is True


def test_short_code_exits_with_validation_code(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["12"]) == 3
    assert "at least 4 digits" in capsys.readouterr().out


def test_table_output(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr(WeatherFetcher, "get_weather", lambda self, code, **kw: _mock_result())

    assert cli.main(["39002"]) == 0
    out = capsys.readouterr().out
    assert "Santander" in out
    assert "mock_data" in out
    assert "connectivity error" in out


def test_json_output(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr(WeatherFetcher, "get_weather", lambda self, code, **kw: _mock_result())

    assert cli.main(["39002", "--json"]) == 0
    out = capsys.readouterr().out
    assert '"dataSource": "mock_data"' in out
    assert '"codigoPostal": "39002"' in out


def test_unavailable_exit_code(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    def _fail(self: WeatherFetcher, code: str, **kwargs: Any) -> NormalizedWeatherResult:
        raise ServiceUnavailableError(
            "Service temporarily unavailable.",
            postal_code=code,
            details="ConnectError [REDACTED]",
            suggestion="try 39001",
        )

    monkeypatch.setattr(WeatherFetcher, "get_weather", _fail)

    assert cli.main(["39999", "--verbose"]) == 5
    out = capsys.readouterr().out
    assert "try 39001" in out
    assert "[REDACTED]" in out


def test_invalid_config_exits_2(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEATHER_TIMEOUT_SECONDS", "-1")
    assert cli.main(["39001"]) == 2
    assert server.main([]) == 2


def test_server_applies_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def _fake_run(app: Any, **kwargs: Any) -> None:
        captured["app"] = app
        captured.update(kwargs)

    monkeypatch.setattr(server.uvicorn, "run", _fake_run)

    assert server.main(["--port", "8081", "--debug"]) == 0
    assert captured["port"] == 8081
    assert captured["host"] == "0.0.0.0"
    assert captured["app"].state.diagnostics.enabled is True
    assert captured["app"].state.settings.port == 8081
