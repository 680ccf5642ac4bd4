"""Shared fixtures: isolate settings from the host environment."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import httpx
import pytest

from weather_lookup.config import Settings
from weather_lookup.proxy import TransportHandle

_ENV_KEYS = (
    "HTTP_PROXY",
    "HTTPS_PROXY",
    "NO_PROXY",
    "ALL_PROXY",
    "SERVICE_IP",
    "DEBUG_MODE",
    "PORT",
    "HOST",
    "LOG_LEVEL",
    "APP_ENV",
    "WEATHER_API_URL_TEMPLATE",
    "WEATHER_USER_AGENT",
    "WEATHER_TIMEOUT_SECONDS",
    "CONNECTIVITY_TIMEOUT_SECONDS",
    "CONNECTIVITY_PROBE_URL",
    "DEFAULT_PROVINCE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
        monkeypatch.delenv(key.lower(), raising=False)


def make_settings(**overrides: Any) -> Settings:
    """Settings built from explicit values only (no env file)."""
    return Settings(_env_file=None, **overrides)


class RecordingFactory:
    """Client factory that serves responses from a handler and records calls."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.handler = handler
        self.calls: list[tuple[TransportHandle, float, dict[str, str]]] = []
        self.requests: list[httpx.Request] = []

    def __call__(
        self, handle: TransportHandle, timeout: float, headers: Mapping[str, str]
    ) -> httpx.Client:
        self.calls.append((handle, timeout, dict(headers)))

        def _handle(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return self.handler(request)

        return httpx.Client(
            transport=httpx.MockTransport(_handle),
            headers=headers,
            timeout=timeout,
        )


def raise_connect_error(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("getaddrinfo ENOTFOUND www.el-tiempo.net", request=request)


def respond_json(payload: Any, status_code: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return _handler


def respond_status(status_code: int) -> Callable[[httpx.Request], httpx.Response]:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, text="upstream says no")

    return _handler
