"""Outbound connectivity checks routed the same way as weather lookups."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field

from .config import Settings
from .log_setup import log_event
from .proxy import ClientFactory, ProxyConfig, create_transport, open_handle_client
from .redaction import sanitize_text


@dataclass(frozen=True, slots=True)
class ConnectivityTarget:
    name: str
    url: str
    method: Literal["GET", "HEAD"]
    timeout: float


class ConnectivityCheck(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    success: bool
    message: str
    duration: str
    transport_kind: str = Field(alias="transportKind")
    error_type: str | None = Field(default=None, alias="errorType")


class ConnectivitySummary(BaseModel):
    total: int
    passed: int
    failed: int


class ConnectivityReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    timestamp: datetime
    proxy_config: dict[str, str] = Field(alias="proxyConfig")
    tests: list[ConnectivityCheck]
    summary: ConnectivitySummary


def default_targets(settings: Settings, sample_postal_code: str = "39001") -> list[ConnectivityTarget]:
    """Public HTTPS reachability first, then the upstream API itself."""
    return [
        ConnectivityTarget(
            name=f"{httpx.URL(settings.connectivity_probe_url).host} (HTTPS)",
            url=settings.connectivity_probe_url,
            method="HEAD",
            timeout=settings.connectivity_timeout_seconds,
        ),
        ConnectivityTarget(
            name="Weather API (HTTPS)",
            url=settings.weather_url(sample_postal_code),
            method="GET",
            timeout=settings.weather_timeout_seconds,
        ),
    ]


def _run_check(
    target: ConnectivityTarget,
    proxy_config: ProxyConfig,
    headers: Mapping[str, str],
    client_factory: ClientFactory,
    request_id: str | None,
) -> ConnectivityCheck:
    handle = create_transport(target.url, proxy_config, request_id=request_id)
    started = time.perf_counter()
    try:
        with client_factory(handle, target.timeout, headers) as client:
            response = client.request(target.method, target.url)
    except httpx.HTTPError as exc:
        return ConnectivityCheck(
            name=target.name,
            success=False,
            message=sanitize_text(str(exc) or type(exc).__name__),
            duration=f"{(time.perf_counter() - started) * 1000:.2f}ms",
            transport_kind=handle.kind,
            error_type=type(exc).__name__,
        )
    return ConnectivityCheck(
        name=target.name,
        success=response.is_success,
        message=f"HTTP {response.status_code} {response.reason_phrase}".rstrip(),
        duration=f"{(time.perf_counter() - started) * 1000:.2f}ms",
        transport_kind=handle.kind,
    )


def run_connectivity_checks(
    settings: Settings,
    proxy_config: ProxyConfig,
    logger: logging.Logger,
    *,
    targets: list[ConnectivityTarget] | None = None,
    client_factory: ClientFactory | None = None,
    request_id: str | None = None,
) -> ConnectivityReport:
    """Probe each target once and summarize the outcome."""
    factory = client_factory or open_handle_client
    headers = {"User-Agent": settings.weather_user_agent}
    checks: list[ConnectivityCheck] = []
    for target in targets if targets is not None else default_targets(settings):
        check = _run_check(target, proxy_config, headers, factory, request_id)
        log_event(
            logger,
            logging.INFO if check.success else logging.WARNING,
            "CONNECTIVITY",
            f"{target.name}: {'OK' if check.success else 'FAIL'}",
            check.model_dump(by_alias=True, exclude_none=True),
            request_id,
        )
        checks.append(check)

    passed = sum(1 for check in checks if check.success)
    return ConnectivityReport(
        timestamp=datetime.now(UTC),
        proxy_config=settings.proxy_summary(),
        tests=checks,
        summary=ConnectivitySummary(total=len(checks), passed=passed, failed=len(checks) - passed),
    )
