"""HTTP API: weather lookup, health, diagnostics toggle and egress checks."""

from __future__ import annotations

import logging
import platform
import threading
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import Settings, load_settings
from .connectivity import run_connectivity_checks
from .exceptions import WeatherLookupError
from .log_setup import log_event, setup_logger
from .proxy import ClientFactory, ProxyConfig
from .redaction import sanitize_text
from .weather import ErrorResponse, WeatherFetcher

AVAILABLE_ENDPOINTS = [
    "GET /api/health",
    "GET /api/debug",
    "POST /api/debug",
    "GET /api/connectivity-test",
    "GET /api/weather/{postal_code}",
    "GET /api/test-direct/{postal_code}",
]


class DiagnosticsSwitch:
    """Process-wide verbose-diagnostics flag, safe to flip from any worker."""

    def __init__(self, enabled: bool = False) -> None:
        self._enabled = enabled
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        with self._lock:
            return self._enabled

    def set(self, enabled: bool) -> bool:
        """Store the new value and return the previous one."""
        with self._lock:
            previous, self._enabled = self._enabled, enabled
        return previous


class DebugToggle(BaseModel):
    enabled: bool


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _verbose(request: Request) -> bool:
    return request.app.state.diagnostics.enabled


def _server_info(started_at: float) -> dict[str, Any]:
    return {
        "pythonVersion": platform.python_version(),
        "platform": platform.platform(),
        "uptime": round(time.monotonic() - started_at, 3),
    }


def build_router() -> APIRouter:
    router = APIRouter()

    @router.get("/weather/{postal_code}")
    def get_weather(postal_code: str, request: Request) -> dict[str, Any]:
        fetcher: WeatherFetcher = request.app.state.fetcher
        result = fetcher.get_weather(
            postal_code,
            verbose=_verbose(request),
            request_id=_request_id(request),
        )
        return result.to_payload()

    @router.get("/health")
    def health(request: Request) -> dict[str, Any]:
        state = request.app.state
        settings: Settings = state.settings
        payload = {
            "status": "OK",
            "timestamp": datetime.now(UTC).isoformat(),
            "debugMode": state.diagnostics.enabled,
            "uptime": round(time.monotonic() - state.started_at, 3),
            "version": __version__,
            "mockDataAvailable": state.fetcher.mock_table.codes,
            "proxyConfig": settings.proxy_summary(),
            "apiConfig": {
                "baseUrl": settings.api_base_url,
                "timeoutSeconds": settings.weather_timeout_seconds,
                "proxyEnabled": state.proxy_config.has_proxy,
            },
            "system": _server_info(state.started_at),
        }
        log_event(
            state.logger,
            logging.INFO,
            "HEALTH",
            "Health check requested",
            {"status": payload["status"], "uptime": payload["uptime"]},
            _request_id(request),
        )
        return payload

    @router.get("/debug")
    def debug_status(request: Request) -> dict[str, Any]:
        state = request.app.state
        return {
            "debugMode": state.diagnostics.enabled,
            "proxyConfig": state.settings.proxy_summary(),
            "serverInfo": _server_info(state.started_at),
        }

    @router.post("/debug")
    def debug_toggle(toggle: DebugToggle, request: Request) -> dict[str, Any]:
        state = request.app.state
        previous = state.diagnostics.set(toggle.enabled)
        log_event(
            state.logger,
            logging.INFO,
            "DEBUG",
            f"Debug mode changed: {previous} -> {toggle.enabled}",
            {
                "oldMode": previous,
                "newMode": toggle.enabled,
                "changedBy": request.client.host if request.client else None,
            },
            _request_id(request),
        )
        return {
            "success": True,
            "debugMode": toggle.enabled,
            "message": f"Debug mode {'enabled' if toggle.enabled else 'disabled'}",
            "proxyConfig": state.settings.proxy_summary(),
            "serverInfo": _server_info(state.started_at),
        }

    @router.get("/connectivity-test")
    def connectivity_test(request: Request) -> dict[str, Any]:
        state = request.app.state
        report = run_connectivity_checks(
            state.settings,
            state.proxy_config,
            state.logger,
            client_factory=state.client_factory,
            request_id=_request_id(request),
        )
        return report.model_dump(mode="json", by_alias=True, exclude_none=True)

    @router.get("/test-direct/{postal_code}")
    def test_direct(postal_code: str, request: Request) -> dict[str, Any]:
        fetcher: WeatherFetcher = request.app.state.fetcher
        result = fetcher.probe_direct(postal_code, request_id=_request_id(request))
        return result.to_payload()

    return router


def _install_handlers(app: FastAPI) -> None:
    @app.middleware("http")
    async def log_requests(request: Request, call_next: Any) -> Any:
        request_id = uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        started = time.perf_counter()
        logger = request.app.state.logger
        log_event(
            logger,
            logging.INFO,
            "HTTP",
            f"Request received: {request.method} {request.url.path}",
            {
                "method": request.method,
                "path": request.url.path,
                "query": dict(request.query_params),
                "ip": request.client.host if request.client else None,
                "userAgent": request.headers.get("user-agent"),
            },
            request_id,
        )
        response = await call_next(request)
        duration = (time.perf_counter() - started) * 1000
        log_event(
            logger,
            logging.INFO,
            "HTTP",
            f"Response sent: {response.status_code} in {duration:.2f}ms",
            {"statusCode": response.status_code, "duration": f"{duration:.2f}ms"},
            request_id,
        )
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(WeatherLookupError)
    async def weather_error_handler(request: Request, exc: WeatherLookupError) -> JSONResponse:
        body = ErrorResponse(
            error=exc.message,
            postal_code=exc.postal_code,
            received=exc.postal_code if exc.http_status == 400 else None,
            details=exc.details if _verbose(request) else None,
            suggestion=exc.suggestion,
            error_type=type(exc).__name__,
            request_id=_request_id(request),
        )
        return JSONResponse(status_code=exc.http_status, content=body.to_payload())

    @app.exception_handler(StarletteHTTPException)
    async def not_found_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code != 404:
            return await http_exception_handler(request, exc)
        log_event(
            request.app.state.logger,
            logging.WARNING,
            "ROUTING",
            "Endpoint not found",
            {"method": request.method, "path": request.url.path},
            _request_id(request),
        )
        return JSONResponse(
            status_code=404,
            content={
                "success": False,
                "error": "Endpoint not found",
                "requested": {"method": request.method, "path": request.url.path},
                "available": AVAILABLE_ENDPOINTS,
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        log_event(
            request.app.state.logger,
            logging.ERROR,
            "GLOBAL",
            "Unhandled error",
            {"method": request.method, "path": request.url.path, "errorType": type(exc).__name__},
            _request_id(request),
            exc_info=True,
        )
        content: dict[str, Any] = {
            "success": False,
            "error": "Internal server error",
            "timestamp": datetime.now(UTC).isoformat(),
        }
        if _verbose(request):
            content["details"] = sanitize_text(str(exc))
        return JSONResponse(status_code=500, content=content)


def create_app(
    settings: Settings | None = None,
    *,
    logger: logging.Logger | None = None,
    client_factory: ClientFactory | None = None,
) -> FastAPI:
    """Build the application; configuration is read once here."""
    settings = settings or load_settings()
    logger = logger or setup_logger(level=settings.log_level.upper())
    proxy_config = ProxyConfig.from_settings(settings)
    fetcher = WeatherFetcher(settings, proxy_config, logger, client_factory=client_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log_event(
            logger,
            logging.INFO,
            "SYSTEM",
            "Weather lookup server started",
            {
                **settings.safe_summary(),
                "proxyEnabled": proxy_config.has_proxy,
                "mockDataAvailable": fetcher.mock_table.codes,
            },
        )
        yield
        log_event(
            logger,
            logging.INFO,
            "SYSTEM",
            "Weather lookup server shutting down",
            {"uptime": round(time.monotonic() - app.state.started_at, 3)},
        )

    app = FastAPI(title="Weather Lookup", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.logger = logger
    app.state.proxy_config = proxy_config
    app.state.fetcher = fetcher
    app.state.client_factory = client_factory
    app.state.diagnostics = DiagnosticsSwitch(settings.debug_mode)
    app.state.started_at = time.monotonic()

    router = build_router()
    app.include_router(router, prefix="/api")
    # Bare paths for clients that talk to the service without the /api prefix.
    app.include_router(router, include_in_schema=False)
    _install_handlers(app)
    return app
