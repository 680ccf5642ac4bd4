"""Upstream weather lookup with proxy-aware egress and mock fallback."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import httpx

from ..config import Settings
from ..exceptions import (
    InternalServiceError,
    PostalCodeNotFoundError,
    PostalCodeValidationError,
    ServiceUnavailableError,
    UpstreamError,
    WeatherLookupError,
)
from ..log_setup import log_event
from ..proxy import (
    ClientFactory,
    ProxyConfig,
    TransportHandle,
    create_transport,
    open_handle_client,
    should_bypass_proxy,
)
from ..redaction import sanitize_text
from .mock_data import DEFAULT_MOCK_TABLE, MockWeatherTable
from .models import (
    NOT_AVAILABLE,
    DirectProbeResult,
    NormalizedWeatherResult,
    ProxyDiagnostics,
    TemperatureRange,
    UpstreamScalar,
    UpstreamWeatherRecord,
)

MIN_POSTAL_CODE_LENGTH = 4

NOTE_NOT_FOUND = "Test data - postal code not found in upstream API"
NOTE_CONNECTIVITY = "Test data - connectivity error with upstream API"


def format_measure(value: UpstreamScalar | None, unit: str) -> str:
    """Render an upstream value with its unit, or the placeholder when absent."""
    if value is None or isinstance(value, bool):
        return NOT_AVAILABLE
    if isinstance(value, float):
        text = f"{value:g}"
    else:
        text = str(value).strip()
    if not text:
        return NOT_AVAILABLE
    return f"{text}{unit}"


def _text_or_placeholder(value: str | None) -> str:
    if value is None or not value.strip():
        return NOT_AVAILABLE
    return value.strip()


def normalize_upstream_record(
    record: UpstreamWeatherRecord, *, default_province: str
) -> dict[str, Any]:
    """Map upstream fields onto the public response fields."""
    municipality = record.municipio
    temperatures: TemperatureRange | None = None
    if record.temperaturas is not None:
        temperatures = TemperatureRange(
            maxima=format_measure(record.temperaturas.max, "°C"),
            minima=format_measure(record.temperaturas.min, "°C"),
        )
    province = municipality.NOMBRE_PROVINCIA if municipality is not None else None
    return {
        "municipio": _text_or_placeholder(municipality.name if municipality else None),
        "provincia": _text_or_placeholder(province or default_province),
        "temperatura": format_measure(record.temperatura_actual, "°C"),
        "descripcion": _text_or_placeholder(
            record.state_sky.description if record.state_sky else None
        ),
        "humedad": format_measure(record.humedad, "%"),
        "viento": format_measure(record.viento, " km/h"),
        # The upstream payload carries no pressure reading.
        "presion": NOT_AVAILABLE,
        "temperaturas": temperatures,
    }


def _error_message(exc: BaseException) -> str:
    return sanitize_text(str(exc) or type(exc).__name__)


class WeatherFetcher:
    """Resolves one postal code to a normalized weather result."""

    def __init__(
        self,
        settings: Settings,
        proxy_config: ProxyConfig,
        logger: logging.Logger,
        *,
        mock_table: MockWeatherTable = DEFAULT_MOCK_TABLE,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.settings = settings
        self.proxy_config = proxy_config
        self.logger = logger
        self.mock_table = mock_table
        self._client_factory = client_factory or open_handle_client
        self._headers = {
            "User-Agent": settings.weather_user_agent,
            "Accept": "application/json",
        }

    @staticmethod
    def validate_postal_code(postal_code: str | None) -> str:
        """Return the trimmed code or raise PostalCodeValidationError."""
        if postal_code is None or not postal_code.strip():
            raise PostalCodeValidationError(
                "Postal code is required.", postal_code=postal_code
            )
        clean = postal_code.strip()
        if len(clean) < MIN_POSTAL_CODE_LENGTH:
            raise PostalCodeValidationError(
                f"Invalid postal code. It must have at least {MIN_POSTAL_CODE_LENGTH} digits.",
                postal_code=clean,
            )
        return clean

    def get_weather(
        self,
        postal_code: str | None,
        *,
        verbose: bool = False,
        request_id: str | None = None,
    ) -> NormalizedWeatherResult:
        """Fetch current conditions, falling back to mock data when allowed."""
        try:
            clean = self.validate_postal_code(postal_code)
        except PostalCodeValidationError as exc:
            log_event(
                self.logger,
                logging.WARNING,
                "WEATHER",
                f"Rejected postal code: {exc.message}",
                {"postalCode": postal_code},
                request_id,
            )
            raise

        url = self.settings.weather_url(clean)
        handle = create_transport(url, self.proxy_config, request_id=request_id)
        log_event(
            self.logger,
            logging.INFO,
            "EXTERNAL_API",
            "Sending request to upstream weather API",
            {"url": url, "postalCode": clean, **handle.describe()},
            request_id,
        )

        try:
            response, elapsed_ms = self._send(
                "GET", url, handle, timeout=self.settings.weather_timeout_seconds
            )
            log_event(
                self.logger,
                logging.INFO,
                "EXTERNAL_API",
                f"Upstream responded {response.status_code} in {elapsed_ms:.2f}ms",
                {
                    "status": response.status_code,
                    "statusText": response.reason_phrase,
                    "duration": f"{elapsed_ms:.2f}ms",
                    "url": url,
                },
                request_id,
            )
            if response.status_code == 404:
                return self._not_found(clean, request_id)
            if not response.is_success:
                raise UpstreamError(response.status_code, response.reason_phrase)
            record, raw_payload = self._parse_record(response)
        except httpx.TransportError as exc:
            return self._connectivity_fallback(clean, exc, verbose=verbose, request_id=request_id)
        except WeatherLookupError:
            raise
        except (UpstreamError, httpx.HTTPError, ValueError) as exc:
            log_event(
                self.logger,
                logging.ERROR,
                "WEATHER",
                "Weather lookup failed",
                {
                    "postalCode": clean,
                    "error": _error_message(exc),
                    "errorType": type(exc).__name__,
                },
                request_id,
            )
            raise InternalServiceError(
                "Internal server error while retrieving weather information.",
                postal_code=clean,
                details=_error_message(exc),
            ) from exc

        result = NormalizedWeatherResult(
            postal_code=clean,
            **normalize_upstream_record(record, default_province=self.settings.default_province),
            timestamp=datetime.now(UTC),
            data_source="external_api",
            raw_data=raw_payload if verbose else None,
            processing_time=f"{elapsed_ms:.2f}ms",
            protocol=handle.scheme.upper(),
            proxy_used=handle.proxied,
            proxy_info=ProxyDiagnostics(
                transport_kind=handle.kind,
                service_ip=handle.local_address or "default",
            ),
            request_id=request_id,
        )
        log_event(
            self.logger,
            logging.INFO,
            "WEATHER",
            "Weather data processed",
            {
                "municipio": result.municipio,
                "temperatura": result.temperatura,
                "dataSource": result.data_source,
                "processingTime": result.processing_time,
                "proxyUsed": result.proxy_used,
                "transportKind": handle.kind,
            },
            request_id,
        )
        return result

    def probe_direct(
        self, postal_code: str, *, request_id: str | None = None
    ) -> DirectProbeResult:
        """Issue one raw upstream call and report what happened."""
        url = self.settings.weather_url(postal_code.strip())
        handle = create_transport(url, self.proxy_config, request_id=request_id)
        should_use_proxy = not should_bypass_proxy(url, self.proxy_config.no_proxy)

        try:
            response, elapsed_ms = self._send(
                "GET", url, handle, timeout=self.settings.weather_timeout_seconds
            )
        except httpx.HTTPError as exc:
            log_event(
                self.logger,
                logging.ERROR,
                "TEST",
                "Direct upstream probe failed",
                {"url": url, "error": _error_message(exc), "errorType": type(exc).__name__},
                request_id,
            )
            return DirectProbeResult(
                success=False,
                url=url,
                error=_error_message(exc),
                error_type=type(exc).__name__,
                should_use_proxy=should_use_proxy,
                proxy_info=handle.describe(),
            )

        data: dict[str, Any] | None = None
        if response.is_success:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            data = payload if isinstance(payload, dict) else None

        log_event(
            self.logger,
            logging.INFO,
            "TEST",
            f"Direct upstream probe returned {response.status_code}",
            {"url": url, "status": response.status_code, "hasData": data is not None},
            request_id,
        )
        return DirectProbeResult(
            success=response.is_success,
            url=url,
            status=response.status_code,
            status_text=response.reason_phrase,
            data=data,
            duration=f"{elapsed_ms:.2f}ms",
            should_use_proxy=should_use_proxy,
            proxy_info=handle.describe(),
        )

    def _send(
        self, method: str, url: str, handle: TransportHandle, *, timeout: float
    ) -> tuple[httpx.Response, float]:
        started = time.perf_counter()
        with self._client_factory(handle, timeout, self._headers) as client:
            response = client.request(method, url)
        return response, (time.perf_counter() - started) * 1000

    @staticmethod
    def _parse_record(
        response: httpx.Response,
    ) -> tuple[UpstreamWeatherRecord, dict[str, Any]]:
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(
                f"Upstream returned unexpected payload type {type(payload).__name__}."
            )
        return UpstreamWeatherRecord.model_validate(payload), payload

    def _mock_result(
        self,
        postal_code: str,
        *,
        note: str,
        request_id: str | None,
        error_details: str | None = None,
    ) -> NormalizedWeatherResult:
        entry = self.mock_table[postal_code]
        return NormalizedWeatherResult(
            postal_code=postal_code,
            **entry.fields(),
            timestamp=datetime.now(UTC),
            data_source="mock_data",
            note=note,
            error_details=error_details,
            request_id=request_id,
        )

    def _not_found(self, postal_code: str, request_id: str | None) -> NormalizedWeatherResult:
        if postal_code in self.mock_table:
            log_event(
                self.logger,
                logging.INFO,
                "FALLBACK",
                "Using mock data for postal code unknown upstream",
                {"postalCode": postal_code, "source": "mock_data"},
                request_id,
            )
            return self._mock_result(postal_code, note=NOTE_NOT_FOUND, request_id=request_id)

        log_event(
            self.logger,
            logging.ERROR,
            "WEATHER",
            "Postal code not found and no mock data available",
            {"postalCode": postal_code, "status": 404},
            request_id,
        )
        raise PostalCodeNotFoundError(
            "No weather information found for this postal code.",
            postal_code=postal_code,
        )

    def _connectivity_fallback(
        self,
        postal_code: str,
        exc: httpx.TransportError,
        *,
        verbose: bool,
        request_id: str | None,
    ) -> NormalizedWeatherResult:
        message = _error_message(exc)
        mock_available = postal_code in self.mock_table
        log_event(
            self.logger,
            logging.WARNING,
            "FALLBACK",
            "Connectivity error with upstream API",
            {
                "postalCode": postal_code,
                "error": message,
                "errorType": type(exc).__name__,
                "mockAvailable": mock_available,
            },
            request_id,
        )
        if mock_available:
            return self._mock_result(
                postal_code,
                note=NOTE_CONNECTIVITY,
                request_id=request_id,
                error_details=message if verbose else None,
            )

        codes = ", ".join(self.mock_table.codes)
        raise ServiceUnavailableError(
            "Service temporarily unavailable. Connectivity problems with the upstream API.",
            postal_code=postal_code,
            details=message,
            suggestion=(
                f"Check the proxy configuration or try postal codes: {codes} "
                "(test data available)"
            ),
        ) from exc
