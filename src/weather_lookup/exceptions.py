"""Application exception classes."""

from __future__ import annotations


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""


class WeatherLookupError(Exception):
    """Base class for failures reported to weather lookup clients."""

    http_status = 500

    def __init__(
        self,
        message: str,
        *,
        postal_code: str | None = None,
        details: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.postal_code = postal_code
        self.details = details
        self.suggestion = suggestion


class PostalCodeValidationError(WeatherLookupError):
    """Raised when the submitted postal code is missing or too short."""

    http_status = 400


class PostalCodeNotFoundError(WeatherLookupError):
    """Raised when upstream has no record and no mock entry exists."""

    http_status = 404


class ServiceUnavailableError(WeatherLookupError):
    """Raised for connectivity failures that have no mock fallback."""

    http_status = 503


class InternalServiceError(WeatherLookupError):
    """Raised for unexpected failures, including upstream non-2xx replies."""

    http_status = 500


class UpstreamError(Exception):
    """Raised when the upstream API answers with a non-2xx, non-404 status."""

    def __init__(self, status_code: int, reason: str) -> None:
        super().__init__(f"API Error: {status_code} {reason}".rstrip())
        self.status_code = status_code
        self.reason = reason
