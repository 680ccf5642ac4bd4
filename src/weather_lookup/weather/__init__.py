"""Upstream weather lookup and response models."""

from .fetcher import WeatherFetcher, format_measure, normalize_upstream_record
from .mock_data import DEFAULT_MOCK_TABLE, MockWeatherEntry, MockWeatherTable
from .models import (
    NOT_AVAILABLE,
    DirectProbeResult,
    ErrorResponse,
    NormalizedWeatherResult,
    UpstreamWeatherRecord,
)

__all__ = [
    "DEFAULT_MOCK_TABLE",
    "NOT_AVAILABLE",
    "DirectProbeResult",
    "ErrorResponse",
    "MockWeatherEntry",
    "MockWeatherTable",
    "NormalizedWeatherResult",
    "UpstreamWeatherRecord",
    "WeatherFetcher",
    "format_measure",
    "normalize_upstream_record",
]
