"""Typed models for upstream payloads and normalized weather responses."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
    model_validator,
)

DataSource = Literal["external_api", "mock_data"]

NOT_AVAILABLE = "not available"

# Scalar values arrive as strings or numbers depending on the field; booleans
# are not readings.
UpstreamScalar = StrictStr | StrictInt | StrictFloat


class _UpstreamModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("*", mode="wrap")
    @classmethod
    def unusable_values_to_none(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> Any:
        """A field of the wrong shape is treated as absent."""
        try:
            return handler(value)
        except ValidationError:
            return None


class UpstreamMunicipality(_UpstreamModel):
    """Municipality block of the upstream payload."""

    NOMBRE: str | None = None
    nombre: str | None = None
    NOMBRE_PROVINCIA: str | None = None

    @property
    def name(self) -> str | None:
        return self.NOMBRE or self.nombre


class UpstreamSkyState(_UpstreamModel):
    description: str | None = None


class UpstreamTemperatures(_UpstreamModel):
    max: UpstreamScalar | None = None
    min: UpstreamScalar | None = None


class UpstreamWeatherRecord(_UpstreamModel):
    """Partial view of the upstream JSON; every field may be absent."""

    municipio: UpstreamMunicipality | None = None
    temperatura_actual: UpstreamScalar | None = None
    state_sky: UpstreamSkyState | None = Field(default=None, alias="stateSky")
    humedad: UpstreamScalar | None = None
    viento: UpstreamScalar | None = None
    temperaturas: UpstreamTemperatures | None = None


class _ResponseModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict using the public field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TemperatureRange(_ResponseModel):
    maxima: str = NOT_AVAILABLE
    minima: str = NOT_AVAILABLE


class ProxyDiagnostics(_ResponseModel):
    transport_kind: str = Field(alias="transportKind")
    service_ip: str = Field(default="default", alias="serviceIP")


class NormalizedWeatherResult(_ResponseModel):
    """Canonical weather answer returned to clients."""

    success: bool = True
    postal_code: str = Field(alias="codigoPostal")
    municipio: str = NOT_AVAILABLE
    provincia: str = NOT_AVAILABLE
    temperatura: str = NOT_AVAILABLE
    descripcion: str = NOT_AVAILABLE
    humedad: str = NOT_AVAILABLE
    viento: str = NOT_AVAILABLE
    presion: str = NOT_AVAILABLE
    temperaturas: TemperatureRange | None = None
    timestamp: datetime
    data_source: DataSource = Field(alias="dataSource")
    note: str | None = None
    error_details: str | None = Field(default=None, alias="errorDetails")
    raw_data: dict[str, Any] | None = Field(default=None, alias="rawData")
    processing_time: str | None = Field(default=None, alias="processingTime")
    protocol: str | None = None
    proxy_used: bool | None = Field(default=None, alias="proxyUsed")
    proxy_info: ProxyDiagnostics | None = Field(default=None, alias="proxyInfo")
    request_id: str | None = Field(default=None, alias="requestId")

    @model_validator(mode="after")
    def mock_results_carry_note(self) -> NormalizedWeatherResult:
        if self.data_source == "mock_data" and not (self.note and self.note.strip()):
            raise ValueError("mock_data results must explain themselves in 'note'.")
        return self


class ErrorResponse(_ResponseModel):
    """Structured error body for failed lookups."""

    success: bool = False
    error: str
    postal_code: str | None = Field(default=None, alias="codigoPostal")
    received: str | None = None
    details: str | None = None
    suggestion: str | None = None
    error_type: str | None = Field(default=None, alias="errorType")
    request_id: str | None = Field(default=None, alias="requestId")


class DirectProbeResult(_ResponseModel):
    """Outcome of a raw upstream call, used for egress troubleshooting."""

    success: bool
    url: str
    status: int | None = None
    status_text: str | None = Field(default=None, alias="statusText")
    data: dict[str, Any] | None = None
    error: str | None = None
    error_type: str | None = Field(default=None, alias="errorType")
    duration: str | None = None
    should_use_proxy: bool = Field(alias="shouldUseProxy")
    proxy_info: dict[str, Any] = Field(default_factory=dict, alias="proxyInfo")
