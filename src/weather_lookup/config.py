"""Typed settings loader for the weather lookup service."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError
from .redaction import redact_url

NOT_CONFIGURED = "not configured"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_env: Literal["development", "production", "test"] = Field(
        default="production", alias="APP_ENV"
    )
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3001, alias="PORT")
    debug_mode: bool = Field(default=False, alias="DEBUG_MODE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Lower-case variants (http_proxy, no_proxy, ...) match too because
    # env names are case-insensitive.
    http_proxy: str | None = Field(default=None, alias="HTTP_PROXY", repr=False)
    https_proxy: str | None = Field(default=None, alias="HTTPS_PROXY", repr=False)
    no_proxy: str | None = Field(default=None, alias="NO_PROXY")
    service_ip: str | None = Field(default=None, alias="SERVICE_IP")

    weather_api_url_template: str = Field(
        default="https://www.el-tiempo.net/api/json/v2/provincias/39/municipios/{postal_code}",
        alias="WEATHER_API_URL_TEMPLATE",
    )
    weather_user_agent: str = Field(default="WeatherApp/1.0", alias="WEATHER_USER_AGENT")
    weather_timeout_seconds: float = Field(default=15.0, alias="WEATHER_TIMEOUT_SECONDS")
    connectivity_timeout_seconds: float = Field(
        default=10.0, alias="CONNECTIVITY_TIMEOUT_SECONDS"
    )
    connectivity_probe_url: str = Field(
        default="https://www.google.com", alias="CONNECTIVITY_PROBE_URL"
    )
    default_province: str = Field(default="Cantabria", alias="DEFAULT_PROVINCE")

    # Declared for deployment parity only; nothing reads these.
    cache_ttl_seconds: int = Field(default=300, alias="CACHE_TTL_SECONDS")
    rate_limit_window_ms: int = Field(default=900_000, alias="RATE_LIMIT_WINDOW_MS")
    rate_limit_max: int = Field(default=100, alias="RATE_LIMIT_MAX")

    @field_validator("http_proxy", "https_proxy", "no_proxy", "service_ip", mode="before")
    @classmethod
    def empty_string_to_none(cls, value: Any) -> Any:
        """Treat empty env-string values as unset."""
        if isinstance(value, str) and value.strip() == "":
            return None
        if isinstance(value, str):
            return value.strip()
        return value

    @model_validator(mode="after")
    def validate_values(self) -> Settings:
        """Validate URL template, timeouts and port range."""
        if "{postal_code}" not in self.weather_api_url_template:
            raise ValueError("WEATHER_API_URL_TEMPLATE must include '{postal_code}'.")
        if not self.weather_api_url_template.startswith(("http://", "https://")):
            raise ValueError("WEATHER_API_URL_TEMPLATE must be an http(s) URL.")
        if not self.weather_user_agent.strip():
            raise ValueError("WEATHER_USER_AGENT must not be empty.")
        if self.weather_timeout_seconds <= 0:
            raise ValueError("WEATHER_TIMEOUT_SECONDS must be > 0.")
        if self.connectivity_timeout_seconds <= 0:
            raise ValueError("CONNECTIVITY_TIMEOUT_SECONDS must be > 0.")
        if not (0 < self.port < 65536):
            raise ValueError("PORT must be between 1 and 65535.")
        return self

    @property
    def api_base_url(self) -> str:
        """Upstream endpoint without the postal code segment."""
        return self.weather_api_url_template.split("{postal_code}", 1)[0].rstrip("/")

    def weather_url(self, postal_code: str) -> str:
        return self.weather_api_url_template.format(postal_code=postal_code)

    def proxy_summary(self) -> dict[str, str]:
        """Proxy settings safe for diagnostics endpoints (credentials removed)."""
        return {
            "httpProxy": redact_url(self.http_proxy) or NOT_CONFIGURED,
            "httpsProxy": redact_url(self.https_proxy) or NOT_CONFIGURED,
            "noProxy": self.no_proxy or NOT_CONFIGURED,
            "serviceIP": self.service_ip or "default",
        }

    def safe_summary(self) -> dict[str, Any]:
        """Return config summary safe for startup logging."""
        return {
            "app_env": self.app_env,
            "port": self.port,
            "debug_mode": self.debug_mode,
            "api_base_url": self.api_base_url,
            "weather_timeout_seconds": self.weather_timeout_seconds,
            "connectivity_timeout_seconds": self.connectivity_timeout_seconds,
            "proxy": self.proxy_summary(),
        }


def load_settings() -> Settings:
    """Load and validate settings, raising ConfigError on failure."""
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed reading environment/.env: {exc}") from exc
