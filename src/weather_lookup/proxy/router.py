"""Decide between direct and proxied egress for one outbound call.

Exclusion patterns follow the usual ``NO_PROXY`` conventions:

* ``example.com``: exact hostname match.
* ``*.example.com``: the domain itself and any subdomain.
* ``10.*`` / ``192.168.*``: any other pattern with ``*`` is an anchored glob
  over the whole hostname.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal
from urllib.parse import urlsplit

import httpx

from ..config import Settings
from ..log_setup import log_event
from ..redaction import redact_url

TransportKind = Literal["direct-http", "direct-https", "proxied-http", "proxied-https"]

_logger = logging.getLogger("weather_lookup.proxy")


def parse_exclusion_list(exclusions: str | Iterable[str] | None) -> tuple[str, ...]:
    """Split a comma-separated exclusion list into trimmed, non-empty entries."""
    if exclusions is None:
        return ()
    items = exclusions.split(",") if isinstance(exclusions, str) else exclusions
    return tuple(item.strip().lower() for item in items if item and item.strip())


@dataclass(frozen=True, slots=True)
class ProxyConfig:
    """Process-wide egress configuration, read once at startup."""

    http_proxy: str | None = None
    https_proxy: str | None = None
    no_proxy: tuple[str, ...] = field(default_factory=tuple)
    local_address: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> ProxyConfig:
        return cls(
            http_proxy=settings.http_proxy,
            https_proxy=settings.https_proxy,
            no_proxy=parse_exclusion_list(settings.no_proxy),
            local_address=settings.service_ip,
        )

    @property
    def has_proxy(self) -> bool:
        return bool(self.http_proxy or self.https_proxy)

    def proxy_for(self, scheme: str) -> str | None:
        return self.https_proxy if scheme == "https" else self.http_proxy


@dataclass(frozen=True, slots=True)
class TransportHandle:
    """Egress settings for exactly one outbound call."""

    kind: TransportKind
    scheme: Literal["http", "https"]
    proxy_url: str | None = None
    local_address: str | None = None

    @property
    def proxied(self) -> bool:
        return self.proxy_url is not None

    def open_client(
        self,
        *,
        timeout: float,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Client:
        """Build a fresh client for this handle; the caller must close it."""
        transport = httpx.HTTPTransport(
            proxy=httpx.Proxy(self.proxy_url) if self.proxy_url else None,
            local_address=self.local_address,
        )
        return httpx.Client(
            transport=transport,
            timeout=timeout,
            headers=dict(headers or {}),
            follow_redirects=True,
            trust_env=False,
        )

    def describe(self) -> dict[str, Any]:
        return {
            "transportKind": self.kind,
            "proxyUrl": redact_url(self.proxy_url),
            "serviceIP": self.local_address or "default",
        }


def _glob_to_regex(pattern: str) -> re.Pattern[str]:
    body = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(f"^{body}$")


def should_bypass_proxy(url: str, exclusions: str | Iterable[str] | None) -> bool:
    """Return True when ``url`` matches an exclusion pattern."""
    patterns = parse_exclusion_list(exclusions)
    if not patterns:
        return False

    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        # Unparseable targets still go through the proxy.
        return False
    if not hostname:
        return False

    for pattern in patterns:
        if hostname == pattern:
            return True
        if pattern.startswith("*."):
            domain = pattern[2:]
            if hostname == domain or hostname.endswith("." + domain):
                return True
            continue
        if "*" in pattern and _glob_to_regex(pattern).match(hostname):
            return True
    return False


def create_transport(
    url: str,
    proxy_config: ProxyConfig,
    *,
    request_id: str | None = None,
) -> TransportHandle:
    """Pick direct or proxied egress for ``url``; performs no I/O."""
    scheme: Literal["http", "https"] = "https" if url.lower().startswith("https://") else "http"
    proxy_url = proxy_config.proxy_for(scheme)
    bypass = should_bypass_proxy(url, proxy_config.no_proxy)
    use_proxy = not bypass and proxy_url is not None

    if use_proxy:
        handle = TransportHandle(
            kind=f"proxied-{scheme}",  # type: ignore[arg-type]
            scheme=scheme,
            proxy_url=proxy_url,
            local_address=proxy_config.local_address,
        )
    else:
        handle = TransportHandle(
            kind=f"direct-{scheme}",  # type: ignore[arg-type]
            scheme=scheme,
            local_address=proxy_config.local_address,
        )

    log_event(
        _logger,
        logging.DEBUG,
        "PROXY",
        f"Transport selected for {url}",
        {
            "scheme": scheme,
            "bypass": bypass,
            "proxyConfigured": proxy_url is not None,
            **handle.describe(),
        },
        request_id,
    )
    return handle


ClientFactory = Callable[[TransportHandle, float, Mapping[str, str]], httpx.Client]


def open_handle_client(
    handle: TransportHandle, timeout: float, headers: Mapping[str, str]
) -> httpx.Client:
    """Default ClientFactory: a real client configured from the handle."""
    return handle.open_client(timeout=timeout, headers=headers)
