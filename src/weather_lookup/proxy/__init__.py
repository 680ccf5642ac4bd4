"""Outbound proxy routing."""

from .router import (
    ClientFactory,
    ProxyConfig,
    TransportHandle,
    TransportKind,
    create_transport,
    open_handle_client,
    parse_exclusion_list,
    should_bypass_proxy,
)

__all__ = [
    "ClientFactory",
    "ProxyConfig",
    "TransportHandle",
    "TransportKind",
    "create_transport",
    "open_handle_client",
    "parse_exclusion_list",
    "should_bypass_proxy",
]
