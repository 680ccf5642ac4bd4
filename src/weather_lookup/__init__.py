"""Postal-code weather lookup service with proxy-aware egress."""

__version__ = "1.0.0"
