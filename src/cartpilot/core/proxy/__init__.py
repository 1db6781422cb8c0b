"""Proxy pool management."""

from cartpilot.core.proxy.interchange import (
    format_proxy_line,
    parse_proxy_line,
    read_proxy_file,
    write_proxy_file,
)
from cartpilot.core.proxy.pool import ProxyPoolManager

__all__ = [
    "ProxyPoolManager",
    "format_proxy_line",
    "parse_proxy_line",
    "read_proxy_file",
    "write_proxy_file",
]
