"""Transports carrying JSON-RPC messages between MCP clients and servers."""

from .http import HTTPTransport, create_http_app
from .stdio import StdioTransport

__all__ = ["HTTPTransport", "StdioTransport", "create_http_app"]
