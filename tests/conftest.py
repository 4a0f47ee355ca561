"""Shared fixtures for MCP server tests."""

import pytest

from mcp_core.capabilities import FunctionTool
from mcp_core.dispatcher import RequestDispatcher
from mcp_core.server import MCPServer
from mcp_core.server_registry import ServerRegistry


@pytest.fixture
def registry():
    """Fresh server registry, cleared after the test."""
    registry = ServerRegistry()
    yield registry
    registry.clear_all()


@pytest.fixture
def server(registry: ServerRegistry) -> MCPServer:
    """Server with a single echo tool."""
    server = registry.get_or_create("test")
    server.register_tool(
        FunctionTool("echo", "Echo input", lambda message: "Echo: " + message).describe_arg(
            "message", "The message to echo"
        )
    )
    return server


@pytest.fixture
def dispatcher(server: MCPServer) -> RequestDispatcher:
    return RequestDispatcher(server)
