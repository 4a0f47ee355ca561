"""
Model Context Protocol (MCP) server core.

Named server instances expose tools, resources and prompts over JSON-RPC 2.0,
served by an HTTP or stdio transport.
"""

from .capabilities import (
    FunctionPrompt,
    FunctionResource,
    FunctionTool,
    Prompt,
    PromptArgument,
    Resource,
    Tool,
    ToolParameter,
    ToolParameterType,
)
from .dispatcher import MCP_PROTOCOL_VERSION, MethodHandler, RequestDispatcher
from .errors import InvalidParamsError, MCPError
from .server import MCPServer
from .server_registry import ServerRegistry, get_server_registry

__all__ = [
    "FunctionPrompt",
    "FunctionResource",
    "FunctionTool",
    "InvalidParamsError",
    "MCPError",
    "MCPServer",
    "MCP_PROTOCOL_VERSION",
    "MethodHandler",
    "Prompt",
    "PromptArgument",
    "RequestDispatcher",
    "Resource",
    "ServerRegistry",
    "Tool",
    "ToolParameter",
    "ToolParameterType",
    "get_server_registry",
]
