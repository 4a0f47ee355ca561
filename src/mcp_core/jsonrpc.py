"""
JSON-RPC 2.0 Protocol Implementation for MCP

This module implements the JSON-RPC 2.0 message format used by the
Model Context Protocol. Every MCP message is wrapped in a JSON-RPC envelope.

Reference: https://www.jsonrpc.org/specification
MCP Spec: https://spec.modelcontextprotocol.io/specification/2025-06-18/basic/
"""

import json
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

# JSON-RPC version constant
JSONRPC_VERSION = "2.0"

# Standard JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Transport-level error codes (server error range)
UNAUTHORIZED = -32001
RATE_LIMITED = -32002
REQUEST_TOO_LARGE = -32003
SERVER_NOT_FOUND = -32004

ERROR_MESSAGES = {
    PARSE_ERROR: "Parse error",
    INVALID_REQUEST: "Invalid Request",
    METHOD_NOT_FOUND: "Method not found",
    INVALID_PARAMS: "Invalid params",
    INTERNAL_ERROR: "Internal error",
}

RequestId = Union[str, int, float, None]


class JSONRPCError(BaseModel):
    """JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Optional[Any] = None


class JSONRPCResponse(BaseModel):
    """JSON-RPC 2.0 response message (success)."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: RequestId
    result: Any


class JSONRPCErrorResponse(BaseModel):
    """JSON-RPC 2.0 response message (error)."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: RequestId
    error: JSONRPCError


class MCPMethods:
    """Standard MCP method names."""

    INITIALIZE = "initialize"

    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"

    RESOURCES_LIST = "resources/list"
    RESOURCES_READ = "resources/read"

    PROMPTS_LIST = "prompts/list"
    PROMPTS_GET = "prompts/get"


class MCPImplementation(BaseModel):
    """MCP implementation info."""

    name: str
    version: str


class MCPCapabilities(BaseModel):
    """MCP server capabilities. Absent keys are dropped from the wire form."""

    tools: Optional[Dict[str, Any]] = None
    resources: Optional[Dict[str, Any]] = None
    prompts: Optional[Dict[str, Any]] = None


class MCPInitializeResult(BaseModel):
    """Result for initialize response."""

    protocolVersion: str
    capabilities: MCPCapabilities
    serverInfo: MCPImplementation
    instructions: Optional[str] = None


class MCPToolsCallParams(BaseModel):
    """Parameters for tools/call request."""

    name: str
    arguments: Optional[Dict[str, Any]] = None


class MCPResourcesReadParams(BaseModel):
    """Parameters for resources/read request."""

    uri: str


class MCPPromptsGetParams(BaseModel):
    """Parameters for prompts/get request."""

    name: str
    arguments: Optional[Dict[str, Any]] = None


class MCPContentTypes:
    """Standard MCP content types."""

    TEXT = "text"


class MCPTextContent(BaseModel):
    """Text content block."""

    type: str = MCPContentTypes.TEXT
    text: str


class MCPToolsCallResult(BaseModel):
    """Result for tools/call response."""

    content: List[MCPTextContent] = Field(default_factory=list)
    isError: bool = False


class JSONRPCHandler:
    """Helpers for building and parsing JSON-RPC messages."""

    @staticmethod
    def create_response(id: RequestId, result: Any) -> JSONRPCResponse:
        """Create a JSON-RPC success response."""
        return JSONRPCResponse(id=id, result=result)

    @staticmethod
    def create_error_response(
        id: RequestId, code: int, message: Optional[str] = None, data: Optional[Any] = None
    ) -> JSONRPCErrorResponse:
        """Create a JSON-RPC error response."""
        error = JSONRPCError(code=code, message=message or ERROR_MESSAGES.get(code, "Error"), data=data)
        return JSONRPCErrorResponse(id=id, error=error)

    @staticmethod
    def dump(message: Union[JSONRPCResponse, JSONRPCErrorResponse]) -> Dict[str, Any]:
        """Convert a response model to its wire dict."""
        data = message.model_dump()
        if isinstance(message, JSONRPCErrorResponse) and data["error"].get("data") is None:
            data["error"].pop("data")
        return data

    @staticmethod
    def serialize(data: Dict[str, Any]) -> str:
        """Serialize a wire dict as a single compact JSON line."""
        return json.dumps(data, separators=(",", ":"), default=str)
