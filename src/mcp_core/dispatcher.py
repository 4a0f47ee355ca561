"""
JSON-RPC request dispatcher for MCP servers.

The dispatcher is transport agnostic: it takes a raw request (JSON text,
bytes or an already parsed dict), routes it by method through a command
table and returns the response structure. Transports only handle framing.

Each method is served by a MethodHandler registered in the table; adding
a method means adding a table entry.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple, Type, Union

from pydantic import BaseModel, ValidationError

from common.logging import get_logger
from .errors import (
    InvalidParamsError,
    InvalidRequestError,
    MCPError,
    MethodNotFoundError,
    ParseError,
)
from .jsonrpc import (
    INTERNAL_ERROR,
    JSONRPC_VERSION,
    JSONRPCHandler,
    MCPInitializeResult,
    MCPMethods,
    MCPPromptsGetParams,
    MCPResourcesReadParams,
    MCPToolsCallParams,
    RequestId,
)
from .server import MCPServer

logger = get_logger(__name__)

# MCP Protocol version
MCP_PROTOCOL_VERSION = "2025-06-18"

RawRequest = Union[str, bytes, bytearray, Dict[str, Any]]


def _validate_params(model: Type[BaseModel], params: Dict[str, Any]) -> Any:
    try:
        return model.model_validate(params)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'params'}: {error['msg']}"
            for error in e.errors()
        )
        raise InvalidParamsError(f"Invalid params: {details}")


class MethodHandler(ABC):
    """Handler for a single JSON-RPC method."""

    @abstractmethod
    def handle(self, server: MCPServer, params: Dict[str, Any]) -> Any:
        """Return the method result. Raise MCPError for protocol errors."""


class InitializeHandler(MethodHandler):
    """Report protocol version, server identity and current capabilities."""

    def handle(self, server: MCPServer, params: Dict[str, Any]) -> Any:
        client_version = params.get("protocolVersion")
        if client_version and client_version != MCP_PROTOCOL_VERSION:
            logger.info(
                event="protocol_version_mismatch",
                client_version=client_version,
                server_version=MCP_PROTOCOL_VERSION,
            )

        result = MCPInitializeResult(
            protocolVersion=MCP_PROTOCOL_VERSION,
            capabilities=server.get_capabilities(),
            serverInfo=server.get_server_info(),
            instructions=server.description or None,
        )
        return result.model_dump(exclude_none=True)


class ToolsListHandler(MethodHandler):
    def handle(self, server: MCPServer, params: Dict[str, Any]) -> Any:
        return {"tools": server.list_tools()}


class ToolsCallHandler(MethodHandler):
    def handle(self, server: MCPServer, params: Dict[str, Any]) -> Any:
        call = _validate_params(MCPToolsCallParams, params)
        return server.call_tool(call.name, call.arguments or {})


class ResourcesListHandler(MethodHandler):
    def handle(self, server: MCPServer, params: Dict[str, Any]) -> Any:
        return {"resources": server.list_resources()}


class ResourcesReadHandler(MethodHandler):
    def handle(self, server: MCPServer, params: Dict[str, Any]) -> Any:
        read = _validate_params(MCPResourcesReadParams, params)
        return server.read_resource(read.uri)


class PromptsListHandler(MethodHandler):
    def handle(self, server: MCPServer, params: Dict[str, Any]) -> Any:
        return {"prompts": server.list_prompts()}


class PromptsGetHandler(MethodHandler):
    def handle(self, server: MCPServer, params: Dict[str, Any]) -> Any:
        get = _validate_params(MCPPromptsGetParams, params)
        return server.get_prompt(get.name, get.arguments or {})


def default_handlers() -> Dict[str, MethodHandler]:
    """The MCP method table."""
    return {
        MCPMethods.INITIALIZE: InitializeHandler(),
        MCPMethods.TOOLS_LIST: ToolsListHandler(),
        MCPMethods.TOOLS_CALL: ToolsCallHandler(),
        MCPMethods.RESOURCES_LIST: ResourcesListHandler(),
        MCPMethods.RESOURCES_READ: ResourcesReadHandler(),
        MCPMethods.PROMPTS_LIST: PromptsListHandler(),
        MCPMethods.PROMPTS_GET: PromptsGetHandler(),
    }


class RequestDispatcher:
    """
    Routes JSON-RPC requests to a server's capabilities.

    Stateless per request; safe to share across threads.
    """

    def __init__(self, server: MCPServer, handlers: Optional[Dict[str, MethodHandler]] = None):
        self.server = server
        self.handlers = handlers if handlers is not None else default_handlers()

    def register_handler(self, method: str, handler: MethodHandler) -> None:
        self.handlers[method] = handler

    def handle(self, raw: RawRequest) -> Optional[Dict[str, Any]]:
        """
        Handle a single request.

        Args:
            raw: JSON text/bytes or a parsed dict

        Returns:
            Response dict, or None for notifications (requests without an id)
        """
        start_time = time.perf_counter()
        request_id: RequestId = None
        method = "<invalid>"
        is_notification = False
        error_code: Optional[int] = None

        try:
            payload = self._normalize(raw)
            request_id, is_notification = self._extract_id(payload)
            method, params = self._validate_envelope(payload)

            handler = self.handlers.get(method)
            if handler is None:
                raise MethodNotFoundError()

            logger.debug(event="jsonrpc_request", method=method, id=request_id)
            result = handler.handle(self.server, params)
            response = JSONRPCHandler.create_response(request_id, result)

        except MCPError as e:
            error_code = e.code
            response = JSONRPCHandler.create_error_response(request_id, e.code, e.message, e.data)
            logger.info(event="jsonrpc_error", method=method, id=request_id, code=e.code, error=e.message)

        except Exception as e:
            error_code = INTERNAL_ERROR
            logger.error(
                event="request_handler_error",
                method=method,
                id=request_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            response = JSONRPCHandler.create_error_response(
                request_id, INTERNAL_ERROR, f"Internal error: {e}"
            )

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self.server.stats.record_request(method, elapsed_ms, error_code)

        if is_notification:
            return None
        return JSONRPCHandler.dump(response)

    def handle_json(self, raw: RawRequest) -> Optional[str]:
        """Handle a request and serialize the response as compact JSON."""
        response = self.handle(raw)
        return JSONRPCHandler.serialize(response) if response is not None else None

    @staticmethod
    def _normalize(raw: RawRequest) -> Any:
        if isinstance(raw, dict):
            return raw
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ParseError(f"Parse error: {e}")
        if isinstance(raw, str):
            try:
                return json.loads(raw)
            except json.JSONDecodeError as e:
                raise ParseError(f"Parse error: {e}")
        raise ParseError(f"Parse error: unsupported request type {type(raw).__name__}")

    @staticmethod
    def _extract_id(payload: Any) -> Tuple[RequestId, bool]:
        if not isinstance(payload, dict):
            return None, False
        if "id" not in payload:
            return None, True

        request_id = payload["id"]
        if isinstance(request_id, bool) or not isinstance(request_id, (str, int, float, type(None))):
            raise InvalidRequestError("Invalid Request: id must be a string, number or null")
        return request_id, False

    @staticmethod
    def _validate_envelope(payload: Any) -> Tuple[str, Dict[str, Any]]:
        if not isinstance(payload, dict):
            raise InvalidRequestError("Invalid Request: expected a JSON object")
        if payload.get("jsonrpc") != JSONRPC_VERSION:
            raise InvalidRequestError('Invalid Request: jsonrpc must be "2.0"')

        method = payload.get("method")
        if not isinstance(method, str) or not method:
            raise InvalidRequestError("Invalid Request: method must be a non-empty string")

        params = payload.get("params")
        if params is None:
            params = {}
        elif not isinstance(params, dict):
            raise InvalidParamsError("Invalid params: params must be an object")
        return method, params
