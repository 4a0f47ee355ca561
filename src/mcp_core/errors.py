"""
Protocol-level exceptions.

Each exception maps to a JSON-RPC error code; the dispatcher converts them
into error responses for the single request that raised them. Tool failures
are not modelled here since they surface as `isError` results.
"""

from typing import Any, Optional

from .jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
)


class MCPError(Exception):
    """Base class for errors reported as JSON-RPC error objects."""

    code: int = INTERNAL_ERROR
    default_message: str = "Internal error"

    def __init__(self, message: Optional[str] = None, data: Optional[Any] = None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)


class ParseError(MCPError):
    code = PARSE_ERROR
    default_message = "Parse error"


class InvalidRequestError(MCPError):
    code = INVALID_REQUEST
    default_message = "Invalid Request"


class MethodNotFoundError(MCPError):
    code = METHOD_NOT_FOUND
    default_message = "Method not found"


class InvalidParamsError(MCPError):
    code = INVALID_PARAMS
    default_message = "Invalid params"


class InternalError(MCPError):
    code = INTERNAL_ERROR
    default_message = "Internal error"
