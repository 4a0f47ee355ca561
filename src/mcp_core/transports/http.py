"""
HTTP Transport for MCP

One endpoint per server at `{base_path}/{server_name}`:

- POST: JSON-RPC request body, JSON-RPC response body
- OPTIONS: CORS preflight
- GET: server summary

Before dispatch every POST goes through the server's policy: body size
limit, authentication, then rate limiting. Rejected requests never reach
the dispatcher. Dispatch runs in the threadpool so requests are handled
independently of each other.
"""

import threading
from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from common.config import Config
from common.logging import TimedLogger, get_logger
from ..dispatcher import RequestDispatcher
from ..jsonrpc import (
    INVALID_REQUEST,
    PARSE_ERROR,
    RATE_LIMITED,
    REQUEST_TOO_LARGE,
    SERVER_NOT_FOUND,
    UNAUTHORIZED,
    JSONRPCHandler,
)
from ..security import SECURITY_HEADERS, extract_api_key
from ..server import MCPServer
from ..server_registry import ServerRegistry

logger = get_logger(__name__)


class HTTPTransport:
    """Serves every server of a registry over HTTP."""

    def __init__(self, registry: ServerRegistry, base_path: str = "/mcp"):
        self.registry = registry
        self.router = APIRouter(prefix=base_path.rstrip("/"), tags=["MCP"])
        self._dispatchers: Dict[str, RequestDispatcher] = {}
        self._lock = threading.Lock()
        self._setup_routes()

    def dispatcher_for(self, server: MCPServer) -> RequestDispatcher:
        """Cached dispatcher for a server; replaced when the instance is recreated."""
        with self._lock:
            dispatcher = self._dispatchers.get(server.name)
            if dispatcher is None or dispatcher.server is not server:
                dispatcher = RequestDispatcher(server)
                self._dispatchers[server.name] = dispatcher
            return dispatcher

    def _lookup(self, server_name: str) -> Optional[MCPServer]:
        """Registry lookup; drops the cached dispatcher of a server that is gone."""
        server = self.registry.get_instance(server_name)
        if server is None:
            with self._lock:
                self._dispatchers.pop(server_name, None)
        return server

    def _setup_routes(self) -> None:
        """Setup MCP routes."""

        @self.router.post("/{server_name}")
        async def handle_jsonrpc(server_name: str, request: Request) -> Response:
            """Main JSON-RPC endpoint."""
            origin = request.headers.get("origin")
            server = self._lookup(server_name)
            if server is None:
                return self._error(404, SERVER_NOT_FOUND, f"Server not found: {server_name}")

            headers = self._headers(server, origin)
            limit = server.max_request_body_size

            declared_length = request.headers.get("content-length", "")
            if limit and declared_length.isdigit() and int(declared_length) > limit:
                return self._error(413, REQUEST_TOO_LARGE, "Request body too large", headers)

            body = await request.body()
            if limit and len(body) > limit:
                return self._error(413, REQUEST_TOO_LARGE, "Request body too large", headers)

            rejection = self._check_policy(server, request, headers)
            if rejection is not None:
                return rejection

            dispatcher = self.dispatcher_for(server)
            with TimedLogger(logger, "http_request_handled", server_name=server_name):
                response = await run_in_threadpool(dispatcher.handle, body)

            if response is None:
                return Response(status_code=202, headers=headers)

            status_code = 200
            error = response.get("error")
            if error and error["code"] in (PARSE_ERROR, INVALID_REQUEST):
                status_code = 400
            return JSONResponse(content=response, status_code=status_code, headers=headers)

        @self.router.options("/{server_name}")
        async def handle_preflight(server_name: str, request: Request) -> Response:
            """CORS preflight."""
            server = self._lookup(server_name)
            if server is None:
                return self._error(404, SERVER_NOT_FOUND, f"Server not found: {server_name}")

            headers = self._headers(server, request.headers.get("origin"))
            return Response(status_code=204, headers=headers)

        @self.router.get("/{server_name}")
        async def server_summary(server_name: str, request: Request) -> Response:
            """Server identity and capability counts."""
            server = self._lookup(server_name)
            if server is None:
                return self._error(404, SERVER_NOT_FOUND, f"Server not found: {server_name}")

            headers = self._headers(server, request.headers.get("origin"))
            rejection = self._check_policy(server, request, headers)
            if rejection is not None:
                return rejection
            return JSONResponse(content=server.describe(), headers=headers)

    def _check_policy(self, server: MCPServer, request: Request, headers: Dict[str, str]) -> Optional[Response]:
        """Apply auth then rate limiting. Returns the rejection response, if any."""
        client_host = request.client.host if request.client else "unknown"

        request_data = {"method": request.method, "path": request.url.path, "client": client_host}
        if not server.auth.authenticate(request.headers, request_data):
            logger.warning(event="http_auth_failed", server_name=server.name, client=client_host)
            auth_headers = {**headers, "WWW-Authenticate": 'Bearer realm="mcp"'}
            return self._error(401, UNAUTHORIZED, "Unauthorized", auth_headers)

        limiter = server.rate_limiter
        if limiter is not None:
            client_key = extract_api_key(request.headers) or client_host
            if not limiter.allow(client_key):
                retry_after = limiter.retry_after(client_key)
                logger.warning(event="http_rate_limited", server_name=server.name, client=client_host)
                limit_headers = {
                    **headers,
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(limiter.max_requests),
                }
                return self._error(429, RATE_LIMITED, "Rate limit exceeded", limit_headers)

        return None

    @staticmethod
    def _headers(server: MCPServer, origin: Optional[str]) -> Dict[str, str]:
        return {**SECURITY_HEADERS, **server.cors.headers_for(origin)}

    @staticmethod
    def _error(
        status_code: int, code: int, message: str, headers: Optional[Dict[str, str]] = None
    ) -> JSONResponse:
        error_response = JSONRPCHandler.create_error_response(None, code, message)
        return JSONResponse(
            content=JSONRPCHandler.dump(error_response),
            status_code=status_code,
            headers=headers if headers is not None else dict(SECURITY_HEADERS),
        )


def create_http_app(registry: ServerRegistry, config: Optional[Config] = None) -> FastAPI:
    """
    Create the FastAPI application serving a registry's servers.

    Args:
        registry: Servers to expose
        config: Application configuration (defaults apply when omitted)

    Returns:
        FastAPI app with the MCP router and a health endpoint
    """
    config = config or Config()
    app = FastAPI(title="MCP Server", version="1.0.0")
    transport = HTTPTransport(registry, base_path=config.http.base_path)
    app.include_router(transport.router)
    app.state.mcp_transport = transport

    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        """Health check endpoint."""
        return {"status": "ok", "servers": registry.list_instance_names()}

    return app
