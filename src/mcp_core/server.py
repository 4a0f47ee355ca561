"""
MCP server instance.

An MCPServer aggregates the tool, resource and prompt registries with the
server identity (name, description, version), its HTTP policy (auth, rate
limit, CORS, body limit) and request statistics. Instances are normally
obtained from a ServerRegistry so that a name maps to exactly one server.

Setters return the server so registration can be chained:

    server = registry.get_or_create("docs")
    server.set_description("Docs server").register_tool(search_tool)
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from common.logging import get_logger
from .capabilities import FunctionPrompt, FunctionResource, Prompt, PromptArgument, Resource, Tool
from .jsonrpc import MCPCapabilities, MCPImplementation
from .registries import PromptRegistry, ResourceRegistry, ToolRegistry
from .security import ApiKeyProvider, AuthConfig, CorsConfig, RateLimitConfig, RateLimiter
from .stats import ServerStats

logger = get_logger(__name__)

DEFAULT_VERSION = "1.0.0"
DEFAULT_MAX_REQUEST_BODY_SIZE = 10 * 1024 * 1024


class MCPServer:
    """A named MCP server with its capabilities and policy."""

    def __init__(
        self,
        name: str,
        description: str = "",
        version: str = DEFAULT_VERSION,
        require_auth: bool = False,
        api_keys: Optional[Iterable[str]] = None,
        api_key_provider: Optional[ApiKeyProvider] = None,
        basic_auth: Optional[Tuple[str, str]] = None,
        rate_limit: Optional[Union[RateLimitConfig, Dict[str, Any]]] = None,
        cors: Optional[Union[CorsConfig, Dict[str, Any]]] = None,
        max_request_body_size: int = DEFAULT_MAX_REQUEST_BODY_SIZE,
        stats_enabled: bool = True,
    ):
        self.name = name
        self.description = description
        self.version = version

        self.tools = ToolRegistry()
        self.resources = ResourceRegistry()
        self.prompts = PromptRegistry()

        self.auth = AuthConfig(
            require_auth=require_auth,
            api_keys=list(api_keys or []),
            api_key_provider=api_key_provider,
            basic_auth=basic_auth,
        )
        self.cors = CorsConfig.model_validate(cors) if isinstance(cors, dict) else (cors or CorsConfig())
        self.rate_limit: Optional[RateLimitConfig] = None
        self.rate_limiter: Optional[RateLimiter] = None
        if rate_limit is not None:
            self.with_rate_limit(rate_limit)

        self.max_request_body_size = max_request_body_size
        self.stats = ServerStats(enabled=stats_enabled)

        logger.info(event="mcp_server_created", server_name=name, version=version)

    # Identity

    def set_description(self, description: str) -> "MCPServer":
        self.description = description
        return self

    def set_version(self, version: str) -> "MCPServer":
        self.version = version
        return self

    def get_server_info(self) -> Dict[str, Any]:
        return MCPImplementation(name=self.name, version=self.version).model_dump()

    def get_capabilities(self) -> Dict[str, Any]:
        """Capabilities advertised by initialize; only non-empty registries appear."""
        capabilities = MCPCapabilities(
            tools={} if self.tools.count() else None,
            resources={} if self.resources.count() else None,
            prompts={} if self.prompts.count() else None,
        )
        return capabilities.model_dump(exclude_none=True)

    def describe(self) -> Dict[str, Any]:
        """Summary returned by the HTTP GET endpoint."""
        return {
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "capabilities": self.get_capabilities(),
            "tools": self.tools.count(),
            "resources": self.resources.count(),
            "prompts": self.prompts.count(),
        }

    # Tools

    def register_tool(self, tool: Tool) -> "MCPServer":
        self.tools.register(tool)
        return self

    def register_tools(self, tools: Iterable[Tool]) -> "MCPServer":
        for tool in tools:
            self.tools.register(tool)
        return self

    def unregister_tool(self, name: str) -> bool:
        return self.tools.unregister(name)

    def has_tool(self, name: str) -> bool:
        return self.tools.has(name)

    def get_tool_count(self) -> int:
        return self.tools.count()

    def list_tools(self) -> List[Dict[str, Any]]:
        return self.tools.list()

    def clear_tools(self) -> "MCPServer":
        self.tools.clear()
        return self

    def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self.stats.record_tool_invocation(name)
        return self.tools.call_tool(name, arguments)

    # Resources

    def register_resource(self, resource: Resource) -> "MCPServer":
        self.resources.register(resource)
        return self

    def add_resource(
        self,
        uri: str,
        handler,
        name: str = "",
        description: str = "",
        mime_type: str = "text/plain",
    ) -> "MCPServer":
        """Register a callable as a resource."""
        return self.register_resource(
            FunctionResource(uri, handler, name=name, description=description, mime_type=mime_type)
        )

    def unregister_resource(self, uri: str) -> bool:
        return self.resources.unregister(uri)

    def has_resource(self, uri: str) -> bool:
        return self.resources.has(uri)

    def list_resources(self) -> List[Dict[str, Any]]:
        return self.resources.list()

    def read_resource(self, uri: str) -> Dict[str, Any]:
        result = self.resources.read_resource(uri)
        self.stats.record_resource_read(uri)
        return result

    # Prompts

    def register_prompt(self, prompt: Prompt) -> "MCPServer":
        self.prompts.register(prompt)
        return self

    def add_prompt(
        self,
        name: str,
        handler,
        description: str = "",
        arguments: Optional[List[Union[PromptArgument, Dict[str, Any]]]] = None,
    ) -> "MCPServer":
        """Register a callable as a prompt template."""
        return self.register_prompt(
            FunctionPrompt(name, handler, description=description, arguments=arguments)
        )

    def unregister_prompt(self, name: str) -> bool:
        return self.prompts.unregister(name)

    def has_prompt(self, name: str) -> bool:
        return self.prompts.has(name)

    def list_prompts(self) -> List[Dict[str, Any]]:
        return self.prompts.list()

    def get_prompt(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        result = self.prompts.get_prompt(name, arguments)
        self.stats.record_prompt_render(name)
        return result

    # Policy

    def with_api_keys(self, api_keys: Iterable[str]) -> "MCPServer":
        self.auth.api_keys = list(api_keys)
        self.auth.require_auth = True
        return self

    def with_api_key_provider(self, provider: ApiKeyProvider) -> "MCPServer":
        self.auth.api_key_provider = provider
        return self

    def with_basic_auth(self, username: str, password: str) -> "MCPServer":
        self.auth.basic_auth = (username, password)
        return self

    def has_basic_auth(self) -> bool:
        return self.auth.basic_auth is not None

    def has_api_key_provider(self) -> bool:
        return self.auth.api_key_provider is not None

    def verify_api_key(self, api_key: str, request_data: Optional[Dict[str, Any]] = None) -> bool:
        return self.auth.verify_api_key(api_key, request_data)

    def verify_basic_auth(self, header: str) -> bool:
        return self.auth.verify_basic_auth(header)

    def with_cors(
        self,
        allow_origin: Iterable[str],
        allow_methods: Optional[Iterable[str]] = None,
        allow_headers: Optional[Iterable[str]] = None,
    ) -> "MCPServer":
        update: Dict[str, Any] = {"allow_origin": list(allow_origin)}
        if allow_methods is not None:
            update["allow_methods"] = list(allow_methods)
        if allow_headers is not None:
            update["allow_headers"] = list(allow_headers)
        self.cors = self.cors.model_copy(update=update)
        return self

    def is_cors_allowed(self, origin: str) -> bool:
        return self.cors.is_origin_allowed(origin)

    def with_rate_limit(self, rate_limit: Union[RateLimitConfig, Dict[str, Any]]) -> "MCPServer":
        if isinstance(rate_limit, dict):
            rate_limit = RateLimitConfig.model_validate(rate_limit)
        self.rate_limit = rate_limit
        self.rate_limiter = RateLimiter.from_config(rate_limit)
        return self

    def with_body_limit(self, max_bytes: int) -> "MCPServer":
        """Limit HTTP request bodies to max_bytes (0 disables the limit)."""
        self.max_request_body_size = max_bytes
        return self

    def close(self) -> None:
        """Drop every registered capability. Called when the instance is removed."""
        self.tools.clear()
        self.resources.clear()
        self.prompts.clear()
        if self.rate_limiter is not None:
            self.rate_limiter.reset()
