"""
Capability registries for MCP servers.

Thread-safe, in-memory maps of tools, resources and prompts keyed by
name/URI. Registration may happen at any time, including while requests
are being served, so every access goes through the registry lock.

Not-found handling differs by kind:
- tools soft-fail with an `isError` result so one bad name never aborts a session
- resources and prompts raise InvalidParamsError (protocol error)
"""

import base64
import json
import threading
import time
from typing import Any, Dict, Generic, List, Optional, TypeVar

from common.logging import get_logger
from .capabilities import Prompt, Resource, Tool
from .errors import InvalidParamsError
from .jsonrpc import MCPContentTypes, MCPTextContent, MCPToolsCallResult

logger = get_logger(__name__)

T = TypeVar("T")


def stringify(value: Any) -> str:
    """Render a tool or resource result as text."""
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return json.dumps(value, default=str)


class CapabilityRegistry(Generic[T]):
    """Base registry: upsert, lookup and listing under a single lock."""

    kind = "capability"

    def __init__(self) -> None:
        self._items: Dict[str, T] = {}
        self._lock = threading.RLock()

    def _key(self, item: T) -> str:
        raise NotImplementedError

    def register(self, item: T) -> None:
        """Register an item, replacing any item with the same key."""
        key = self._key(item)
        with self._lock:
            replaced = key in self._items
            self._items[key] = item

        logger.info(event=f"{self.kind}_registered", key=key, replaced=replaced)

    def unregister(self, key: str) -> bool:
        """Remove an item. Returns True if it was registered."""
        with self._lock:
            removed = self._items.pop(key, None) is not None

        if removed:
            logger.info(event=f"{self.kind}_unregistered", key=key)
        return removed

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._items

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            return self._items.get(key)

    def count(self) -> int:
        with self._lock:
            return len(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def items(self) -> List[T]:
        """Snapshot of the registered items in registration order."""
        with self._lock:
            return list(self._items.values())

    def list(self) -> List[Dict[str, Any]]:
        """Wire-format descriptors of every registered item."""
        return [item.to_descriptor() for item in self.items()]


class ToolRegistry(CapabilityRegistry[Tool]):
    """Registry of callable tools."""

    kind = "tool"

    def _key(self, item: Tool) -> str:
        return item.name

    def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Invoke a tool and wrap the outcome as a tools/call result.

        Never raises for tool problems: a missing tool or an exception raised
        by the tool is reported as content with isError set.

        Args:
            name: Tool name
            arguments: Arguments passed to the tool

        Returns:
            Result dict with `content` and `isError`
        """
        tool = self.get(name)
        if tool is None:
            logger.warning(event="tool_not_found", tool_name=name)
            return self._error_result(f"Tool not found: {name}")

        start_time = time.perf_counter()
        try:
            result = tool.invoke(arguments or {})
        except Exception as e:
            logger.warning(
                event="tool_execution_failed",
                tool_name=name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._error_result(str(e) or type(e).__name__)

        logger.info(
            event="tool_executed",
            tool_name=name,
            execution_time_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        content = [MCPTextContent(type=MCPContentTypes.TEXT, text=stringify(result))]
        return MCPToolsCallResult(content=content).model_dump()

    @staticmethod
    def _error_result(message: str) -> Dict[str, Any]:
        content = [MCPTextContent(type=MCPContentTypes.TEXT, text=message)]
        return MCPToolsCallResult(content=content, isError=True).model_dump()


class ResourceRegistry(CapabilityRegistry[Resource]):
    """Registry of readable resources keyed by URI."""

    kind = "resource"

    def _key(self, item: Resource) -> str:
        return item.uri

    def read_resource(self, uri: str) -> Dict[str, Any]:
        """
        Read a resource and wrap it as a resources/read result.

        An unknown URI is a protocol error. An exception raised by the
        resource handler is returned as an isError result with empty contents.
        """
        resource = self.get(uri)
        if resource is None:
            raise InvalidParamsError(f"Resource not found: {uri}")

        try:
            value = resource.read()
        except Exception as e:
            logger.warning(
                event="resource_read_failed",
                uri=uri,
                error=str(e),
                error_type=type(e).__name__,
            )
            content = [MCPTextContent(type=MCPContentTypes.TEXT, text=str(e) or type(e).__name__)]
            return {
                "contents": [],
                "isError": True,
                "content": [item.model_dump() for item in content],
            }

        entry: Dict[str, Any] = {"uri": uri, "mimeType": resource.mime_type}
        if isinstance(value, (bytes, bytearray)):
            entry["blob"] = base64.b64encode(bytes(value)).decode("ascii")
        else:
            entry["text"] = stringify(value)

        return {"contents": [entry]}


class PromptRegistry(CapabilityRegistry[Prompt]):
    """Registry of prompt templates."""

    kind = "prompt"

    def _key(self, item: Prompt) -> str:
        return item.name

    def get_prompt(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Render a prompt and wrap it as a prompts/get result."""
        prompt = self.get(name)
        if prompt is None:
            raise InvalidParamsError(f"Prompt not found: {name}")

        missing = [arg.name for arg in prompt.arguments if arg.required and arg.name not in (arguments or {})]
        if missing:
            raise InvalidParamsError(f"Missing required prompt arguments: {', '.join(missing)}")

        messages = [self._normalize_message(message) for message in prompt.render(arguments or {})]
        return {"description": prompt.description, "messages": messages}

    @staticmethod
    def _normalize_message(message: Dict[str, Any]) -> Dict[str, Any]:
        # Plain string content becomes a text content block
        content = message.get("content")
        if isinstance(content, str):
            return {**message, "content": {"type": MCPContentTypes.TEXT, "text": content}}
        return message
