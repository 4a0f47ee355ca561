"""
Name-keyed store of MCP server instances.

ServerRegistry is an ordinary object: create one and hand it to whatever
builds transports. get_server_registry() returns a lazily created process
default for applications that only need one.
"""

import threading
from typing import Any, Dict, List, Optional

from common.logging import get_logger
from .server import MCPServer

logger = get_logger(__name__)


class ServerRegistry:
    """
    Registry guaranteeing at most one live MCPServer per name.

    All operations are safe under concurrent callers.
    """

    def __init__(self) -> None:
        self._instances: Dict[str, MCPServer] = {}
        self._lock = threading.Lock()
        self._closed = False

    def get_or_create(self, name: str = "default", **options: Any) -> MCPServer:
        """
        Return the server registered under name, creating it if absent.

        Options are MCPServer constructor arguments and only apply when the
        instance is created.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Server registry has been shut down")

            server = self._instances.get(name)
            if server is None:
                server = MCPServer(name, **options)
                self._instances[name] = server
                logger.info(event="server_instance_created", server_name=name)
            return server

    def get_instance(self, name: str) -> Optional[MCPServer]:
        with self._lock:
            return self._instances.get(name)

    def has_instance(self, name: str) -> bool:
        with self._lock:
            return name in self._instances

    def remove_instance(self, name: str) -> bool:
        """Remove a server. Returns True iff it existed."""
        with self._lock:
            server = self._instances.pop(name, None)

        if server is None:
            return False

        server.close()
        logger.info(event="server_instance_removed", server_name=name)
        return True

    def list_instance_names(self) -> List[str]:
        with self._lock:
            return list(self._instances.keys())

    def clear_all(self) -> None:
        """Drop every instance."""
        with self._lock:
            servers = list(self._instances.values())
            self._instances.clear()

        for server in servers:
            server.close()
        logger.info(event="server_registry_cleared", removed=len(servers))

    def shutdown(self) -> None:
        """Clear all instances and refuse further creation."""
        self.clear_all()
        with self._lock:
            self._closed = True
        logger.info(event="server_registry_shutdown")


# Global registry instance
_registry: Optional[ServerRegistry] = None
_registry_lock = threading.Lock()


def get_server_registry() -> ServerRegistry:
    """Get the process default server registry."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = ServerRegistry()
        return _registry
