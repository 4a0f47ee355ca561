"""
Main application entry point for the MCP server.

Serves one named server over HTTP (uvicorn) or stdio. Applications that
register their own capabilities build a ServerRegistry, populate it and
call serve_http() or serve_stdio() directly.
"""

# Standard library imports
import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

# Third-party imports
import uvicorn
from dotenv import load_dotenv

# Local imports
from common.config import Config, load_api_keys, load_config
from common.logging import get_logger, setup_logging
from mcp_core.dispatcher import RequestDispatcher
from mcp_core.server import MCPServer
from mcp_core.server_registry import ServerRegistry
from mcp_core.transports.http import create_http_app
from mcp_core.transports.stdio import StdioTransport

logger = get_logger(__name__)


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="MCP Server")
    parser.add_argument("--transport", choices=["http", "stdio"], default="http")
    parser.add_argument("--server", type=str, help="Override the server name")
    parser.add_argument("--host", type=str, help="Override the host to run on")
    parser.add_argument("--port", type=int, help="Override the port to run on")
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    return parser.parse_args(argv)


def create_configured_server(registry: ServerRegistry, config: Config, name: Optional[str] = None) -> MCPServer:
    """Create the configured server instance in registry."""
    settings = config.server
    return registry.get_or_create(
        name or settings.name,
        description=settings.description,
        version=settings.version,
        require_auth=settings.require_auth,
        api_keys=load_api_keys(),
        rate_limit=settings.rate_limit.model_dump() if settings.rate_limit else None,
        cors=settings.cors.model_dump(),
        max_request_body_size=config.http.max_request_body_size,
        stats_enabled=settings.stats_enabled,
    )


def serve_http(registry: ServerRegistry, config: Config, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Serve every server in registry over HTTP until interrupted."""
    app = create_http_app(registry, config)
    host = host or config.http.host
    port = port or config.http.port

    logger.info(event="starting_http_server", host=host, port=port, servers=registry.list_instance_names())

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_config=None,  # Use our custom logging setup
        access_log=False,
    )


def serve_stdio(server: MCPServer) -> None:
    """Serve a single server over stdin/stdout until EOF."""
    transport = StdioTransport(RequestDispatcher(server))
    asyncio.run(transport.run())


def main(argv: Optional[list] = None) -> None:
    """Main entry point."""
    registry = ServerRegistry()
    try:
        args = parse_args(argv)

        # Secrets only; configuration comes from config.yaml
        load_dotenv()

        config = load_config(args.config)
        setup_logging(config)

        server = create_configured_server(registry, config, args.server)
        logger.info(
            event="application_starting",
            transport=args.transport,
            server_name=server.name,
            version=server.version,
        )

        if args.transport == "stdio":
            serve_stdio(server)
        else:
            serve_http(registry, config, host=args.host, port=args.port)

    except KeyboardInterrupt:
        logger.info(event="application_shutdown", reason="Keyboard interrupt")
    except Exception as e:
        logger.critical(event="application_crashed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)
    finally:
        registry.shutdown()


if __name__ == "__main__":
    main()
