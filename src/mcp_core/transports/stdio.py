"""
Standard I/O Transport for MCP

Reads newline-delimited JSON-RPC requests from stdin and writes one response
line per request to stdout. Requests are processed strictly in order: the
next line is only read once the previous response has been flushed.

Logs go to stderr; stdout carries protocol frames only.

Reference: https://modelcontextprotocol.io/specification/2025-06-18/basic/transports
"""

import asyncio
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, TextIO

from common.logging import get_logger
from ..dispatcher import RequestDispatcher

logger = get_logger(__name__)


class StdioTransport:
    """
    Standard I/O transport for MCP communication.

    Enables MCP clients to spawn the server as a subprocess and talk to it
    over stdin/stdout.
    """

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ):
        """Initialize stdio transport."""
        self.dispatcher = dispatcher
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="stdio")
        self.running = False

    async def run(self) -> None:
        """Serve requests until EOF or stop()."""
        if self.running:
            return

        self.running = True
        loop = asyncio.get_running_loop()
        logger.info(event="stdio_transport_started", server_name=self.dispatcher.server.name)

        try:
            while self.running:
                line = await loop.run_in_executor(self.executor, self.stdin.readline)

                if not line:  # EOF
                    logger.info(event="stdio_eof")
                    break

                line = line.strip()
                if not line:
                    continue

                # Dispatch and write on the same worker so each request finishes before the next read
                await loop.run_in_executor(self.executor, self.handle_line, line)
        finally:
            self.running = False
            self.executor.shutdown(wait=True)
            logger.info(event="stdio_transport_stopped")

    def stop(self) -> None:
        """Stop after the request in flight completes."""
        self.running = False

    def handle_line(self, line: str) -> Optional[str]:
        """Dispatch one request line and write its response. Returns the written line."""
        try:
            response = self.dispatcher.handle_json(line)
        except Exception as e:
            # Dispatcher converts errors itself; this guards the loop against anything else
            logger.error(event="stdio_dispatch_error", error=str(e), error_type=type(e).__name__)
            return None

        if response is not None:
            self._write_stdout(response)
        return response

    def _write_stdout(self, message: str) -> None:
        try:
            self.stdout.write(message + "\n")
            self.stdout.flush()
        except (OSError, ValueError) as e:
            logger.error(event="stdout_write_error", error=str(e))
            self.running = False
