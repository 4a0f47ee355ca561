"""
Per-server request statistics.

Counters for requests, errors and capability usage, updated from concurrent
request handlers under a lock. Disabled collectors record nothing.
"""

import threading
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class ServerStats:
    """Request statistics for a single MCP server."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> "ServerStats":
        with self._lock:
            self._started_at = time.monotonic()
            self._total_requests = 0
            self._total_errors = 0
            self._total_response_ms = 0.0
            self._last_request_at: Optional[datetime] = None
            self._requests_by_method: Counter = Counter()
            self._errors_by_code: Counter = Counter()
            self._tool_invocations: Counter = Counter()
            self._resource_reads: Counter = Counter()
            self._prompt_renders: Counter = Counter()
        return self

    def enable(self) -> "ServerStats":
        self.enabled = True
        return self

    def disable(self) -> "ServerStats":
        self.enabled = False
        return self

    def record_request(self, method: str, elapsed_ms: float, error_code: Optional[int] = None) -> None:
        """Record a handled request; error_code is set when it produced an error response."""
        if not self.enabled:
            return

        with self._lock:
            self._total_requests += 1
            self._total_response_ms += elapsed_ms
            self._last_request_at = datetime.now(timezone.utc)
            self._requests_by_method[method] += 1
            if error_code is not None:
                self._total_errors += 1
                self._errors_by_code[error_code] += 1

    def record_tool_invocation(self, name: str) -> None:
        if self.enabled:
            with self._lock:
                self._tool_invocations[name] += 1

    def record_resource_read(self, uri: str) -> None:
        if self.enabled:
            with self._lock:
                self._resource_reads[uri] += 1

    def record_prompt_render(self, name: str) -> None:
        if self.enabled:
            with self._lock:
                self._prompt_renders[name] += 1

    def summary(self) -> Dict[str, Any]:
        """Flat summary of the headline numbers."""
        with self._lock:
            total = self._total_requests
            success_rate = 100.0 * (total - self._total_errors) / total if total else 100.0
            avg_response = self._total_response_ms / total if total else 0.0

            return {
                "uptime": round(time.monotonic() - self._started_at, 3),
                "totalRequests": total,
                "successRate": round(success_rate, 2),
                "avgResponseTime": round(avg_response, 3),
                "totalToolInvocations": sum(self._tool_invocations.values()),
                "totalResourceReads": sum(self._resource_reads.values()),
                "totalPromptGenerations": sum(self._prompt_renders.values()),
                "totalErrors": self._total_errors,
                "lastRequestAt": self._last_request_at.isoformat() if self._last_request_at else "",
            }

    def snapshot(self) -> Dict[str, Any]:
        """Detailed statistics with per-method and per-capability breakdowns."""
        with self._lock:
            return {
                "requests": {
                    "total": self._total_requests,
                    "byMethod": dict(self._requests_by_method),
                },
                "tools": {
                    "total": sum(self._tool_invocations.values()),
                    "byName": dict(self._tool_invocations),
                },
                "resources": {
                    "total": sum(self._resource_reads.values()),
                    "byUri": dict(self._resource_reads),
                },
                "prompts": {
                    "total": sum(self._prompt_renders.values()),
                    "byName": dict(self._prompt_renders),
                },
                "errors": {
                    "total": self._total_errors,
                    "byCode": {str(code): count for code, count in self._errors_by_code.items()},
                },
            }
