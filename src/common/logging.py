"""
structlog setup for the MCP server.

Entries are an event name plus keyword context, rendered as compact JSON
or, with enable_pretty_print, as an indented block per event. Everything
is written to stderr (and optionally a rotating file): stdout belongs to
the stdio transport.
"""

import logging
import logging.handlers
import sys
import time
from typing import Any, Dict, List, Optional

import structlog

from common.config import Config

_HIDDEN_IN_PRETTY = ("timestamp", "level", "logger")


class EventRenderer:
    """Final structlog processor: JSON lines, or a readable block per event."""

    def __init__(self, pretty: bool = False):
        self.pretty = pretty
        self._json = structlog.processors.JSONRenderer()

    def __call__(self, logger: Any, method_name: str, event_dict: Dict[str, Any]) -> str:
        if not self.pretty:
            return str(self._json(logger, method_name, event_dict))

        fields = {k: v for k, v in event_dict.items() if k not in _HIDDEN_IN_PRETTY}
        level = str(event_dict.get("level", "info")).upper()
        lines = [f"[{level}] {fields.pop('event', 'unknown_event')}"]
        for key, value in fields.items():
            lines.append(f"    {key}: {value}")
        return "\n".join(lines)


def _build_handlers(config: Config) -> List[logging.Handler]:
    plain = logging.Formatter("%(message)s")

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(plain)
    handlers: List[logging.Handler] = [console]

    if config.save_to_file:
        rotating = logging.handlers.RotatingFileHandler(
            filename=config.log_file_path,
            maxBytes=config.max_log_file_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        rotating.setFormatter(plain)
        handlers.append(rotating)

    return handlers


def setup_logging(config: Config) -> None:
    """Configure structlog and the stdlib root logger from config."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            EventRenderer(pretty=config.enable_pretty_print),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        handlers=_build_handlers(config),
        format="%(message)s",
        force=True,
    )

    # Request logging is ours; uvicorn only reports lifecycle
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


class TimedLogger:
    """
    Time a block and log it as one debug event.

    The entry carries elapsed_ms and outcome ("ok", or the exception type
    when the block raised). Exceptions are not suppressed.
    """

    def __init__(self, logger: structlog.BoundLogger, event: str, **context: Any):
        self.logger = logger
        self.event = event
        self.context = context
        self._started: Optional[float] = None
        self.elapsed_ms: float = 0.0

    def __enter__(self) -> "TimedLogger":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._started is None:
            return
        self.elapsed_ms = (time.perf_counter() - self._started) * 1000
        self.logger.debug(
            event=self.event,
            elapsed_ms=round(self.elapsed_ms, 2),
            outcome=exc_type.__name__ if exc_type else "ok",
            **self.context,
        )


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
