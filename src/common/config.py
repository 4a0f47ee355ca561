"""
Configuration loader for the MCP server.

Loads settings from config.yaml. Environment variables are used ONLY for secrets
(API keys), never for regular configuration. Never log secrets.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field


class HTTPConfig(BaseModel):
    """Configuration for the HTTP transport."""

    host: str = Field(default="127.0.0.1", description="Host to bind to")
    port: int = Field(default=8000, description="Port to bind to")
    base_path: str = Field(default="/mcp", description="Path prefix for server endpoints")
    max_request_body_size: int = Field(
        default=10 * 1024 * 1024, description="Default request body limit in bytes (0 = unlimited)"
    )


class RateLimitSettings(BaseModel):
    """Sliding window rate limit settings."""

    max_requests: int = Field(default=100, description="Requests allowed per window")
    window_seconds: int = Field(default=60, description="Window length in seconds")


class CorsSettings(BaseModel):
    """CORS settings for the HTTP transport."""

    allow_origin: List[str] = Field(default_factory=list, description="Allowed origins")
    allow_methods: List[str] = Field(default_factory=lambda: ["POST", "GET", "OPTIONS"])
    allow_headers: List[str] = Field(
        default_factory=lambda: ["Content-Type", "Authorization", "X-API-Key"]
    )


class ServerSettings(BaseModel):
    """Defaults for the server instance started by the entry point."""

    name: str = Field(default="default", description="Server instance name")
    description: str = Field(default="MCP Server", description="Server description")
    version: str = Field(default="1.0.0", description="Server version")
    require_auth: bool = Field(default=False, description="Require an API key on HTTP")
    rate_limit: Optional[RateLimitSettings] = Field(
        default=None, description="Rate limit (disabled when absent)"
    )
    cors: CorsSettings = Field(default_factory=CorsSettings)
    stats_enabled: bool = Field(default=True, description="Collect request statistics")


class Config(BaseModel):
    """Main configuration object."""

    http: HTTPConfig = Field(default_factory=HTTPConfig)
    server: ServerSettings = Field(default_factory=ServerSettings)
    log_level: str = Field(default="INFO", description="Logging level")
    enable_pretty_print: bool = Field(
        default=False, description="Enable custom pretty print for debugging"
    )
    save_to_file: bool = Field(default=False, description="Save logs to file")
    log_file_path: str = Field(default="server.log", description="Log file path (relative to root)")
    max_log_file_size: int = Field(
        default=10485760, description="Max log file size in bytes (10MB)"
    )
    backup_count: int = Field(default=5, description="Number of backup log files to keep")


_LOGGING_KEYS = {
    "level": "log_level",
    "enable_pretty_print": "enable_pretty_print",
    "save_to_file": "save_to_file",
    "log_file_path": "log_file_path",
    "max_log_file_size": "max_log_file_size",
    "backup_count": "backup_count",
}


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config.yaml file. Defaults to ./config.yaml

    Returns:
        Loaded configuration object
    """
    if config_path is None:
        config_path = Path("config.yaml")

    config_data: Dict[str, Any] = {}

    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

    # Nested logging block is flattened onto the root model
    logging_config = config_data.pop("logging", None) or {}
    for key, field_name in _LOGGING_KEYS.items():
        if key in logging_config:
            config_data[field_name] = logging_config[key]

    return Config(**config_data)


def load_api_keys(env_var: str = "MCP_API_KEYS") -> List[str]:
    """Read the comma separated API key list from the environment."""
    raw = os.environ.get(env_var, "")
    return [key.strip() for key in raw.split(",") if key.strip()]
