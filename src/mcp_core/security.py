"""
HTTP security policy for MCP servers: authentication, CORS and rate limiting.

These checks run in the HTTP transport before a request reaches the
dispatcher. The stdio transport has no use for them.
"""

import base64
import binascii
import hmac
import threading
from collections import deque
from time import time
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field

from common.logging import get_logger

logger = get_logger(__name__)

ApiKeyProvider = Callable[[str, Dict[str, Any]], bool]

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}


class RateLimitConfig(BaseModel):
    """Sliding window limit: max_requests per window_seconds per client."""

    max_requests: int = Field(default=100, gt=0)
    window_seconds: int = Field(default=60, gt=0)


class CorsConfig(BaseModel):
    """CORS policy. An empty allow_origin list disables CORS headers."""

    allow_origin: List[str] = Field(default_factory=list)
    allow_methods: List[str] = Field(default_factory=lambda: ["POST", "GET", "OPTIONS"])
    allow_headers: List[str] = Field(
        default_factory=lambda: ["Content-Type", "Authorization", "X-API-Key"]
    )

    def is_origin_allowed(self, origin: Optional[str]) -> bool:
        """
        Check an Origin header against the allowed list.

        Supports "*" (any origin), exact origins and "*.domain" patterns that
        match subdomains at any depth.
        """
        if not origin or not self.allow_origin:
            return False

        host = origin.split("://", 1)[-1].split("/", 1)[0].split(":", 1)[0].lower()
        for allowed in self.allow_origin:
            if allowed == "*" or allowed == origin:
                return True
            if allowed.startswith("*."):
                suffix = allowed[1:].lower()
                if host.endswith(suffix) and len(host) > len(suffix):
                    return True
        return False

    def headers_for(self, origin: Optional[str]) -> Dict[str, str]:
        """CORS response headers for the given request origin (empty when not allowed)."""
        if not self.is_origin_allowed(origin):
            return {}

        allow_origin = "*" if "*" in self.allow_origin else origin
        headers = {
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Methods": ", ".join(self.allow_methods),
            "Access-Control-Allow-Headers": ", ".join(self.allow_headers),
            "Access-Control-Max-Age": "86400",
        }
        if allow_origin != "*":
            headers["Vary"] = "Origin"
        return headers


class AuthConfig(BaseModel):
    """Authentication settings for the HTTP transport."""

    require_auth: bool = False
    api_keys: List[str] = Field(default_factory=list)
    api_key_provider: Optional[ApiKeyProvider] = None
    basic_auth: Optional[Tuple[str, str]] = None

    @property
    def enabled(self) -> bool:
        return self.require_auth or self.basic_auth is not None or self.api_key_provider is not None

    def verify_api_key(self, api_key: Optional[str], request_data: Optional[Dict[str, Any]] = None) -> bool:
        """Validate an API key with the provider when set, otherwise against the key list."""
        if not api_key:
            return False

        if self.api_key_provider is not None:
            try:
                return bool(self.api_key_provider(api_key, request_data or {}))
            except Exception as e:
                logger.warning(event="api_key_provider_failed", error=str(e))
                return False

        return any(hmac.compare_digest(api_key, key) for key in self.api_keys)

    def verify_basic_auth(self, header: Optional[str]) -> bool:
        """Validate an `Authorization: Basic ...` header against the configured pair."""
        if self.basic_auth is None or not header:
            return False

        scheme, _, encoded = header.partition(" ")
        if scheme.lower() != "basic" or not encoded:
            return False

        try:
            decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return False

        username, sep, password = decoded.partition(":")
        if not sep:
            return False

        expected_user, expected_password = self.basic_auth
        return hmac.compare_digest(username, expected_user) and hmac.compare_digest(
            password, expected_password
        )

    def authenticate(self, headers: Mapping[str, str], request_data: Optional[Dict[str, Any]] = None) -> bool:
        """Check request headers. Any configured scheme that accepts the request wins."""
        if not self.enabled:
            return True

        authorization = headers.get("authorization", "")
        if self.basic_auth is not None and self.verify_basic_auth(authorization):
            return True

        return self.verify_api_key(extract_api_key(headers), request_data)


def extract_api_key(headers: Mapping[str, str]) -> Optional[str]:
    """Get the API key from `Authorization: Bearer` or `X-API-Key` headers."""
    authorization = headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()

    api_key = headers.get("x-api-key")
    return api_key.strip() if api_key else None


class RateLimiter:
    """
    In-memory sliding window rate limiter (per process).

    Each client key keeps a deque of request timestamps inside the current
    window. Buckets idle for two windows are dropped.
    """

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._lock = threading.Lock()
        self._requests: Dict[str, Deque[float]] = {}
        self._last_seen: Dict[str, float] = {}
        self._inactive_ttl = window_seconds * 2

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> "RateLimiter":
        return cls(max_requests=config.max_requests, window_seconds=config.window_seconds)

    def allow(self, key: str) -> bool:
        """Record a request for key. Returns False when the window is full."""
        now = time()
        cutoff = now - self.window_seconds
        with self._lock:
            self._cleanup(now)
            bucket = self._requests.setdefault(key, deque())
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()
            if len(bucket) >= self.max_requests:
                return False
            bucket.append(now)
            self._last_seen[key] = now
            return True

    def retry_after(self, key: str) -> int:
        """Seconds until the oldest request in key's window expires."""
        with self._lock:
            bucket = self._requests.get(key)
            if not bucket:
                return 0
            return max(1, int(bucket[0] + self.window_seconds - time()) + 1)

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()
            self._last_seen.clear()

    def _cleanup(self, now: float) -> None:
        stale_before = now - self._inactive_ttl
        for key, last_seen in list(self._last_seen.items()):
            if last_seen < stale_before:
                self._last_seen.pop(key, None)
                self._requests.pop(key, None)
