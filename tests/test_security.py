"""
Tests for authentication, CORS matching and rate limiting.
"""

import base64

import pytest

from mcp_core.security import AuthConfig, CorsConfig, RateLimiter, extract_api_key


def basic_header(credentials: str) -> str:
    return "Basic " + base64.b64encode(credentials.encode("utf-8")).decode("ascii")


class TestBasicAuth:
    @pytest.fixture
    def auth(self) -> AuthConfig:
        return AuthConfig(basic_auth=("testuser", "testpass"))

    def test_accepts_valid_credentials(self, auth: AuthConfig):
        """Test valid basic credentials."""
        assert auth.verify_basic_auth(basic_header("testuser:testpass")) is True

    def test_rejects_wrong_password(self, auth: AuthConfig):
        """Test a wrong password is rejected."""
        assert auth.verify_basic_auth(basic_header("testuser:wrongpassword")) is False

    @pytest.mark.parametrize("header", ["notBasicAuth", "", "Basic", "Basic !!!", basic_header("nocolon")])
    def test_rejects_malformed_header(self, auth: AuthConfig, header: str):
        """Test malformed basic headers are rejected."""
        assert auth.verify_basic_auth(header) is False

    def test_without_basic_auth_configured(self):
        """Test basic auth fails when not configured."""
        assert AuthConfig().verify_basic_auth(basic_header("a:b")) is False

    def test_authenticate_with_headers(self, auth: AuthConfig):
        """Test authenticate reads the Authorization header."""
        assert auth.authenticate({"authorization": basic_header("testuser:testpass")}) is True
        assert auth.authenticate({}) is False


class TestApiKeys:
    def test_static_key_list(self):
        """Test the static API key list."""
        auth = AuthConfig(require_auth=True, api_keys=["key-1", "key-2"])

        assert auth.verify_api_key("key-2") is True
        assert auth.verify_api_key("key-3") is False
        assert auth.verify_api_key("") is False

    def test_provider_overrides_key_list(self):
        """Test a key provider replaces the key list."""
        auth = AuthConfig(api_keys=["static"], api_key_provider=lambda key, data: key == "valid-key-12345")

        assert auth.verify_api_key("valid-key-12345", {}) is True
        assert auth.verify_api_key("static", {}) is False

    def test_provider_receives_request_data(self):
        """Test a key provider can use request data."""
        def provider(api_key, request_data):
            if not api_key.startswith("sk_"):
                return False
            if request_data.get("method") == "POST" and len(api_key) < 20:
                return False
            return True

        auth = AuthConfig(api_key_provider=provider)

        assert auth.verify_api_key("sk_1234567890123456789", {"method": "POST"}) is True
        assert auth.verify_api_key("invalid-format", {"method": "POST"}) is False
        assert auth.verify_api_key("sk_short", {"method": "POST"}) is False
        assert auth.verify_api_key("sk_short", {"method": "GET"}) is True

    def test_provider_exception_rejects(self):
        """Test a raising key provider rejects the key."""
        def provider(api_key, request_data):
            raise RuntimeError("backend down")

        assert AuthConfig(api_key_provider=provider).verify_api_key("anything") is False

    def test_auth_disabled_accepts_everything(self):
        """Test every request passes when auth is off."""
        assert AuthConfig().authenticate({}) is True

    def test_extract_api_key(self):
        """Test API key extraction from headers."""
        assert extract_api_key({"authorization": "Bearer abc"}) == "abc"
        assert extract_api_key({"x-api-key": " xyz "}) == "xyz"
        assert extract_api_key({"authorization": "Basic abc"}) is None
        assert extract_api_key({}) is None


class TestCors:
    def test_exact_origins(self):
        """Test exact origin matching."""
        cors = CorsConfig(allow_origin=["https://app.example.com", "https://admin.example.com"])

        assert cors.is_origin_allowed("https://app.example.com") is True
        assert cors.is_origin_allowed("https://admin.example.com") is True
        assert cors.is_origin_allowed("https://evil.com") is False

    def test_wildcard_domains(self):
        """Test wildcard domain matching."""
        cors = CorsConfig(allow_origin=["*.example.com", "https://specific.test.com"])

        assert cors.is_origin_allowed("https://app.example.com") is True
        assert cors.is_origin_allowed("https://api.v2.example.com") is True
        assert cors.is_origin_allowed("https://specific.test.com") is True
        assert cors.is_origin_allowed("https://evil.com") is False
        assert cors.is_origin_allowed("https://notexample.com") is False

    def test_any_origin(self):
        """Test the any-origin wildcard."""
        headers = CorsConfig(allow_origin=["*"]).headers_for("https://example.com")

        assert headers["Access-Control-Allow-Origin"] == "*"
        assert headers["Access-Control-Allow-Methods"] == "POST, GET, OPTIONS"

    def test_specific_origin_is_echoed(self):
        """Test a specific allowed origin is echoed."""
        headers = CorsConfig(allow_origin=["https://app.example.com"]).headers_for("https://app.example.com")

        assert headers["Access-Control-Allow-Origin"] == "https://app.example.com"
        assert headers["Vary"] == "Origin"

    def test_no_origins_configured(self):
        """Test no CORS headers without allowed origins."""
        cors = CorsConfig()

        assert cors.is_origin_allowed("https://example.com") is False
        assert cors.headers_for("https://example.com") == {}


class TestRateLimiter:
    def test_allows_up_to_max_requests(self):
        """Test the limiter allows max_requests per window."""
        limiter = RateLimiter(max_requests=3, window_seconds=60)

        assert [limiter.allow("client") for _ in range(4)] == [True, True, True, False]

    def test_keys_are_independent(self):
        """Test each key has its own window."""
        limiter = RateLimiter(max_requests=1, window_seconds=60)

        assert limiter.allow("a") is True
        assert limiter.allow("b") is True
        assert limiter.allow("a") is False

    def test_window_slides(self, monkeypatch):
        """Test the window slides with time."""
        clock = [1000.0]
        monkeypatch.setattr("mcp_core.security.time", lambda: clock[0])
        limiter = RateLimiter(max_requests=2, window_seconds=10)

        assert limiter.allow("client") is True
        clock[0] += 5
        assert limiter.allow("client") is True
        assert limiter.allow("client") is False

        clock[0] += 6  # first request left the window
        assert limiter.allow("client") is True
        assert limiter.allow("client") is False

    def test_retry_after(self, monkeypatch):
        """Test retry_after."""
        clock = [1000.0]
        monkeypatch.setattr("mcp_core.security.time", lambda: clock[0])
        limiter = RateLimiter(max_requests=1, window_seconds=30)

        limiter.allow("client")
        clock[0] += 10

        assert 1 <= limiter.retry_after("client") <= 21
        assert limiter.retry_after("unknown") == 0

    def test_reset(self):
        """Test reset clears every window."""
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        limiter.allow("client")

        limiter.reset()

        assert limiter.allow("client") is True
