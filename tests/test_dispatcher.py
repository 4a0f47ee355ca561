"""
Tests for JSON-RPC request dispatching.

Covers the method table, protocol error codes, the soft-failure rule for
tools and the equivalence of pre-parsed and JSON text requests.
"""

import json

import pytest

from mcp_core.capabilities import FunctionTool
from mcp_core.dispatcher import MCP_PROTOCOL_VERSION, MethodHandler, RequestDispatcher
from mcp_core.server import MCPServer


def rpc(method: str, id="1", **params):
    request = {"jsonrpc": "2.0", "method": method, "id": id}
    if params:
        request["params"] = params
    return request


class TestInitialize:
    def test_reports_protocol_version_and_server_info(self, dispatcher: RequestDispatcher):
        """Test initialize reports protocol version and server info."""
        response = dispatcher.handle(rpc("initialize", id="init-1"))

        assert response["id"] == "init-1"
        result = response["result"]
        assert result["protocolVersion"] == MCP_PROTOCOL_VERSION
        assert result["serverInfo"] == {"name": "test", "version": "1.0.0"}

    def test_capabilities_only_for_non_empty_registries(self, dispatcher: RequestDispatcher):
        """Test only non-empty registries are advertised."""
        capabilities = dispatcher.handle(rpc("initialize"))["result"]["capabilities"]

        assert "tools" in capabilities
        assert "resources" not in capabilities
        assert "prompts" not in capabilities

    def test_initialize_is_idempotent(self, dispatcher: RequestDispatcher):
        """Test repeated initialize calls return the same result."""
        first = dispatcher.handle(rpc("initialize", protocolVersion="2024-11-05"))
        second = dispatcher.handle(rpc("initialize", protocolVersion="2024-11-05"))

        assert first == second

    def test_description_becomes_instructions(self, server: MCPServer, dispatcher: RequestDispatcher):
        """Test the server description is sent as instructions."""
        server.set_description("Search the docs")

        result = dispatcher.handle(rpc("initialize"))["result"]

        assert result["instructions"] == "Search the docs"


class TestTools:
    def test_tools_list_matches_count(self, server: MCPServer, dispatcher: RequestDispatcher):
        """Test tools/list returns every registered tool."""
        server.register_tool(FunctionTool("search", "Search docs", lambda q: q))

        tools = dispatcher.handle(rpc("tools/list", id="tools-1"))["result"]["tools"]

        assert len(tools) == server.get_tool_count() == 2

    def test_tools_call_echo(self, dispatcher: RequestDispatcher):
        """Test tools/call with the echo tool."""
        response = dispatcher.handle(
            rpc("tools/call", id="call-1", name="echo", arguments={"message": "Hello"})
        )

        assert response["id"] == "call-1"
        assert "Echo: Hello" in response["result"]["content"][0]["text"]
        assert response["result"]["isError"] is False

    def test_unknown_tool_is_result_not_error(self, dispatcher: RequestDispatcher):
        """Test an unknown tool is a soft error."""
        response = dispatcher.handle(rpc("tools/call", name="missing", arguments={}))

        assert "error" not in response
        assert response["result"]["isError"] is True
        assert response["result"]["content"][0]["text"] == "Tool not found: missing"

    def test_raising_tool_is_result_not_error(self, server: MCPServer, dispatcher: RequestDispatcher):
        """Test a raising tool is a soft error."""
        def fail():
            raise RuntimeError("database unavailable")

        server.register_tool(FunctionTool("fail", "Fails", fail))

        response = dispatcher.handle(rpc("tools/call", name="fail"))

        assert response["result"] == {
            "content": [{"type": "text", "text": "database unavailable"}],
            "isError": True,
        }

    def test_tools_call_without_name(self, dispatcher: RequestDispatcher):
        """Test tools/call without a name."""
        response = dispatcher.handle(rpc("tools/call", arguments={}))

        assert response["error"]["code"] == -32602

    def test_tools_call_with_non_object_arguments(self, dispatcher: RequestDispatcher):
        """Test tools/call with non-object arguments."""
        response = dispatcher.handle(rpc("tools/call", name="echo", arguments=["Hello"]))

        assert response["error"]["code"] == -32602


class TestResourcesAndPrompts:
    @pytest.fixture(autouse=True)
    def capabilities(self, server: MCPServer) -> None:
        server.add_resource("config://settings", lambda: "debug=true", name="Settings")
        server.add_prompt(
            "summarize",
            lambda args: [{"role": "user", "content": "Summarize: " + args.get("text", "nothing")}],
            description="Summarize text",
        )

    def test_resources_list(self, dispatcher: RequestDispatcher):
        """Test resources/list."""
        resources = dispatcher.handle(rpc("resources/list"))["result"]["resources"]

        assert resources[0]["uri"] == "config://settings"
        assert resources[0]["name"] == "Settings"

    def test_resources_read(self, dispatcher: RequestDispatcher):
        """Test resources/read."""
        result = dispatcher.handle(rpc("resources/read", uri="config://settings"))["result"]

        assert result["contents"][0]["uri"] == "config://settings"
        assert result["contents"][0]["text"] == "debug=true"

    def test_resources_read_without_uri(self, dispatcher: RequestDispatcher):
        """Test resources/read without a uri."""
        response = dispatcher.handle(rpc("resources/read"))

        assert response["error"]["code"] == -32602

    def test_resources_read_unknown_uri(self, dispatcher: RequestDispatcher):
        """Test resources/read with an unknown uri."""
        response = dispatcher.handle(rpc("resources/read", uri="config://missing"))

        assert response["error"]["code"] == -32602
        assert "config://missing" in response["error"]["message"]

    def test_prompts_list(self, dispatcher: RequestDispatcher):
        """Test prompts/list."""
        prompts = dispatcher.handle(rpc("prompts/list"))["result"]["prompts"]

        assert prompts == [{"name": "summarize", "description": "Summarize text", "arguments": []}]

    def test_prompts_get(self, dispatcher: RequestDispatcher):
        """Test prompts/get."""
        result = dispatcher.handle(
            rpc("prompts/get", name="summarize", arguments={"text": "Hello World"})
        )["result"]

        assert len(result["messages"]) == 1
        assert result["messages"][0]["content"]["text"] == "Summarize: Hello World"

    def test_prompts_get_unknown(self, dispatcher: RequestDispatcher):
        """Test prompts/get with an unknown prompt."""
        response = dispatcher.handle(rpc("prompts/get", name="missing"))

        assert response["error"]["code"] == -32602

    def test_capabilities_include_all_kinds(self, dispatcher: RequestDispatcher):
        """Test all capability kinds are advertised once registered."""
        capabilities = dispatcher.handle(rpc("initialize"))["result"]["capabilities"]

        assert set(capabilities) == {"tools", "resources", "prompts"}

    def test_failing_resource_is_soft_error(self, server: MCPServer, dispatcher: RequestDispatcher):
        """Test a raising resource handler is a soft error."""
        def broken():
            raise OSError("disk gone")

        server.add_resource("file://broken", broken)

        response = dispatcher.handle(rpc("resources/read", uri="file://broken"))

        assert "error" not in response
        assert response["result"]["isError"] is True
        assert response["result"]["content"][0]["text"] == "disk gone"


class TestProtocolErrors:
    def test_unknown_method(self, dispatcher: RequestDispatcher):
        """Test an unknown method."""
        response = dispatcher.handle(rpc("unknown/method", id="unknown-1"))

        assert response["id"] == "unknown-1"
        assert response["error"] == {"code": -32601, "message": "Method not found"}
        assert "result" not in response

    def test_parse_error(self, dispatcher: RequestDispatcher):
        """Test malformed JSON."""
        response = dispatcher.handle('{"jsonrpc": "2.0", "method": ')

        assert response["id"] is None
        assert response["error"]["code"] == -32700

    def test_non_object_request(self, dispatcher: RequestDispatcher):
        """Test a request that is not an object."""
        response = dispatcher.handle("[1, 2, 3]")

        assert response["error"]["code"] == -32600

    def test_missing_jsonrpc_version(self, dispatcher: RequestDispatcher):
        """Test a request without the jsonrpc version."""
        response = dispatcher.handle({"method": "tools/list", "id": 7})

        assert response["id"] == 7
        assert response["error"]["code"] == -32600

    def test_params_must_be_object(self, dispatcher: RequestDispatcher):
        """Test params must be an object."""
        response = dispatcher.handle({"jsonrpc": "2.0", "method": "tools/list", "id": 1, "params": [1]})

        assert response["error"]["code"] == -32602

    def test_handler_exception_is_internal_error(self, dispatcher: RequestDispatcher):
        """Test an unexpected handler exception becomes an internal error."""
        class Broken(MethodHandler):
            def handle(self, server, params):
                raise KeyError("oops")

        dispatcher.register_handler("broken/method", Broken())

        response = dispatcher.handle(rpc("broken/method", id=9))

        assert response["id"] == 9
        assert response["error"]["code"] == -32603


class TestEnvelope:
    @pytest.mark.parametrize("request_id", ["abc", 42, None])
    def test_id_is_echoed_verbatim(self, dispatcher: RequestDispatcher, request_id):
        """Test the request id is echoed unchanged."""
        response = dispatcher.handle(rpc("tools/list", id=request_id))

        assert response["id"] == request_id
        assert response["jsonrpc"] == "2.0"

    def test_fractional_id_is_echoed(self, dispatcher: RequestDispatcher):
        """Test a non-integer numeric id is accepted and echoed unchanged."""
        response = dispatcher.handle_json('{"jsonrpc": "2.0", "id": 1.5, "method": "tools/list"}')

        body = json.loads(response)
        assert "error" not in body
        assert body["id"] == 1.5
        assert body["result"]["tools"][0]["name"] == "echo"

    @pytest.mark.parametrize("request_id", [True, [1], {"a": 1}])
    def test_invalid_id_types(self, dispatcher: RequestDispatcher, request_id):
        """Test booleans, arrays and objects are rejected as ids."""
        response = dispatcher.handle({"jsonrpc": "2.0", "id": request_id, "method": "tools/list"})

        assert response["error"]["code"] == -32600

    def test_json_string_and_dict_are_equivalent(self, dispatcher: RequestDispatcher):
        """Test dict and JSON string requests give the same response."""
        request = rpc("tools/call", id="same", name="echo", arguments={"message": "Hi"})

        assert dispatcher.handle(request) == dispatcher.handle(json.dumps(request))

    def test_bytes_request(self, dispatcher: RequestDispatcher):
        """Test a request given as bytes."""
        response = dispatcher.handle(b'{"jsonrpc":"2.0","method":"tools/list","id":"1"}')

        assert "result" in response

    def test_notification_has_no_response(self, dispatcher: RequestDispatcher):
        """Test notifications get no response."""
        assert dispatcher.handle({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None

    def test_handle_json_is_single_line(self, dispatcher: RequestDispatcher):
        """Test handle_json returns a single line."""
        line = dispatcher.handle_json(rpc("tools/list"))

        assert "\n" not in line
        assert json.loads(line)["result"]["tools"][0]["name"] == "echo"


class TestStatsTracking:
    def test_requests_and_errors_counted(self, server: MCPServer, dispatcher: RequestDispatcher):
        """Test requests and errors are counted."""
        dispatcher.handle(rpc("tools/list", id="1"))
        dispatcher.handle(rpc("invalid/method", id="2"))

        summary = server.stats.summary()
        assert summary["totalRequests"] == 2
        assert summary["totalErrors"] == 1
        assert summary["successRate"] == pytest.approx(50.0)
        assert summary["lastRequestAt"] != ""

    def test_tool_invocations_counted(self, server: MCPServer, dispatcher: RequestDispatcher):
        """Test tool invocations are counted."""
        dispatcher.handle(rpc("tools/call", name="echo", arguments={"message": "test"}))

        assert server.stats.summary()["totalToolInvocations"] == 1
        assert server.stats.snapshot()["tools"]["byName"] == {"echo": 1}

    def test_disabled_stats_record_nothing(self, server: MCPServer, dispatcher: RequestDispatcher):
        """Test disabled stats record nothing."""
        server.stats.disable()

        dispatcher.handle(rpc("tools/list"))

        assert server.stats.summary()["totalRequests"] == 0
