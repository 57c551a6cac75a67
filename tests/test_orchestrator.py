"""
Tests for the orchestrator proxy clients
"""

import hashlib
import hmac
import json

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from agent_console.core.exceptions import OrchestratorError, UpstreamNotConfigured
from agent_console.services.orchestrator import AdminApiClient, TextChatApiClient, to_camel_keys
from agent_console.services.orchestrator.signing import hash_body, sign_request, verify_signature


def _mock_http(mock_client, status_code=200, payload=None, side_effect=None):
    """Wire a patched httpx.AsyncClient to return one response"""
    response = MagicMock()
    response.status_code = status_code
    response.content = json.dumps(payload).encode() if payload is not None else b""
    response.json.return_value = payload
    response.reason_phrase = "Error"

    instance = MagicMock()
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=False)
    instance.request = AsyncMock(return_value=response, side_effect=side_effect)
    mock_client.return_value = instance
    return instance


class TestSigning:
    """Tests for HMAC request signing"""

    def test_signature_is_deterministic(self):
        """Test a fixed timestamp and nonce give a fixed signature"""
        first = sign_request("POST", "/admin/rag/query", '{"q": 1}', "key", timestamp="1700000000", nonce="n1")
        second = sign_request("POST", "/admin/rag/query", '{"q": 1}', "key", timestamp="1700000000", nonce="n1")
        assert first == second

    def test_signature_matches_message_layout(self):
        """Test timestamp + nonce + METHOD + path + sha256(body)"""
        body = '{"tenant_id": "t1"}'
        headers = sign_request("post", "/admin/cache/refresh/agent", body, "secret", timestamp="100", nonce="abc")

        message = "100abcPOST/admin/cache/refresh/agent" + hashlib.sha256(body.encode()).hexdigest()
        expected = hmac.new(b"secret", message.encode(), hashlib.sha256).hexdigest()

        assert headers["X-Signature"] == expected
        assert headers["X-Timestamp"] == "100"
        assert headers["X-Nonce"] == "abc"
        assert headers["Content-Type"] == "application/json"

    def test_get_signs_empty_body(self):
        with_body = sign_request("GET", "/admin/x", "ignored", "key", timestamp="1", nonce="n")
        without_body = sign_request("GET", "/admin/x", "", "key", timestamp="1", nonce="n")
        assert with_body["X-Signature"] == without_body["X-Signature"]
        assert hash_body("") == hashlib.sha256(b"").hexdigest()

    def test_generated_nonce_is_random(self):
        first = sign_request("POST", "/p", "", "key")
        second = sign_request("POST", "/p", "", "key")
        assert first["X-Nonce"] != second["X-Nonce"]

    def test_verify_round_trip_and_skew(self):
        headers = sign_request("DELETE", "/api/chat/sessions/s1", "", "key", timestamp="1000", nonce="n")

        assert verify_signature(headers, "DELETE", "/api/chat/sessions/s1", "", "key", now=1100)
        assert not verify_signature(headers, "DELETE", "/api/chat/sessions/s1", "", "other", now=1100)
        assert not verify_signature(headers, "DELETE", "/api/chat/sessions/s1", "", "key", now=2000)


class TestCaseMapping:
    def test_nested_keys_are_camel_cased(self):
        result = to_camel_keys({"call_id": "c1", "agent_info": {"agent_name": "A"}, "items": [{"top_k": 5}]})
        assert result == {"callId": "c1", "agentInfo": {"agentName": "A"}, "items": [{"topK": 5}]}


class TestAdminApiClient:
    """Tests for the Admin API client"""

    def test_not_configured(self):
        client = AdminApiClient(base_url="", api_key="")
        assert client.is_configured() is False

    @pytest.mark.asyncio
    async def test_request_requires_configuration(self):
        client = AdminApiClient(base_url="", api_key="")
        with pytest.raises(UpstreamNotConfigured):
            await client.refresh_agent_cache("t1", "a1")

    @pytest.mark.asyncio
    @patch("agent_console.services.orchestrator.client.httpx.AsyncClient")
    async def test_outbound_call_is_signed_and_camel_cased(self, mock_client):
        """Test outbound call request shape and response mapping"""
        instance = _mock_http(mock_client, payload={"call_id": "call-1", "twilio_call_sid": "CA1", "status": "queued"})
        client = AdminApiClient(base_url="http://orch.test/", api_key="key")

        result = await client.initiate_outbound_call("t1", "a1", "+15551234567")

        assert result == {"callId": "call-1", "twilioCallSid": "CA1", "status": "queued"}
        method, url = instance.request.call_args.args
        kwargs = instance.request.call_args.kwargs
        assert (method, url) == ("POST", "http://orch.test/admin/calls/outbound")
        assert json.loads(kwargs["content"]) == {"tenant_id": "t1", "agent_id": "a1", "to_number": "+15551234567"}
        assert verify_signature(
            kwargs["headers"], "POST", "/admin/calls/outbound", kwargs["content"], "key"
        )

    @pytest.mark.asyncio
    @patch("agent_console.services.orchestrator.client.httpx.AsyncClient")
    async def test_error_detail_becomes_message(self, mock_client):
        """Test remote detail and status are carried on OrchestratorError"""
        _mock_http(mock_client, status_code=404, payload={"detail": "Agent not found"})
        client = AdminApiClient(base_url="http://orch.test", api_key="key")

        with pytest.raises(OrchestratorError) as exc_info:
            await client.query_rag("t1", "a1", "hours?")

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Agent not found"

    @pytest.mark.asyncio
    @patch("agent_console.services.orchestrator.client.httpx.AsyncClient")
    async def test_timeout_maps_to_504(self, mock_client):
        _mock_http(mock_client, side_effect=httpx.ReadTimeout("slow"))
        client = AdminApiClient(base_url="http://orch.test", api_key="key")

        with pytest.raises(OrchestratorError) as exc_info:
            await client.refresh_agent_cache("t1", "a1")
        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    @patch("agent_console.services.orchestrator.client.httpx.AsyncClient")
    async def test_connection_error_maps_to_502(self, mock_client):
        _mock_http(mock_client, side_effect=httpx.ConnectError("refused"))
        client = AdminApiClient(base_url="http://orch.test", api_key="key")

        with pytest.raises(OrchestratorError) as exc_info:
            await client.refresh_agent_cache("t1", "a1")
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    @patch("agent_console.services.orchestrator.client.httpx.AsyncClient")
    async def test_best_effort_refresh_never_raises(self, mock_client):
        """Test cache refresh failures are reported as False"""
        _mock_http(mock_client, status_code=500, payload={"detail": "boom"})
        client = AdminApiClient(base_url="http://orch.test", api_key="key")

        assert await client.refresh_cache_best_effort("t1", "a1") is False

    @pytest.mark.asyncio
    async def test_best_effort_refresh_skipped_when_not_configured(self):
        client = AdminApiClient(base_url="", api_key="")
        assert await client.refresh_cache_best_effort("t1", "a1") is False

    @pytest.mark.asyncio
    @patch("agent_console.services.orchestrator.client.httpx.AsyncClient")
    async def test_export_keeps_snake_case(self, mock_client):
        """Test export output is passed through for re-import"""
        exported = {"agent": {"id": "a1", "name": "A"}, "workflow": {"initial_node": "greeting", "nodes": []}}
        instance = _mock_http(mock_client, payload=exported)
        client = AdminApiClient(base_url="http://orch.test", api_key="key")

        result = await client.export_agent("t1", "a1", version=3)

        assert result == exported
        method, url = instance.request.call_args.args
        assert method == "GET"
        assert url == "http://orch.test/admin/agents/t1/a1/export?version=3"
        assert instance.request.call_args.kwargs["content"] is None

    @pytest.mark.asyncio
    @patch("agent_console.services.orchestrator.client.httpx.AsyncClient")
    async def test_import_sends_agent_json_verbatim(self, mock_client):
        agent_json = {"agent": {"name": "A"}, "workflow": {"initial_node": "n", "nodes": [{"id": "n"}]}}
        instance = _mock_http(mock_client, payload={"result": {"agent_id": "a1", "action": "created"}})
        client = AdminApiClient(base_url="http://orch.test", api_key="key")

        result = await client.import_agent("t1", agent_json, dry_run=False)

        assert result == {"agentId": "a1", "action": "created"}
        sent = json.loads(instance.request.call_args.kwargs["content"])
        assert sent["agent_json"] == agent_json
        assert sent["dry_run"] is False

    @pytest.mark.asyncio
    @patch("agent_console.services.orchestrator.client.httpx.AsyncClient")
    async def test_call_status_is_a_signed_get(self, mock_client):
        instance = _mock_http(mock_client, payload={"call_id": "c1", "twilio_call_sid": "CA1", "status": "in-progress"})
        client = AdminApiClient(base_url="http://orch.test", api_key="key")

        result = await client.get_call_status("c1")

        assert result == {"callId": "c1", "twilioCallSid": "CA1", "status": "in-progress"}
        method, url = instance.request.call_args.args
        assert (method, url) == ("GET", "http://orch.test/admin/calls/c1")
        assert verify_signature(instance.request.call_args.kwargs["headers"], "GET", "/admin/calls/c1", "", "key")

    @pytest.mark.asyncio
    @patch("agent_console.services.orchestrator.client.httpx.AsyncClient")
    async def test_llm_providers_requires_list(self, mock_client):
        _mock_http(mock_client, payload={"providers": [{"provider_id": "p1"}], "count": 1})
        client = AdminApiClient(base_url="http://orch.test", api_key="key")
        assert await client.list_llm_providers() == [{"provider_id": "p1"}]

        _mock_http(mock_client, payload={"count": 0})
        with pytest.raises(OrchestratorError) as exc_info:
            await client.list_llm_providers()
        assert exc_info.value.status_code == 502


class TestTextChatApiClient:
    """Tests for the Text Chat API client"""

    def test_falls_back_to_admin_settings(self):
        client = TextChatApiClient()
        assert client.base_url == "http://orchestrator.test"
        assert client.is_configured()

    @pytest.mark.asyncio
    @patch("agent_console.services.orchestrator.client.httpx.AsyncClient")
    async def test_error_message_format(self, mock_client):
        _mock_http(mock_client, status_code=410, payload={"detail": "Session is not active"})
        client = TextChatApiClient(base_url="http://chat.test", api_key="key")

        with pytest.raises(OrchestratorError) as exc_info:
            await client.send_message("s1", "hello")

        assert exc_info.value.status_code == 410
        assert exc_info.value.message == "Text Chat API error (410): Session is not active"

    @pytest.mark.asyncio
    @patch("agent_console.services.orchestrator.client.httpx.AsyncClient")
    async def test_create_session(self, mock_client):
        instance = _mock_http(mock_client, payload={"session_id": "s1", "current_node": "greeting"})
        client = TextChatApiClient(base_url="http://chat.test", api_key="key")

        result = await client.create_session("t1", "a1", metadata={"channel": "web-admin"})

        assert result == {"sessionId": "s1", "currentNode": "greeting"}
        sent = json.loads(instance.request.call_args.kwargs["content"])
        assert sent == {"tenant_id": "t1", "agent_id": "a1", "metadata": {"channel": "web-admin"}}
