"""Unit tests for the CLI API client."""

from __future__ import annotations

import json
from unittest.mock import patch

import click
import httpx
import pytest

from thinkgate.cli.api_client import DaemonAPIError, DaemonNotRunningError, api_request
from thinkgate.config import AppConfig


class TestDaemonNotRunningError:
    """Tests for DaemonNotRunningError."""

    def test_has_helpful_message(self):
        error = DaemonNotRunningError(8319)

        assert "not running" in str(error)
        assert "8319" in str(error)
        assert "thinkgate start" in str(error)

    def test_is_click_exception(self):
        assert isinstance(DaemonNotRunningError(8319), click.ClickException)


class TestDaemonAPIError:
    """Tests for DaemonAPIError."""

    def test_includes_status_code_in_message(self):
        error = DaemonAPIError("Not found", status_code=404)

        assert str(error) == "API error (404): Not found"
        assert error.status_code == 404

    def test_without_status_code(self):
        error = DaemonAPIError("Connection reset")

        assert str(error) == "API error: Connection reset"
        assert error.status_code is None


def _transport(handler) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


class TestApiRequest:
    """Tests for api_request() against an httpx mock transport."""

    @pytest.fixture
    def client_factory(self):
        """Patch httpx.Client so requests go to a handler instead of the network."""
        real_client = httpx.Client
        state = {"handler": None}

        def factory(**kwargs):
            return real_client(transport=_transport(state["handler"]), **kwargs)

        with patch("thinkgate.cli.api_client.httpx.Client", side_effect=factory) as mock_client:
            yield state, mock_client

    def test_returns_json(self, client_factory):
        state, mock_client = client_factory
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"lines": [], "count": 0})

        state["handler"] = handler

        result = api_request("GET", "/api/logs", port=9000, params={"limit": 5})

        assert result == {"lines": [], "count": 0}
        assert str(seen[0].url) == "http://127.0.0.1:9000/api/logs?limit=5"
        assert mock_client.call_args.kwargs["base_url"] == "http://127.0.0.1:9000"

    def test_sends_json_body(self, client_factory):
        state, _ = client_factory
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True})

        state["handler"] = handler

        api_request("POST", "/api/auth/connect", port=9000, json_data={"service": "claude"})

        assert bodies == [{"service": "claude"}]

    def test_structured_error_message(self, client_factory):
        state, _ = client_factory
        state["handler"] = lambda request: httpx.Response(
            500,
            json={"detail": {"code": "CONFIG_ERROR", "message": "binary not found at /x"}},
        )

        with pytest.raises(DaemonAPIError) as exc_info:
            api_request("POST", "/api/server/start", port=9000)

        assert exc_info.value.status_code == 500
        assert "binary not found at /x" in str(exc_info.value)

    def test_plain_text_error(self, client_factory):
        state, _ = client_factory
        state["handler"] = lambda request: httpx.Response(502, text="Bad Gateway")

        with pytest.raises(DaemonAPIError) as exc_info:
            api_request("GET", "/api/status", port=9000)

        assert "Bad Gateway" in str(exc_info.value)

    def test_list_result_is_wrapped(self, client_factory):
        state, _ = client_factory
        state["handler"] = lambda request: httpx.Response(200, json=[1, 2])

        assert api_request("GET", "/api/x", port=9000) == {"value": [1, 2]}

    def test_connection_failure_retries_then_reports_not_running(self, client_factory):
        state, mock_client = client_factory

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        state["handler"] = handler

        with patch("thinkgate.cli.api_client.time.sleep") as mock_sleep:
            with pytest.raises(DaemonNotRunningError) as exc_info:
                api_request("GET", "/api/status", port=9000, max_retries=3, backoff_ms=100)

        assert exc_info.value.port == 9000
        assert mock_client.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.1, 0.2]

    def test_port_defaults_to_config(self, client_factory):
        state, mock_client = client_factory
        state["handler"] = lambda request: httpx.Response(200, json={})

        with patch("thinkgate.cli.api_client.load_config", return_value=AppConfig(api_port=9123)):
            api_request("GET", "/api/status")

        assert mock_client.call_args.kwargs["base_url"] == "http://127.0.0.1:9123"

    def test_timeout_is_api_error(self, client_factory):
        state, _ = client_factory

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        state["handler"] = handler

        with pytest.raises(DaemonAPIError):
            api_request("GET", "/api/status", port=9000)
