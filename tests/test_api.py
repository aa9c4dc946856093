"""
==============================================================================
API Integration Tests
==============================================================================

Tests for REST API endpoints and the scan WebSocket.

==============================================================================
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from scanflow.config import EnvSettingsProvider, Settings


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client: TestClient):
        """Test health check returns status."""
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["profiles"] == "default"
        assert data["details"]["profiles_loaded"] == 2

    def test_readiness_probe(self, client: TestClient):
        """Test readiness probe."""
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_liveness_probe(self, client: TestClient):
        """Test liveness probe."""
        response = client.get("/api/v1/health/live")
        assert response.status_code == 200
        assert response.json()["alive"] is True

    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["scan"] == "/ws/scan"


class TestProfileEndpoints:
    """Tests for output profile endpoints."""

    def test_list_profiles(self, client: TestClient):
        """Test listing profiles with derived flags."""
        response = client.get("/api/v1/profiles")
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["total"] == 2
        assert [p["name"] for p in data["items"]] == ["Default", "Quantity"]
        assert data["items"][0]["has_quantity_component"] is False
        assert data["items"][1]["has_quantity_component"] is True
        assert data["items"][1]["has_blocking_component"] is True

    def test_get_profile(self, client: TestClient):
        """Test profile detail includes its blocks."""
        response = client.get("/api/v1/profiles/1")
        assert response.status_code == 200
        data = response.json()
        assert data["block_count"] == 2
        assert data["output_blocks"][1]["value"] == "quantity"

    def test_get_profile_not_found(self, client: TestClient):
        """Test unknown profile index returns the error envelope."""
        response = client.get("/api/v1/profiles/5")
        assert response.status_code == 404
        data = response.json()
        assert data["success"] is False
        assert data["error"]["code"] == "PROFILE_NOT_FOUND"
        assert data["error"]["details"]["profile_index"] == 5


class TestExpressionEndpoints:
    """Tests for expression evaluation endpoints."""

    def test_evaluate(self, client: TestClient):
        response = client.post(
            "/api/v1/expressions/evaluate",
            json={"expression": "barcode.startsWith('L1') && quantity > 2",
                  "variables": {"barcode": "L1-9", "quantity": 3}}
        )
        assert response.status_code == 200
        assert response.json()["value"] is True
        assert response.json()["text"] == "true"

    def test_evaluate_not_a_number(self, client: TestClient):
        response = client.post(
            "/api/v1/expressions/evaluate",
            json={"expression": "parseInt('x')"}
        )
        assert response.status_code == 200
        assert response.json()["value"] is None
        assert response.json()["text"] == "NaN"

    def test_evaluate_nested_too_deeply(self, client: TestClient):
        response = client.post(
            "/api/v1/expressions/evaluate",
            json={"expression": "(" * 900 + "1" + ")" * 900}
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "EVALUATION_ERROR"

    def test_evaluate_error(self, client: TestClient):
        response = client.post(
            "/api/v1/expressions/evaluate",
            json={"expression": "unknown_name + 1"}
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "EVALUATION_ERROR"

    def test_interpolate(self, client: TestClient):
        response = client.post(
            "/api/v1/expressions/interpolate",
            json={"template": "{{ device_name }}/{{ missing }}",
                  "variables": {"device_name": "dock-1"}}
        )
        assert response.status_code == 200
        assert response.json()["text"] == "dock-1/{{ missing }}"


def receive_until(websocket, predicate) -> list:
    """Read messages up to and including the first one matching predicate."""
    seen = []
    while True:
        message = websocket.receive_json()
        seen.append(message)
        if predicate(message):
            return seen


def is_prompt(kind):
    return lambda m: m["type"] == "prompt" and m["kind"] == kind


class TestScanWebSocket:
    """Tests for the scan session protocol."""

    def test_single_scan(self, client: TestClient):
        """Test a single scan from start to stop."""
        with client.websocket_connect("/ws/scan") as websocket:
            websocket.send_json({"type": "start", "mode": "single", "scan_session_name": "Inventory"})

            prompt = websocket.receive_json()
            assert prompt["type"] == "prompt"
            assert prompt["kind"] == "barcode"
            assert prompt["options"]["continuous_mode"] is False

            websocket.send_json({"type": "barcode", "text": "123", "format": "QR_CODE"})

            message = websocket.receive_json()
            assert message["type"] == "scan"
            assert message["scan"]["text"] == "123"
            assert message["scan"]["display_value"] == "123"

            assert websocket.receive_json()["type"] == "complete"
            websocket.send_json({"type": "stop"})

    def test_quantity_reply(self, client: TestClient):
        """Test the quantity prompt is answered with a reply."""
        with client.websocket_connect("/ws/scan") as websocket:
            websocket.send_json({"type": "start", "mode": "single", "profile_index": 1})

            assert websocket.receive_json()["kind"] == "barcode"
            websocket.send_json({"type": "barcode", "text": "ABC"})

            prompt = websocket.receive_json()
            assert prompt["kind"] == "quantity"
            assert prompt["label"] == "How many?"
            assert prompt["expected_type"] == "number"
            websocket.send_json({"type": "reply", "request_id": prompt["request_id"], "value": "3"})

            message = websocket.receive_json()
            assert message["scan"]["quantity"] == "3"
            assert message["scan"]["display_value"] == "ABC 3"

            assert websocket.receive_json()["type"] == "complete"
            websocket.send_json({"type": "stop"})

    def test_cancelled_barcode_completes_without_scan(self, client: TestClient):
        with client.websocket_connect("/ws/scan") as websocket:
            websocket.send_json({"type": "start", "mode": "single"})

            assert websocket.receive_json()["kind"] == "barcode"
            websocket.send_json({"type": "cancel"})

            assert websocket.receive_json()["type"] == "complete"
            websocket.send_json({"type": "stop"})

    def test_add_more_countdown_continues_scanning(self, client: TestClient, provider: EnvSettingsProvider):
        """Test an unanswered add more dialog is dismissed and scanning goes on."""
        provider.settings = provider.settings.model_copy(update={"continue_mode_timeout": 1})

        with client.websocket_connect("/ws/scan") as websocket:
            websocket.send_json({"type": "start", "mode": "continue"})

            first = websocket.receive_json()
            assert first["kind"] == "barcode"
            assert first["options"]["continuous_mode"] is False
            websocket.send_json({"type": "barcode", "text": "A"})

            messages = receive_until(websocket, is_prompt("add_more"))
            add_more = messages[-1]
            assert add_more["countdown"] == 1

            messages += receive_until(websocket, is_prompt("barcode"))
            dismiss = [m for m in messages if m["type"] == "dismiss"]
            assert dismiss == [{"type": "dismiss", "request_id": add_more["request_id"]}]
            assert [m["scan"]["text"] for m in messages if m["type"] == "scan"] == ["A"]
            assert messages.index(dismiss[0]) < len(messages) - 1

            websocket.send_json({"type": "stop"})

    def test_restart_while_waiting_for_barcode(self, client: TestClient):
        """Test a second start takes over a pending barcode request."""
        with client.websocket_connect("/ws/scan") as websocket:
            websocket.send_json({"type": "start", "mode": "single"})
            first = websocket.receive_json()
            assert first["kind"] == "barcode"

            websocket.send_json({"type": "start", "mode": "single"})
            second = receive_until(websocket, is_prompt("barcode"))[-1]
            assert second["request_id"] != first["request_id"]

            websocket.send_json({"type": "barcode", "text": "NEW"})
            scans = [m for m in receive_until(websocket, lambda m: m["type"] == "scan") if m["type"] == "scan"]
            assert scans[0]["scan"]["text"] == "NEW"

            websocket.send_json({"type": "stop"})

    def test_invalid_message(self, client: TestClient):
        """Test unknown message types are rejected."""
        with client.websocket_connect("/ws/scan") as websocket:
            websocket.send_json({"type": "bogus"})

            message = websocket.receive_json()
            assert message["type"] == "error"
            assert message["code"] == "INVALID_MESSAGE"
            websocket.send_json({"type": "stop"})

    def test_unknown_mode(self, client: TestClient):
        with client.websocket_connect("/ws/scan") as websocket:
            websocket.send_json({"type": "start", "mode": "sideways"})

            message = websocket.receive_json()
            assert message["code"] == "INVALID_MESSAGE"
            websocket.send_json({"type": "stop"})


class TestSettings:
    """Tests for settings and the settings provider."""

    def test_defaults(self, test_settings: Settings):
        assert test_settings.infinite_loop_threshold == 30
        assert test_settings.quantity_type == "number"

    def test_invalid_quantity_type(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, quantity_type="decimal")

    def test_invalid_barcode_formats_fall_back(self, test_settings: Settings):
        settings = test_settings.model_copy(update={"barcode_formats": "not json"})
        assert len(settings.barcode_formats_list) == 17

    def test_preferences(self, test_settings: Settings):
        settings = test_settings.model_copy(update={
            "barcode_formats": '[{"name": "CODE_39", "enabled": true}, {"name": "CODE_32"}]',
            "continue_mode_timeout": 0,
            "device_name": "dock-1",
        })
        preferences = asyncio.run(EnvSettingsProvider(settings).get_preferences())

        assert preferences.continue_mode_timeout is None
        assert preferences.device_name == "dock-1"
        assert [(f.name, f.enabled) for f in preferences.barcode_formats] == [
            ("CODE_39", True), ("CODE_32", True)
        ]
