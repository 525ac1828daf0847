from fastapi.testclient import TestClient

from dust_proxy.api import service
from dust_proxy.api.app import app


class SettingsStub:
    dust_api_key = "sk-test-key-123456"
    dust_workspace_id = "ws1"
    default_strategy = "poll"
    poll_max_attempts = 2
    poll_fast_max_attempts = 1
    poll_delay = 0.0
    stream_deadline = 60.0
    message_timezone = "Europe/Paris"
    message_username = "Figma Plugin User"
    title_prefix = "Mockup: "
    expose_stack_trace = False


class FakeDust:
    name = "fake"

    def create_conversation(self, payload):
        return {"conversation": {"sId": "c1"}}

    def get_conversation(self, conversation_id):
        return {"conversation": {"sId": "c1", "content": [[{"type": "agent_message", "sId": "a1", "content": "ok"}]]}}

    def conversation_url(self, conversation_id):
        return f"https://dust.tt/w/ws1/conversation/{conversation_id}"


client = TestClient(app)


def assert_cors(resp):
    assert resp.headers["access-control-allow-origin"] == "*"
    assert resp.headers["access-control-allow-methods"] == "POST, OPTIONS"
    assert resp.headers["access-control-allow-headers"] == "Content-Type"


def test_root():
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_preflight():
    resp = client.options("/api/proxy")
    assert resp.status_code == 200
    assert resp.content == b""
    assert_cors(resp)


def test_method_not_allowed():
    resp = client.get("/api/proxy")
    assert resp.status_code == 405
    assert resp.json() == {"error": "Method not allowed"}
    assert_cors(resp)


def test_invalid_body(monkeypatch):
    monkeypatch.setattr("dust_proxy.api.service.settings", SettingsStub())
    resp = client.post("/api/proxy", content=b"not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing required fields: prompt and assistantId"}
    assert_cors(resp)


def test_proxy_success(monkeypatch):
    monkeypatch.setattr("dust_proxy.api.service.settings", SettingsStub())
    monkeypatch.setattr(service, "create_client", lambda cfg: FakeDust())
    resp = client.post("/api/proxy", json={"prompt": "hi", "assistantId": "a1"})
    assert resp.status_code == 200
    assert resp.json()["conversation"]["content"] == [[{"type": "agent_message", "sId": "a1", "content": "ok"}]]
    assert_cors(resp)
