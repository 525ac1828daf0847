import pytest

from dust_proxy.domain.exceptions import ApiError
from dust_proxy.domain.models import ResolutionRequest
from dust_proxy.resolution.initiator import ConversationInitiator


class SettingsStub:
    message_timezone = "Europe/Paris"
    message_username = "Figma Plugin User"
    title_prefix = "Mockup: "


class FakeDust:
    name = "fake"

    def __init__(self, response):
        self.response = response
        self.payloads = []

    def create_conversation(self, payload):
        self.payloads.append(payload)
        return self.response

    def iter_stream_lines(self, payload):
        self.payloads.append(payload)
        return iter([])


def test_build_payload_truncates_title():
    prompt = "x" * 80
    initiator = ConversationInitiator(FakeDust({}), SettingsStub())
    payload = initiator.build_payload(ResolutionRequest(prompt=prompt, assistant_id="a1"))
    assert payload["title"] == "Mockup: " + "x" * 50 + "..."
    assert payload["message"] == {
        "content": prompt,
        "mentions": [],
        "context": {"timezone": "Europe/Paris", "username": "Figma Plugin User"},
    }
    assert payload["assistantId"] == "a1"
    assert payload["blocking"] is False
    assert "stream" not in payload


def test_create_returns_handle():
    client = FakeDust({"conversation": {"sId": "c1", "title": "t"}})
    handle = ConversationInitiator(client, SettingsStub()).create(ResolutionRequest(prompt="hi", assistant_id="a1"))
    assert handle.conversation_id == "c1"
    assert handle.raw["conversation"]["title"] == "t"
    assert len(client.payloads) == 1


def test_create_without_conversation_id():
    client = FakeDust({"conversation": {}})
    with pytest.raises(ApiError) as exc:
        ConversationInitiator(client, SettingsStub()).create(ResolutionRequest(prompt="hi", assistant_id="a1"))
    assert exc.value.code == "MALFORMED_RESPONSE"


def test_open_stream_requests_streaming():
    client = FakeDust({})
    ConversationInitiator(client, SettingsStub()).open_stream(ResolutionRequest(prompt="hi", assistant_id="a1"))
    assert client.payloads[0]["stream"] is True
    assert client.payloads[0]["blocking"] is False
