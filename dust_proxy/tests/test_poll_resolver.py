import pytest

from dust_proxy.domain.exceptions import ApiError, ClientDisconnectedError, NetworkError
from dust_proxy.domain.models import ResolutionRequest, Success, Timeout
from dust_proxy.resolution.initiator import ConversationInitiator
from dust_proxy.resolution.poll import PollResolver, flatten_content, last_agent_message
from dust_proxy.resolution.registry import ResolverProfile


class SettingsStub:
    message_timezone = "Europe/Paris"
    message_username = "Figma Plugin User"
    title_prefix = "Mockup: "


class FakeDust:
    name = "fake"

    def __init__(self, snapshots, create_error=None):
        self.snapshots = list(snapshots)
        self.create_error = create_error
        self.fetches = 0

    def create_conversation(self, payload):
        if self.create_error:
            raise self.create_error
        return {"conversation": {"sId": "c1"}}

    def get_conversation(self, conversation_id):
        assert conversation_id == "c1"
        item = self.snapshots[min(self.fetches, len(self.snapshots) - 1)]
        self.fetches += 1
        if isinstance(item, Exception):
            raise item
        return item

    def conversation_url(self, conversation_id):
        return f"https://dust.tt/w/ws1/conversation/{conversation_id}"


def snapshot(*groups):
    return {"conversation": {"sId": "c1", "title": "Mockup", "content": [list(g) for g in groups]}}


USER = {"type": "user_message", "sId": "u1", "content": "hi"}
PENDING = {"type": "agent_message", "sId": "a0", "content": None}


def make_resolver(client, max_attempts=4, delay=2.0):
    sleeps = []
    profile = ResolverProfile(name="poll", kind="poll", max_attempts=max_attempts, delay=delay)
    resolver = PollResolver(client, ConversationInitiator(client, SettingsStub()), profile, sleep=sleeps.append)
    return resolver, sleeps


REQUEST = ResolutionRequest(prompt="draw a button", assistant_id="a1")


def test_timeout_after_budget():
    client = FakeDust([snapshot([USER], [PENDING])])
    resolver, sleeps = make_resolver(client, max_attempts=4, delay=2.0)
    outcome = resolver.resolve(REQUEST)
    assert isinstance(outcome, Timeout)
    assert outcome.attempts == 4
    assert outcome.conversation_id == "c1"
    assert outcome.conversation_url == "https://dust.tt/w/ws1/conversation/c1"
    assert client.fetches == 4
    assert sum(sleeps) >= 4 * 2.0


def test_success_uses_last_agent_message_and_stops():
    first = {"type": "agent_message", "sId": "a1", "content": "draft"}
    last = {"type": "agent_message", "sId": "a2", "content": "final", "visibility": "visible"}
    client = FakeDust([
        snapshot([USER]),
        snapshot([USER], [first], [last]),
        snapshot([USER], [first]),
    ])
    resolver, sleeps = make_resolver(client, max_attempts=15)
    outcome = resolver.resolve(REQUEST)
    assert isinstance(outcome, Success)
    assert outcome.message.id == "a2"
    assert outcome.message.content == "final"
    assert outcome.message.raw == last
    assert outcome.conversation["title"] == "Mockup"
    assert client.fetches == 2
    assert len(sleeps) == 2


def test_transient_fetch_errors_share_the_budget():
    reply = {"type": "agent_message", "sId": "a1", "content": "ok"}
    client = FakeDust([
        ApiError(code="API_ERROR", message="Dust API error (fetch)", http_status=500),
        NetworkError(code="NETWORK_ERROR", message="down"),
        snapshot([USER], [reply]),
    ])
    resolver, _ = make_resolver(client, max_attempts=3)
    outcome = resolver.resolve(REQUEST)
    assert isinstance(outcome, Success)
    assert client.fetches == 3


def test_fetch_errors_until_budget_exhausted():
    client = FakeDust([ApiError(code="API_ERROR", message="boom", http_status=502)])
    resolver, _ = make_resolver(client, max_attempts=2)
    outcome = resolver.resolve(REQUEST)
    assert isinstance(outcome, Timeout)
    assert outcome.attempts == 2


def test_creation_failure_is_not_retried():
    client = FakeDust([], create_error=ApiError(code="API_ERROR", message="x", http_status=503, details="down"))
    resolver, sleeps = make_resolver(client)
    with pytest.raises(ApiError):
        resolver.resolve(REQUEST)
    assert client.fetches == 0
    assert sleeps == []


def test_flatten_and_filter():
    messages = flatten_content([[USER], [PENDING, {"type": "agent_message", "content": "x"}]])
    assert len(messages) == 3
    assert last_agent_message(messages)["content"] == "x"
    assert last_agent_message([USER, PENDING]) is None
    assert flatten_content(None) == []


def test_disconnect_stops_polling():
    client = FakeDust([snapshot([USER])])
    profile = ResolverProfile(name="poll", kind="poll", max_attempts=15, delay=2.0)
    state = {"gone": False}

    def sleep(delay):
        if client.fetches == 2:
            state["gone"] = True

    resolver = PollResolver(
        client,
        ConversationInitiator(client, SettingsStub()),
        profile,
        sleep=sleep,
        cancelled=lambda: state["gone"],
    )
    with pytest.raises(ClientDisconnectedError):
        resolver.resolve(REQUEST)
    assert client.fetches == 2
