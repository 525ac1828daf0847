from dust_proxy.api.normalizer import normalize
from dust_proxy.domain.models import AgentMessage, NoContent, Success, Timeout, UpstreamFailure


def test_success_keeps_only_final_message():
    raw = {"type": "agent_message", "sId": "a2", "content": "final"}
    conversation = {"sId": "c1", "title": "Mockup", "content": [[{"type": "user_message"}], [raw]]}
    res = normalize(Success(conversation_id="c1", message=AgentMessage.from_payload(raw), conversation=conversation))
    assert res.status_code == 200
    assert res.body["conversation"]["title"] == "Mockup"
    assert res.body["conversation"]["content"] == [[raw]]
    # 原始快照不被修改
    assert len(conversation["content"]) == 2


def test_streamed_message_payload():
    message = AgentMessage(id="m1", content="Hello world")
    res = normalize(Success(conversation_id="c1", message=message, conversation={"sId": "c1"}))
    assert res.body["conversation"]["content"] == [[
        {"sId": "m1", "type": "agent_message", "content": "Hello world", "visibility": "visible"}
    ]]


def test_timeout():
    res = normalize(Timeout(conversation_id="c1", attempts=15, conversation_url="https://dust.tt/w/ws/conversation/c1"))
    assert res.status_code == 408
    assert res.body == {
        "error": "Timeout: assistant did not respond in time",
        "debug": {"conversationId": "c1", "attempts": 15, "conversationUrl": "https://dust.tt/w/ws/conversation/c1"},
    }


def test_upstream_failure_passthrough():
    res = normalize(UpstreamFailure(status_code=503, body="down"))
    assert res.status_code == 503
    assert res.body == {"error": "Dust API error (create)", "details": "down"}


def test_no_content():
    res = normalize(NoContent(conversation_id=None))
    assert res.status_code == 500
    assert res.body == {"error": "No agent response found", "debug": {"conversationId": None}}
