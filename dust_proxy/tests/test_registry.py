import pytest

from dust_proxy.domain.exceptions import ValidationError
from dust_proxy.resolution import PollResolver, StreamResolver, create_resolver
from dust_proxy.resolution.registry import get_profile


class SettingsStub:
    default_strategy = "poll"
    poll_max_attempts = 15
    poll_fast_max_attempts = 4
    poll_delay = 2.0
    stream_deadline = 60.0
    message_timezone = "Europe/Paris"
    message_username = "Figma Plugin User"
    title_prefix = "Mockup: "


def test_profiles():
    cfg = SettingsStub()
    poll = get_profile("poll", cfg)
    assert (poll.max_attempts, poll.delay, poll.worst_case_wait) == (15, 2.0, 30.0)
    fast = get_profile("POLL-FAST", cfg)
    assert fast.worst_case_wait == 8.0
    assert get_profile("stream", cfg).kind == "stream"


def test_unknown_profile():
    with pytest.raises(ValidationError) as exc:
        get_profile("webhook", SettingsStub())
    assert exc.value.http_status == 400


def test_create_resolver_default_and_explicit():
    assert isinstance(create_resolver(object(), SettingsStub()), PollResolver)
    assert isinstance(create_resolver(object(), SettingsStub(), "stream"), StreamResolver)
