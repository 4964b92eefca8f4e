import asyncio

import pytest

from orchestrator.errors import DeviceError, ProviderError, RelayTimeout
from orchestrator.providers.call_provider import build_call_config
from orchestrator.providers.events import CallEventType
from orchestrator.providers.relay import RelayCallProvider, RelayChannel, RelayDeviceAPI

from session_fakes import make_context


class Browser:
    """Records what the server sends and answers requests on demand."""

    def __init__(self):
        self.sent = []
        self.channel: RelayChannel | None = None
        self.auto_reply: dict | None = None

    async def send(self, payload: dict) -> None:
        self.sent.append(payload)
        if self.auto_reply is not None and "request_id" in payload:
            reply = {"type": "relay_response", "request_id": payload["request_id"], **self.auto_reply}
            asyncio.get_running_loop().call_soon(self.channel.resolve, reply)


def _wire(timeout_sec: float = 1.0):
    browser = Browser()
    channel = RelayChannel(browser.send, timeout_sec=timeout_sec)
    browser.channel = channel
    return browser, channel


@pytest.mark.asyncio
async def test_request_resolves_by_request_id():
    browser, channel = _wire()
    browser.auto_reply = {"ok": True, "value": 7}

    response = await channel.request({"type": "ping_request"})

    assert response["value"] == 7
    assert browser.sent[0]["request_id"] == response["request_id"]


@pytest.mark.asyncio
async def test_request_times_out_without_answer():
    _, channel = _wire(timeout_sec=0.01)

    with pytest.raises(RelayTimeout):
        await channel.request({"type": "device_request"})


@pytest.mark.asyncio
async def test_unknown_response_is_ignored():
    _, channel = _wire()

    assert channel.resolve({"request_id": "nope"}) is False


@pytest.mark.asyncio
async def test_close_fails_pending_requests():
    _, channel = _wire()

    pending = asyncio.create_task(channel.request({"type": "device_request"}))
    await asyncio.sleep(0)
    channel.close()

    with pytest.raises(RelayTimeout):
        await pending
    with pytest.raises(RelayTimeout):
        await channel.request({"type": "device_request"})


@pytest.mark.asyncio
async def test_provider_start_sends_call_config():
    browser, channel = _wire()
    browser.auto_reply = {"ok": True}
    provider = RelayCallProvider(channel)

    await provider.start(build_call_config(make_context()))

    command = browser.sent[0]
    assert command["type"] == "provider_command"
    assert command["command"] == "start"
    assert command["config"]["firstMessage"].startswith("Hi Ada")


@pytest.mark.asyncio
async def test_provider_start_rejected_raises_provider_error():
    browser, channel = _wire()
    browser.auto_reply = {"ok": False, "error": "invalid assistant"}
    provider = RelayCallProvider(channel)

    with pytest.raises(ProviderError) as exc_info:
        await provider.start(build_call_config(make_context()))

    assert exc_info.value.cause == "invalid assistant"


@pytest.mark.asyncio
async def test_dispatch_publishes_parsed_events_to_subscribers():
    _, channel = _wire()
    provider = RelayCallProvider(channel)
    received = []
    subscription = provider.subscribe(received.append)

    assert provider.dispatch("call-start") is True
    assert provider.dispatch("message", {"type": "transcript", "transcriptType": "partial", "transcript": "hel"}) is False
    assert provider.dispatch("message", {"type": "transcript", "transcriptType": "final", "role": "user", "transcript": "hello"}) is True
    subscription.close()
    provider.dispatch("call-end")

    assert [event.type for event in received] == [CallEventType.CALL_START, CallEventType.MESSAGE]


@pytest.mark.asyncio
async def test_device_api_over_relay():
    browser, channel = _wire()
    devices = RelayDeviceAPI(channel)

    browser.auto_reply = {"granted": True, "ok": True, "handle": "track-1"}
    assert await devices.request_permission("microphone") is True
    assert await devices.acquire("camera") == "track-1"

    browser.auto_reply = {"ok": False, "error": "NotReadableError"}
    with pytest.raises(DeviceError):
        await devices.acquire("camera")

    browser.auto_reply = None
    await devices.release("camera", "track-1")
    assert browser.sent[-1]["action"] == "release"


@pytest.mark.asyncio
async def test_permission_timeout_counts_as_denied():
    _, channel = _wire(timeout_sec=0.01)

    assert await RelayDeviceAPI(channel).request_permission("microphone") is False
