import asyncio

import pytest

from orchestrator.devices.manager import CAMERA, MICROPHONE, DeviceManager
from orchestrator.errors import DeviceError
from orchestrator.session.components import NotificationEmitter

from session_fakes import FakeDeviceAPI


def _manager(api):
    sent = []

    async def _send(payload: dict):
        sent.append(payload)

    notifier = NotificationEmitter(send_fn=_send, session_id="d-1")
    return DeviceManager(api, notifier=notifier), notifier, sent


@pytest.mark.asyncio
async def test_toggle_camera_on_then_off():
    api = FakeDeviceAPI()
    manager, notifier, sent = _manager(api)

    state = await manager.toggle_camera()
    assert state.camera_on is True
    state = await manager.toggle_camera()
    assert state.camera_on is False

    await notifier.drain()
    assert [item["kind"] for item in sent] == ["camera_on", "camera_off"]
    assert api.released == [(CAMERA, "camera-handle")]


@pytest.mark.asyncio
async def test_failed_acquire_raises_and_keeps_device_off():
    api = FakeDeviceAPI(failing={MICROPHONE})
    manager, notifier, sent = _manager(api)

    with pytest.raises(DeviceError) as exc_info:
        await manager.toggle_mic()

    assert exc_info.value.device == MICROPHONE
    assert manager.state.mic_on is False
    await notifier.drain()
    assert sent[0]["kind"] == "device_error"


@pytest.mark.asyncio
async def test_permission_prompt_is_one_shot():
    api = FakeDeviceAPI(granted=True)
    manager, _, _ = _manager(api)

    assert await manager.ensure_microphone_permission() is True
    assert await manager.ensure_microphone_permission() is True
    assert api.permission_requests == 1


@pytest.mark.asyncio
async def test_permission_error_counts_as_denied():
    class _BrokenAPI(FakeDeviceAPI):
        async def request_permission(self, device: str) -> bool:
            raise DeviceError(device, "no prompt available")

    manager, _, _ = _manager(_BrokenAPI())

    assert await manager.ensure_microphone_permission() is False


@pytest.mark.asyncio
async def test_camera_and_mic_toggle_independently():
    manager, _, _ = _manager(FakeDeviceAPI())

    await asyncio.gather(manager.toggle_camera(), manager.toggle_mic())

    assert manager.state.to_dict() == {"camera_on": True, "mic_on": True, "muted": False}

    await manager.release_all()
    assert manager.state.to_dict() == {"camera_on": False, "mic_on": False, "muted": False}


@pytest.mark.asyncio
async def test_stop_camera_when_off_is_noop():
    api = FakeDeviceAPI()
    manager, _, _ = _manager(api)

    await manager.stop_camera()

    assert api.released == []


@pytest.mark.asyncio
async def test_release_all_frees_muted_mic():
    api = FakeDeviceAPI()
    manager, _, _ = _manager(api)
    await manager.toggle_mic()
    manager.set_muted(True)

    await manager.release_all()

    assert api.released == [(MICROPHONE, "microphone-handle")]
    assert manager.state.mic_on is False
    assert manager.state.muted is True
