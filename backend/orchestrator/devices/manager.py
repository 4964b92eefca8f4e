from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from orchestrator.errors import DeviceError
from orchestrator.session.components import NotificationEmitter

logger = logging.getLogger("device_manager")

CAMERA = "camera"
MICROPHONE = "microphone"


class DeviceAPI(Protocol):
    async def request_permission(self, device: str) -> bool:
        ...

    async def acquire(self, device: str) -> str:
        """Open a media stream and return its handle; raise DeviceError on failure."""
        ...

    async def release(self, device: str, handle: str) -> None:
        ...


@dataclass
class DeviceState:
    camera_on: bool = False
    mic_on: bool = False
    # Call-level mute; the acquired mic stream stays open while muted
    muted: bool = False

    def to_dict(self) -> dict:
        return {"camera_on": self.camera_on, "mic_on": self.mic_on, "muted": self.muted}


class DeviceManager:
    """
    Camera and microphone state, independent of the call lifecycle.
    Each device has its own lock so a slow camera never delays the mic,
    and nothing here touches the session lock.
    """

    def __init__(self, device_api: DeviceAPI, notifier: NotificationEmitter | None = None):
        self._api = device_api
        self._notifier = notifier or NotificationEmitter()
        self.state = DeviceState()
        self._handles: dict[str, str] = {}
        self._locks = {CAMERA: asyncio.Lock(), MICROPHONE: asyncio.Lock()}
        self._mic_permission: bool | None = None

    async def ensure_microphone_permission(self) -> bool:
        # Permission prompts are one-shot per session
        if self._mic_permission is not None:
            return self._mic_permission
        try:
            granted = bool(await self._api.request_permission(MICROPHONE))
        except DeviceError as exc:
            logger.warning("microphone permission request failed | err=%s", exc)
            granted = False
        self._mic_permission = granted
        return granted

    async def toggle_camera(self) -> DeviceState:
        async with self._locks[CAMERA]:
            if CAMERA in self._handles:
                await self._release(CAMERA)
            else:
                await self._acquire(CAMERA)
        return self.state

    async def toggle_mic(self) -> DeviceState:
        async with self._locks[MICROPHONE]:
            if MICROPHONE in self._handles:
                await self._release(MICROPHONE)
            else:
                await self._acquire(MICROPHONE)
        return self.state

    async def stop_camera(self) -> None:
        async with self._locks[CAMERA]:
            if CAMERA in self._handles:
                await self._release(CAMERA)

    async def release_all(self) -> None:
        await self.stop_camera()
        async with self._locks[MICROPHONE]:
            if MICROPHONE in self._handles:
                await self._release(MICROPHONE)

    def set_muted(self, muted: bool) -> None:
        self.state.muted = bool(muted)

    async def _acquire(self, device: str) -> None:
        try:
            handle = await self._api.acquire(device)
        except DeviceError:
            self._notifier.emit("device_error", f"Could not access {device}", level="error", device=device)
            raise
        except Exception as exc:
            self._notifier.emit("device_error", f"Could not access {device}", level="error", device=device)
            raise DeviceError(device, f"{device} access failed: {exc}") from exc

        self._handles[device] = str(handle or "")
        self._set_flag(device, True)
        self._notifier.emit(f"{self._short(device)}_on", f"{self._label(device)} turned on")

    async def _release(self, device: str) -> None:
        handle = self._handles.pop(device, "")
        # Flag flips first: a failed release still leaves the device off for the user
        self._set_flag(device, False)
        try:
            await self._api.release(device, handle)
        except Exception as exc:
            logger.warning("device release failed | device=%s err=%s", device, exc)
        self._notifier.emit(f"{self._short(device)}_off", f"{self._label(device)} turned off")

    def _set_flag(self, device: str, on: bool) -> None:
        if device == CAMERA:
            self.state.camera_on = on
        else:
            self.state.mic_on = on

    @staticmethod
    def _short(device: str) -> str:
        return "camera" if device == CAMERA else "mic"

    @staticmethod
    def _label(device: str) -> str:
        return "Camera" if device == CAMERA else "Mic"
