from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Awaitable, Callable

from core.config import RELAY_REQUEST_TIMEOUT_SEC
from orchestrator.errors import DeviceError, ProviderError, RelayTimeout
from orchestrator.providers.call_provider import CallConfig, EventFanout, EventHandler, Subscription
from orchestrator.providers.events import parse_provider_event

logger = logging.getLogger("relay")

SendFn = Callable[[dict], Awaitable[None]]


class RelayChannel:
    """
    Request/response correlation over the browser websocket.

    The browser owns the provider SDK and the media devices; the server
    sends it commands and waits for `relay_response` messages carrying the
    same request_id.
    """

    def __init__(self, send_fn: SendFn, timeout_sec: float = RELAY_REQUEST_TIMEOUT_SEC):
        self._send_fn = send_fn
        self._timeout_sec = timeout_sec
        self._pending: dict[str, asyncio.Future] = {}
        self.closed = False

    async def send(self, payload: dict) -> None:
        if self.closed:
            return
        await self._send_fn(payload)

    async def request(self, payload: dict) -> dict:
        if self.closed:
            raise RelayTimeout("relay channel is closed")

        request_id = str(uuid.uuid4())
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._send_fn({**payload, "request_id": request_id})
            return await asyncio.wait_for(future, timeout=self._timeout_sec)
        except asyncio.TimeoutError as exc:
            logger.warning("relay request timeout | type=%s request_id=%s", payload.get("type"), request_id)
            raise RelayTimeout() from exc
        finally:
            self._pending.pop(request_id, None)

    def resolve(self, message: dict) -> bool:
        request_id = str((message or {}).get("request_id") or "")
        future = self._pending.get(request_id)
        if future is None or future.done():
            logger.info("relay response without pending request | request_id=%s", request_id)
            return False
        future.set_result(dict(message))
        return True

    def close(self) -> None:
        self.closed = True
        for future in self._pending.values():
            if not future.done():
                future.set_exception(RelayTimeout("relay channel closed"))
        self._pending.clear()


class RelayCallProvider:
    """Call Provider adapter whose transport is the browser-side voice SDK."""

    def __init__(self, channel: RelayChannel):
        self._channel = channel
        self._fanout = EventFanout()

    async def start(self, config: CallConfig) -> None:
        try:
            response = await self._channel.request({
                "type": "provider_command",
                "command": "start",
                "config": config.to_provider_payload(),
            })
        except RelayTimeout as exc:
            raise ProviderError(cause="start timed out") from exc

        if not bool(response.get("ok")):
            raise ProviderError(cause=response.get("error") or "start rejected")

    async def stop(self) -> None:
        await self._channel.send({"type": "provider_command", "command": "stop"})

    async def mute(self, muted: bool) -> None:
        await self._channel.send({"type": "provider_command", "command": "mute", "muted": bool(muted)})

    def subscribe(self, handler: EventHandler) -> Subscription:
        return self._fanout.subscribe(handler)

    def dispatch(self, name: str, payload: dict | None = None) -> bool:
        event = parse_provider_event(name, payload)
        if event is None:
            return False
        self._fanout.publish(event)
        return True


class RelayDeviceAPI:
    def __init__(self, channel: RelayChannel):
        self._channel = channel

    async def request_permission(self, device: str) -> bool:
        try:
            response = await self._channel.request({
                "type": "device_request",
                "action": "permission",
                "device": device,
            })
        except RelayTimeout:
            return False
        return bool(response.get("granted"))

    async def acquire(self, device: str) -> str:
        try:
            response = await self._channel.request({
                "type": "device_request",
                "action": "acquire",
                "device": device,
            })
        except RelayTimeout as exc:
            raise DeviceError(device, f"{device} did not respond") from exc

        if not bool(response.get("ok")):
            raise DeviceError(device, str(response.get("error") or f"{device} unavailable"))
        return str(response.get("handle") or device)

    async def release(self, device: str, handle: str) -> None:
        await self._channel.send({
            "type": "device_request",
            "action": "release",
            "device": device,
            "handle": handle,
        })
