from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable


SendFn = Callable[[dict], Awaitable[None]]

logger = logging.getLogger("session_components")


async def _discard(payload: dict) -> None:
    return


@dataclass
class NotificationEmitter:
    """
    User-facing notices (the toasts of the web client).
    emit() is synchronous for callers; delivery runs as a task so state
    transitions never wait on the client socket.
    """
    send_fn: SendFn = _discard
    session_id: str = ""
    _pending: set = field(default_factory=set)

    def emit(self, kind: str, message: str, level: str = "info", **fields) -> None:
        payload = {
            "type": "notification",
            "session_id": self.session_id,
            "kind": kind,
            "level": level,
            "message": message,
            "ts": time.time(),
        }
        payload.update(fields)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._deliver(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, payload: dict) -> None:
        try:
            await self.send_fn(payload)
        except Exception as exc:
            logger.warning("notification delivery failed | kind=%s err=%s", payload.get("kind"), exc)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


@dataclass
class StateBroadcaster:
    send_fn: SendFn = _discard

    async def emit_state(self, snapshot: dict) -> None:
        await self.send_fn({"type": "session_state", **snapshot})
