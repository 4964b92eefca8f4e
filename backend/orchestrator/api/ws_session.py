from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import asyncio
import json
import logging
import os

from starlette.websockets import WebSocketState

from core.logger import log_event
from core.state import SessionState
from orchestrator.errors import SessionError
from orchestrator.session.components import StateBroadcaster
from orchestrator.session.machine import InterviewSession
from orchestrator.session.registry import session_registry

logger = logging.getLogger("ws_session")

MAX_WS_TEXT_BYTES = max(1024, int(os.getenv("WS_MAX_TEXT_BYTES", "65536")))
SESSION_GONE_CLOSE_CODE = 4410
SESSION_BUSY_CLOSE_CODE = 4409

router = APIRouter()


class SocketLink:
    """
    Outbound half of the browser connection. Created with the session so the
    relay has somewhere to send before the socket is attached.
    """

    def __init__(self):
        self.websocket: WebSocket | None = None
        self._send_lock = asyncio.Lock()

    def attach(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    def detach(self, websocket: WebSocket) -> None:
        if self.websocket is websocket:
            self.websocket = None

    async def send(self, payload: dict) -> None:
        websocket = self.websocket
        if websocket is None or websocket.client_state != WebSocketState.CONNECTED:
            logger.info("send skipped: no client | type=%s", payload.get("type"))
            return
        async with self._send_lock:
            await websocket.send_text(json.dumps(payload, default=str))


async def _run_command(session: InterviewSession, link: SocketLink, message: dict) -> None:
    command = str(message.get("command") or "").strip().lower()
    broadcaster = StateBroadcaster(send_fn=link.send)
    try:
        if command == "start":
            await session.start()
        elif command == "stop":
            await session.stop()
        elif command == "toggle_camera":
            await session.toggle_camera()
        elif command == "toggle_mic":
            await session.toggle_mic()
        elif command == "mute":
            await session.set_muted(bool(message.get("muted", True)))
        else:
            await link.send({"type": "error", "error": "unknown_command", "message": command})
            return
    except SessionError as exc:
        await link.send({"type": "error", **exc.to_dict()})
    await broadcaster.emit_state(session.snapshot())


async def handle_client_message(session: InterviewSession, bundle, link: SocketLink, message: dict, tasks: set) -> None:
    msg_type = str(message.get("type") or "")

    if msg_type == "provider_event":
        bundle.provider.dispatch(str(message.get("event") or ""), message.get("payload"))
        return

    if msg_type in {"relay_response", "device_response"}:
        bundle.channel.resolve(message)
        return

    if msg_type == "command":
        # Commands may wait on relay responses that arrive on this same socket,
        # so they never run inline with the receive loop
        task = asyncio.create_task(_run_command(session, link, message))
        tasks.add(task)
        task.add_done_callback(tasks.discard)
        return

    if msg_type == "ping":
        await link.send({"type": "pong"})
        return

    await link.send({"type": "error", "error": "unknown_message", "message": msg_type})


@router.websocket("/ws/sessions/{session_id}")
async def session_socket(websocket: WebSocket, session_id: str):
    entry = session_registry.get(session_id)
    if entry is None or entry.relay is None:
        await websocket.close(code=4404)
        return

    session: InterviewSession = entry.session
    bundle = entry.relay
    link: SocketLink = bundle.link

    # The relay of a finished connection cannot be revived; the client must create a new session
    if not entry.active or bundle.channel.closed or session.is_terminal:
        log_event("ws_session", "connect_rejected", session_id, state=session.state.value)
        await websocket.close(code=SESSION_GONE_CLOSE_CODE)
        return
    if link.websocket is not None:
        await websocket.close(code=SESSION_BUSY_CLOSE_CODE)
        return

    await websocket.accept()
    link.attach(websocket)
    log_event("ws_session", "connect", session_id, state=session.state.value)
    await link.send({"type": "session_state", **session.snapshot()})

    tasks: set[asyncio.Task] = set()
    try:
        while True:
            raw = await websocket.receive_text()
            session_registry.touch(session_id)
            if len(raw.encode("utf-8")) > MAX_WS_TEXT_BYTES:
                await link.send({"type": "error", "error": "message_too_large"})
                continue
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await link.send({"type": "error", "error": "invalid_json"})
                continue
            if not isinstance(message, dict):
                continue
            await handle_client_message(session, bundle, link, message, tasks)
    except WebSocketDisconnect:
        log_event("ws_session", "disconnect", session_id, state=session.state.value)
    finally:
        session_registry.mark_inactive(session_id)
        link.detach(websocket)
        # The browser owns the call; losing it ends the call
        if session.state in (SessionState.CONNECTING, SessionState.ACTIVE):
            await session.stop()
        bundle.channel.close()
        if tasks:
            await asyncio.gather(*list(tasks), return_exceptions=True)
        await session.close()
        session_registry.touch(session_id)
