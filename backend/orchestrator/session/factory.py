from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass

from orchestrator.attempts.gatekeeper import AttemptGatekeeper
from orchestrator.devices.manager import DeviceManager
from orchestrator.providers.relay import RelayCallProvider, RelayChannel, RelayDeviceAPI, SendFn
from orchestrator.scoring.service import FeedbackScorer
from orchestrator.session.components import NotificationEmitter
from orchestrator.session.machine import InterviewSession
from orchestrator.session.models import InterviewContext
from orchestrator.session.timer import SessionTimer, format_elapsed

logger = logging.getLogger("session_factory")


@dataclass
class RelayBundle:
    channel: RelayChannel
    provider: RelayCallProvider
    send_fn: SendFn
    link: object = None


def _log_tick_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("timer push failed | err=%s", exc)


def build_relay_session(
    context: InterviewContext,
    send_fn: SendFn,
    gatekeeper: AttemptGatekeeper,
    scorer: FeedbackScorer,
    session_id: str | None = None,
) -> tuple[InterviewSession, RelayBundle]:
    """
    Wire one session to a browser connection: provider and devices are
    relayed over the same channel. Every collaborator is built per session.
    """
    session_id = session_id or str(uuid.uuid4())
    channel = RelayChannel(send_fn)
    provider = RelayCallProvider(channel)
    notifier = NotificationEmitter(send_fn=send_fn, session_id=session_id)
    devices = DeviceManager(RelayDeviceAPI(channel), notifier=notifier)

    def _on_tick(elapsed: int) -> None:
        payload = {
            "type": "timer",
            "session_id": session_id,
            "elapsed_seconds": elapsed,
            "elapsed_display": format_elapsed(elapsed),
        }
        task = asyncio.get_running_loop().create_task(send_fn(payload))
        task.add_done_callback(_log_tick_failure)

    session = InterviewSession(
        context=context,
        provider=provider,
        gatekeeper=gatekeeper,
        scorer=scorer,
        devices=devices,
        notifier=notifier,
        timer=SessionTimer(duration_minutes=context.duration_minutes, on_tick=_on_tick),
        session_id=session_id,
    )
    return session, RelayBundle(channel=channel, provider=provider, send_fn=send_fn)
