from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Protocol

from core.config import (
    CALL_MODEL,
    CALL_MODEL_PROVIDER,
    CALL_VOICE_ID,
    CALL_VOICE_PROVIDER,
    TRANSCRIBER_LANGUAGE,
    TRANSCRIBER_MODEL,
    TRANSCRIBER_PROVIDER,
)
from orchestrator.providers.events import CallEvent
from orchestrator.providers.prompts import build_interviewer_prompt
from orchestrator.session.models import InterviewContext

logger = logging.getLogger("call_provider")

EventHandler = Callable[[CallEvent], None]

END_CALL_PHRASES = ("goodbye", "bye", "end call", "hang up")
END_CALL_MESSAGE = "Thanks for chatting! Hope to see you crushing projects soon!"


@dataclass
class CallConfig:
    system_prompt: str
    first_message: str
    voice: dict = field(default_factory=dict)
    transcriber: dict = field(default_factory=dict)
    model: dict = field(default_factory=dict)
    end_call_message: str = END_CALL_MESSAGE
    end_phrases: tuple[str, ...] = END_CALL_PHRASES

    def to_provider_payload(self) -> dict:
        model = dict(self.model)
        model["messages"] = [{"role": "system", "content": self.system_prompt}]
        return {
            "model": model,
            "voice": dict(self.voice),
            "transcriber": dict(self.transcriber),
            "firstMessage": self.first_message,
            "endCallMessage": self.end_call_message,
            "endCallPhrases": list(self.end_phrases),
        }


def build_call_config(context: InterviewContext) -> CallConfig:
    job = context.job_description or context.job_title or "this position"
    return CallConfig(
        system_prompt=build_interviewer_prompt(
            job_position=job,
            questions=list(context.question_list),
        ),
        first_message=f"Hi {context.candidate_name}, how are you? Ready for your interview on {job}?",
        voice={"provider": CALL_VOICE_PROVIDER, "voiceId": CALL_VOICE_ID},
        transcriber={
            "provider": TRANSCRIBER_PROVIDER,
            "model": TRANSCRIBER_MODEL,
            "language": TRANSCRIBER_LANGUAGE,
        },
        model={"provider": CALL_MODEL_PROVIDER, "model": CALL_MODEL},
    )


class Subscription:
    """Handle to one attached event handler; close() detaches it exactly once."""

    def __init__(self, detach: Callable[[], None]):
        self._detach = detach
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._detach()


class CallProvider(Protocol):
    async def start(self, config: CallConfig) -> None:
        ...

    async def stop(self) -> None:
        ...

    async def mute(self, muted: bool) -> None:
        ...

    def subscribe(self, handler: EventHandler) -> Subscription:
        ...


class EventFanout:
    """Handler bookkeeping shared by provider adapters."""

    def __init__(self):
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Subscription:
        self._handlers.append(handler)

        def _detach() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return Subscription(_detach)

    def publish(self, event: CallEvent) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as exc:
                logger.error("call event handler failed | event=%s err=%s", event.type.value, exc, exc_info=True)

    @property
    def handler_count(self) -> int:
        return len(self._handlers)
