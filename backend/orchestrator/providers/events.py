from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from orchestrator.transcript.models import Role


class CallEventType(str, Enum):
    SPEECH_START = "speech-start"
    SPEECH_END = "speech-end"
    CALL_START = "call-start"
    CALL_END = "call-end"
    MESSAGE = "message"
    ERROR = "error"


@dataclass(frozen=True)
class CallEvent:
    type: CallEventType
    role: Role | None = None
    content: str = ""
    raw_sequence: int | None = None
    cause: object = None

    @classmethod
    def speech_start(cls) -> "CallEvent":
        return cls(CallEventType.SPEECH_START)

    @classmethod
    def speech_end(cls) -> "CallEvent":
        return cls(CallEventType.SPEECH_END)

    @classmethod
    def call_start(cls) -> "CallEvent":
        return cls(CallEventType.CALL_START)

    @classmethod
    def call_end(cls) -> "CallEvent":
        return cls(CallEventType.CALL_END)

    @classmethod
    def message(cls, role: Role, content: str, raw_sequence: int | None = None) -> "CallEvent":
        return cls(CallEventType.MESSAGE, role=role, content=content, raw_sequence=raw_sequence)

    @classmethod
    def error(cls, cause: object) -> "CallEvent":
        return cls(CallEventType.ERROR, cause=cause)


def parse_provider_event(name: str, payload: dict | None = None) -> CallEvent | None:
    """
    Convert a raw provider event into a CallEvent.

    Only final transcript messages are kept; partial transcripts,
    function calls and other message types return None.
    """
    try:
        event_type = CallEventType(str(name or "").strip().lower())
    except ValueError:
        return None

    data = payload if isinstance(payload, dict) else {}

    if event_type == CallEventType.MESSAGE:
        if str(data.get("type") or "") != "transcript":
            return None
        if str(data.get("transcriptType") or "final") != "final":
            return None
        content = str(data.get("transcript") or "").strip()
        if not content:
            return None
        raw_sequence = data.get("sequence")
        return CallEvent.message(
            role=Role.from_provider(data.get("role")),
            content=content,
            raw_sequence=int(raw_sequence) if isinstance(raw_sequence, int) else None,
        )

    if event_type == CallEventType.ERROR:
        cause = data.get("error") or data.get("message") or data or "unknown provider error"
        return CallEvent.error(cause)

    return CallEvent(event_type)
