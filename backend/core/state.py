# backend/core/state.py

from enum import Enum


class SessionState(str, Enum):
    IDLE = "idle"
    REQUESTING_PERMISSION = "requesting_permission"
    CONNECTING = "connecting"
    ACTIVE = "active"
    ENDING = "ending"
    ENDED = "ended"
    FEEDBACK_PENDING = "feedback_pending"
    FEEDBACK_SAVED = "feedback_saved"
    FAILED = "failed"


# Forward order of the happy path. FAILED sits outside it.
STATE_ORDER = [
    SessionState.IDLE,
    SessionState.REQUESTING_PERMISSION,
    SessionState.CONNECTING,
    SessionState.ACTIVE,
    SessionState.ENDING,
    SessionState.ENDED,
    SessionState.FEEDBACK_PENDING,
    SessionState.FEEDBACK_SAVED,
]

TERMINAL_STATES = {SessionState.FEEDBACK_SAVED, SessionState.FAILED}


def is_forward(current: SessionState, target: SessionState) -> bool:
    if current in TERMINAL_STATES:
        return False
    if target == SessionState.FAILED:
        return True
    return STATE_ORDER.index(target) > STATE_ORDER.index(current)
