import json
import logging

import pytest

from core.logger import log_event
from core.state import SessionState, is_forward


def test_log_event_redacts_free_text(caplog: pytest.LogCaptureFixture):
    with caplog.at_level(logging.INFO, logger="interview_events"):
        log_event(
            "feedback_pipeline",
            "scoring_started",
            "s-1",
            transcript="Candidate: my salary is 100k",
            entries=2,
            state=SessionState.ENDED,
        )

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["transcript"] == {"redacted": True, "length": len("Candidate: my salary is 100k")}
    assert payload["entries"] == 2
    assert payload["state"] == "ended"
    assert payload["session_id"] == "s-1"


def test_log_event_honours_level(caplog: pytest.LogCaptureFixture):
    with caplog.at_level(logging.INFO, logger="interview_events"):
        log_event("feedback_pipeline", "persistence_alert", "s-2", level=logging.ERROR)

    assert caplog.records[-1].levelno == logging.ERROR


def test_states_only_move_forward():
    assert is_forward(SessionState.IDLE, SessionState.REQUESTING_PERMISSION)
    assert is_forward(SessionState.ACTIVE, SessionState.FAILED)
    assert not is_forward(SessionState.ENDED, SessionState.ACTIVE)
    assert not is_forward(SessionState.FAILED, SessionState.IDLE)
    assert not is_forward(SessionState.FEEDBACK_SAVED, SessionState.FAILED)
