from __future__ import annotations

import logging

from orchestrator.attempts.gatekeeper import AttemptGatekeeper
from orchestrator.attempts.store import build_attempt_store
from orchestrator.scoring.service import FeedbackScorer, OpenAIFeedbackScorer, build_feedback_scorer

logger = logging.getLogger("orchestrator.deps")

_gatekeeper: AttemptGatekeeper | None = None
_session_scorer: FeedbackScorer | None = None
_service_scorer: OpenAIFeedbackScorer | None = None


def get_gatekeeper() -> AttemptGatekeeper:
    global _gatekeeper
    if _gatekeeper is None:
        store = build_attempt_store()
        logger.info("Attempt store initialized: %s", store.__class__.__name__)
        _gatekeeper = AttemptGatekeeper(store)
    return _gatekeeper


def get_session_scorer() -> FeedbackScorer:
    """Scorer used by the feedback pipeline (HTTP service or OpenAI)."""
    global _session_scorer
    if _session_scorer is None:
        _session_scorer = build_feedback_scorer()
    return _session_scorer


def get_service_scorer() -> OpenAIFeedbackScorer:
    """Scorer behind POST /api/ai-feedback; always talks to the model directly."""
    global _service_scorer
    if _service_scorer is None:
        _service_scorer = OpenAIFeedbackScorer()
    return _service_scorer
