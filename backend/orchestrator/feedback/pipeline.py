from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from core.config import (
    FEEDBACK_BACKOFF_SEC,
    FEEDBACK_RETRIES,
    FEEDBACK_TIMEOUT_SEC,
    PERSIST_BACKOFF_SEC,
    PERSIST_RETRIES,
)
from core.logger import log_event
from core.state import SessionState
from orchestrator.attempts.gatekeeper import AttemptGatekeeper
from orchestrator.attempts.models import AttemptRecord
from orchestrator.errors import DuplicateAttempt, MissingContext, PersistenceFailed, SessionError
from orchestrator.scoring.models import FeedbackResult, fallback_feedback
from orchestrator.scoring.service import FeedbackScorer
from orchestrator.session.models import InterviewContext
from orchestrator.transcript.aggregator import TranscriptAggregator

logger = logging.getLogger("feedback_pipeline")

StageFn = Callable[[SessionState], None]
SleepFn = Callable[[float], Awaitable[None]]


class PipelineStatus(str, Enum):
    SAVED = "saved"
    DUPLICATE = "duplicate"
    MISSING_CONTEXT = "missing_context"
    PERSISTENCE_FAILED = "persistence_failed"


@dataclass
class PipelineOutcome:
    status: PipelineStatus
    feedback: FeedbackResult | None = None
    record: AttemptRecord | None = None
    scoring_attempts: int = 0
    error: SessionError | None = None

    @property
    def used_fallback(self) -> bool:
        return bool(self.feedback is not None and self.feedback.is_fallback)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "used_fallback": self.used_fallback,
            "scoring_attempts": self.scoring_attempts,
            "recommendation": self.feedback.recommendation.value if self.feedback else None,
            "error": self.error.code if self.error else None,
        }


class FeedbackPipeline:
    """
    Post-call job: validate identity, score the conversation, persist the attempt.

    trigger() is the only entry point. It sets the started flag before
    creating the task, so a second trigger (duplicate call-end, stop racing
    call-end) returns None without scheduling anything.
    """

    def __init__(
        self,
        scorer: FeedbackScorer,
        gatekeeper: AttemptGatekeeper,
        session_id: str = "",
        timeout_sec: float = FEEDBACK_TIMEOUT_SEC,
        retries: int = FEEDBACK_RETRIES,
        backoff_sec: float = FEEDBACK_BACKOFF_SEC,
        persist_retries: int = PERSIST_RETRIES,
        persist_backoff_sec: float = PERSIST_BACKOFF_SEC,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.scorer = scorer
        self.gatekeeper = gatekeeper
        self.session_id = session_id
        self.timeout_sec = timeout_sec
        self.retries = max(0, int(retries))
        self.backoff_sec = backoff_sec
        self.persist_retries = max(0, int(persist_retries))
        self.persist_backoff_sec = persist_backoff_sec
        self._sleep = sleep
        self._started = False
        self._task: asyncio.Task | None = None

    @property
    def started(self) -> bool:
        return self._started

    def trigger(
        self,
        context: InterviewContext,
        aggregator: TranscriptAggregator,
        duration_seconds: int = 0,
        on_stage: StageFn | None = None,
    ) -> asyncio.Task | None:
        if self._started:
            log_event("feedback_pipeline", "trigger_ignored", self.session_id, reason="already_started")
            return None
        self._started = True
        self._task = asyncio.get_running_loop().create_task(
            self._execute(context, aggregator, duration_seconds, on_stage or (lambda stage: None))
        )
        return self._task

    async def wait(self) -> PipelineOutcome | None:
        if self._task is None:
            return None
        return await asyncio.shield(self._task)

    async def _execute(
        self,
        context: InterviewContext,
        aggregator: TranscriptAggregator,
        duration_seconds: int,
        on_stage: StageFn,
    ) -> PipelineOutcome:
        missing = context.missing_identity_fields()
        if missing:
            error = MissingContext(missing)
            log_event("feedback_pipeline", "missing_context", self.session_id, level=logging.ERROR, fields=missing)
            return PipelineOutcome(status=PipelineStatus.MISSING_CONTEXT, error=error)

        transcript = aggregator.render_as_text()
        conversation = aggregator.to_conversation()
        log_event(
            "feedback_pipeline",
            "scoring_started",
            self.session_id,
            entries=len(conversation),
            transcript=transcript,
        )

        feedback, attempts = await self._score(conversation)
        on_stage(SessionState.FEEDBACK_PENDING)

        try:
            record = await self._persist(context, feedback, duration_seconds, transcript)
        except DuplicateAttempt as exc:
            # Another session for the same candidate won the insert; drop this feedback
            log_event(
                "feedback_pipeline",
                "duplicate_attempt_discarded",
                self.session_id,
                level=logging.WARNING,
                interview_id=context.interview_id,
            )
            on_stage(SessionState.FEEDBACK_SAVED)
            return PipelineOutcome(
                status=PipelineStatus.DUPLICATE,
                feedback=feedback,
                scoring_attempts=attempts,
                error=exc,
            )
        except PersistenceFailed as exc:
            log_event(
                "feedback_pipeline",
                "persistence_alert",
                self.session_id,
                level=logging.ERROR,
                interview_id=context.interview_id,
                err=str(exc),
            )
            return PipelineOutcome(
                status=PipelineStatus.PERSISTENCE_FAILED,
                feedback=feedback,
                scoring_attempts=attempts,
                error=exc,
            )

        on_stage(SessionState.FEEDBACK_SAVED)
        log_event(
            "feedback_pipeline",
            "attempt_saved",
            self.session_id,
            interview_id=context.interview_id,
            recommendation=feedback.recommendation.value,
            fallback=feedback.is_fallback,
        )
        return PipelineOutcome(
            status=PipelineStatus.SAVED,
            feedback=feedback,
            record=record,
            scoring_attempts=attempts,
        )

    async def _score(self, conversation: list[dict]) -> tuple[FeedbackResult, int]:
        last_error: Exception | None = None
        attempts = 0
        for attempt in range(self.retries + 1):
            attempts += 1
            try:
                feedback = await asyncio.wait_for(self.scorer.score(conversation), timeout=self.timeout_sec)
                return feedback, attempts
            except asyncio.TimeoutError as exc:
                last_error = exc
                logger.warning("feedback scoring timeout | session_id=%s attempt=%s", self.session_id, attempt + 1)
            except Exception as exc:
                last_error = exc
                logger.warning("feedback scoring failure | session_id=%s attempt=%s err=%s", self.session_id, attempt + 1, exc)

            if attempt < self.retries:
                await self._sleep(self.backoff_sec * (attempt + 1))

        log_event(
            "feedback_pipeline",
            "fallback_feedback",
            self.session_id,
            level=logging.WARNING,
            attempts=attempts,
            err=str(last_error),
        )
        return fallback_feedback(), attempts

    async def _persist(
        self,
        context: InterviewContext,
        feedback: FeedbackResult,
        duration_seconds: int,
        transcript: str,
    ) -> AttemptRecord:
        last_error: PersistenceFailed | None = None
        for attempt in range(self.persist_retries + 1):
            try:
                return await self.gatekeeper.record_attempt(
                    context.interview_id,
                    context.candidate_email,
                    feedback,
                    candidate_name=context.candidate_name,
                    accept_resume=context.accept_resume,
                    organization=context.organization,
                    resume_ref=context.resume_ref,
                    duration_seconds=duration_seconds,
                    transcript=transcript,
                )
            except DuplicateAttempt:
                raise
            except PersistenceFailed as exc:
                last_error = exc
            except Exception as exc:
                last_error = PersistenceFailed(str(exc))

            logger.warning("attempt persist failure | session_id=%s attempt=%s err=%s", self.session_id, attempt + 1, last_error)
            if attempt < self.persist_retries:
                await self._sleep(self.persist_backoff_sec * (attempt + 1))

        raise last_error or PersistenceFailed()
