from __future__ import annotations

import asyncio
import logging
import time
import uuid

from core.logger import log_event
from core.state import SessionState, TERMINAL_STATES, is_forward
from orchestrator.attempts.gatekeeper import AttemptGatekeeper
from orchestrator.devices.manager import DeviceManager, DeviceState
from orchestrator.errors import (
    DuplicateAttempt,
    InvalidTransition,
    PermissionDenied,
    ProviderError,
    SessionError,
)
from orchestrator.feedback.pipeline import FeedbackPipeline, PipelineOutcome, PipelineStatus
from orchestrator.providers.call_provider import CallProvider, Subscription, build_call_config
from orchestrator.providers.events import CallEvent, CallEventType
from orchestrator.scoring.service import FeedbackScorer
from orchestrator.session.components import NotificationEmitter
from orchestrator.session.models import InterviewContext
from orchestrator.session.timer import SessionTimer
from orchestrator.transcript.aggregator import TranscriptAggregator

logger = logging.getLogger("interview_session")


class InterviewSession:
    """
    Drives one candidate's voice interview from Idle to FeedbackSaved.

    The only component that calls the provider's start/stop/mute and the only
    trigger of the feedback pipeline. One instance per attempt: a session that
    reached Failed is never restarted, callers build a new one.

    Provider events are handled synchronously on the event loop, so two
    transitions of the same session never interleave. Suspension happens only
    in start() (attempt pre-check, permission prompt, provider start), in
    stop() (provider stop) and inside the pipeline task.
    """

    def __init__(
        self,
        context: InterviewContext,
        provider: CallProvider,
        gatekeeper: AttemptGatekeeper,
        scorer: FeedbackScorer,
        devices: DeviceManager,
        notifier: NotificationEmitter | None = None,
        timer: SessionTimer | None = None,
        pipeline: FeedbackPipeline | None = None,
        session_id: str | None = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.context = context
        self.provider = provider
        self.gatekeeper = gatekeeper
        self.devices = devices
        self.notifier = notifier or NotificationEmitter(session_id=self.session_id)
        self.timer = timer or SessionTimer(duration_minutes=context.duration_minutes)
        self.transcript = TranscriptAggregator()
        self.pipeline = pipeline or FeedbackPipeline(
            scorer=scorer,
            gatekeeper=gatekeeper,
            session_id=self.session_id,
        )

        self.state = SessionState.IDLE
        self.failure: SessionError | None = None
        self.outcome: PipelineOutcome | None = None
        self.assistant_speaking = False
        self.muted = False
        self.ended_by: str | None = None
        self.history: list[tuple[SessionState, float]] = [(SessionState.IDLE, time.time())]

        self._start_requested = False
        self._call_finished = False
        self._events_open = False
        self._started_notified = False
        self._subscription: Subscription | None = None
        self._pipeline_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

    # -------------------------
    # STATE
    # -------------------------

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def _transition(self, target: SessionState, reason: str = "") -> None:
        if not is_forward(self.state, target):
            raise InvalidTransition(f"{self.state.value} -> {target.value} is not allowed")

        previous = self.state
        self.state = target
        self.history.append((target, time.time()))
        log_event(
            "interview_session",
            "transition",
            self.session_id,
            from_state=previous.value,
            to_state=target.value,
            reason=reason,
        )
        if target in TERMINAL_STATES:
            self._close_events()

    def _fail(self, error: SessionError, notify: bool = True) -> None:
        if self.is_terminal:
            return
        self.failure = error
        self._close_events()
        self.timer.stop()
        self._transition(SessionState.FAILED, reason=error.code)
        if notify:
            self.notifier.emit(error.code, str(error), level="error")

    # -------------------------
    # COMMANDS
    # -------------------------

    async def start(self) -> SessionState:
        if self.state != SessionState.IDLE or self._start_requested:
            raise InvalidTransition("start() requires a fresh Idle session")
        self._start_requested = True

        interview_id, email = self.context.attempt_key
        if await self.gatekeeper.check_attempted(interview_id, email):
            self._fail(DuplicateAttempt(interview_id, email))
            return self.state

        self._transition(SessionState.REQUESTING_PERMISSION, reason="start")
        granted = await self.devices.ensure_microphone_permission()
        if self.is_terminal:
            return self.state
        if not granted:
            self._fail(PermissionDenied())
            return self.state

        self._transition(SessionState.CONNECTING, reason="permission_granted")
        # Subscribe before start so an early call-start is not missed
        self._subscription = self.provider.subscribe(self._on_provider_event)
        self._events_open = True

        try:
            await self.provider.start(build_call_config(self.context))
        except ProviderError as exc:
            self._on_provider_failure(exc)
        except Exception as exc:
            self._on_provider_failure(ProviderError(cause=exc))

        return self.state

    async def stop(self) -> bool:
        """User-initiated end. Same single-execution path as a provider call-end."""
        if self.state not in (SessionState.CONNECTING, SessionState.ACTIVE):
            log_event("interview_session", "stop_ignored", self.session_id, state=self.state.value)
            return False

        # Synchronous: no provider event is processed after this point
        self._close_events()
        self._finish_call(reason="user_stop")
        self._spawn(self.devices.release_all())

        try:
            await self.provider.stop()
        except Exception as exc:
            logger.warning("provider stop failed | session_id=%s err=%s", self.session_id, exc)
        self.notifier.emit("call_ended", "Call ended")
        return True

    async def set_muted(self, muted: bool) -> bool:
        if self.state not in (SessionState.CONNECTING, SessionState.ACTIVE):
            return False
        self.muted = bool(muted)
        self.devices.set_muted(self.muted)
        await self.provider.mute(self.muted)
        return True

    async def toggle_camera(self) -> DeviceState:
        return await self.devices.toggle_camera()

    async def toggle_mic(self) -> DeviceState:
        return await self.devices.toggle_mic()

    async def wait_for_feedback(self) -> PipelineOutcome | None:
        if self._pipeline_task is None:
            return None
        try:
            return await asyncio.shield(self._pipeline_task)
        except Exception:
            return self.outcome

    async def close(self) -> None:
        """Release everything the session holds. The pipeline is awaited, never cancelled."""
        self._close_events()
        self.timer.stop()
        if self._pipeline_task is not None:
            await self.wait_for_feedback()
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        await self.notifier.drain()

    # -------------------------
    # PROVIDER EVENTS
    # -------------------------

    def _on_provider_event(self, event: CallEvent) -> None:
        if not self._events_open:
            logger.debug("event dropped after close | session_id=%s type=%s", self.session_id, event.type.value)
            return

        if event.type == CallEventType.SPEECH_START:
            self.assistant_speaking = True
        elif event.type == CallEventType.SPEECH_END:
            self.assistant_speaking = False
        elif event.type == CallEventType.CALL_START:
            self._on_call_start()
        elif event.type == CallEventType.MESSAGE:
            self.transcript.ingest(event)
        elif event.type == CallEventType.CALL_END:
            self._close_events()
            self._finish_call(reason="provider_call_end")
            self._spawn(self.devices.stop_camera())
        elif event.type == CallEventType.ERROR:
            self._on_provider_failure(ProviderError(cause=event.cause))

    def _on_call_start(self) -> None:
        if self.state != SessionState.CONNECTING:
            return
        self._transition(SessionState.ACTIVE, reason="call_start")
        self.timer.start()
        if not self._started_notified:
            self._started_notified = True
            self.notifier.emit("session_started", "Your interview has been started! All the best")

    def _on_provider_failure(self, error: ProviderError) -> None:
        if self.is_terminal or self._call_finished:
            return
        log_event("interview_session", "provider_error", self.session_id, level=logging.ERROR, cause=str(error.cause))
        self._fail(error)
        self._spawn(self._stop_provider_quietly())
        self._spawn(self.devices.release_all())

    def _finish_call(self, reason: str) -> None:
        if self._call_finished:
            return
        if self.state not in (SessionState.CONNECTING, SessionState.ACTIVE):
            return
        self._call_finished = True
        self.ended_by = reason

        self._transition(SessionState.ENDING, reason=reason)
        self.timer.stop()
        self.transcript.freeze()
        self._transition(SessionState.ENDED, reason=reason)
        self.notifier.emit("session_ended", "Your interview has ended")

        self._pipeline_task = self.pipeline.trigger(
            self.context,
            self.transcript,
            duration_seconds=int(self.timer.elapsed_seconds()),
            on_stage=self._on_pipeline_stage,
        )
        if self._pipeline_task is not None:
            self._pipeline_task.add_done_callback(self._on_pipeline_done)

    # -------------------------
    # PIPELINE
    # -------------------------

    def _on_pipeline_stage(self, stage: SessionState) -> None:
        if self.is_terminal:
            return
        self._transition(stage, reason="pipeline")
        if stage == SessionState.FEEDBACK_SAVED:
            self.notifier.emit("feedback_saved", "Your feedback will be ready shortly")

    def _on_pipeline_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            log_event("interview_session", "pipeline_cancelled", self.session_id, level=logging.ERROR)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("feedback pipeline crashed | session_id=%s err=%s", self.session_id, exc, exc_info=exc)
            self._fail(exc if isinstance(exc, SessionError) else SessionError(str(exc)), notify=False)
            return

        self.outcome = task.result()
        if self.outcome.status in (PipelineStatus.MISSING_CONTEXT, PipelineStatus.PERSISTENCE_FAILED):
            # Candidate already finished the call; this is an operator alert, not a user error
            self._fail(self.outcome.error or SessionError(self.outcome.status.value), notify=False)

    # -------------------------
    # HOUSEKEEPING
    # -------------------------

    def _close_events(self) -> None:
        self._events_open = False
        if self._subscription is not None:
            self._subscription.close()

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _stop_provider_quietly(self) -> None:
        try:
            await self.provider.stop()
        except Exception as exc:
            logger.warning("provider stop after error failed | session_id=%s err=%s", self.session_id, exc)

    def snapshot(self) -> dict:
        return {
            "session_id": self.session_id,
            "interview_id": self.context.interview_id,
            "state": self.state.value,
            "failure": self.failure.to_dict() if self.failure else None,
            "assistant_speaking": self.assistant_speaking,
            "muted": self.muted,
            "ended_by": self.ended_by,
            "devices": self.devices.state.to_dict(),
            "timer": self.timer.snapshot(),
            "transcript": [entry.to_dict() for entry in self.transcript.snapshot()],
            "outcome": self.outcome.to_dict() if self.outcome else None,
        }
