from __future__ import annotations

import logging

from core.logger import log_event
from orchestrator.attempts.models import AttemptRecord
from orchestrator.attempts.store import AttemptStore
from orchestrator.errors import PersistenceFailed
from orchestrator.scoring.models import FeedbackResult
from orchestrator.session.models import normalize_email

logger = logging.getLogger("attempt_gatekeeper")


class AttemptGatekeeper:
    """
    One completed attempt per (interview, candidate email).

    check_attempted() is a pre-check that saves running a whole call for a
    candidate who already finished. It is not a reservation: two sessions
    can both pass it, and the store's unique key settles the race inside
    record_attempt().
    """

    def __init__(self, store: AttemptStore):
        self.store = store

    async def check_attempted(self, interview_id: str, candidate_email: str) -> bool:
        email = normalize_email(candidate_email)
        try:
            attempted = await self.store.exists(str(interview_id).strip(), email)
        except PersistenceFailed as exc:
            # Store unreachable: let the call run, the insert constraint still holds
            log_event("gatekeeper", "precheck_unavailable", "", level=logging.WARNING, interview_id=interview_id, err=str(exc))
            return False
        return bool(attempted)

    async def record_attempt(
        self,
        interview_id: str,
        candidate_email: str,
        feedback: FeedbackResult,
        candidate_name: str = "",
        accept_resume: bool = False,
        organization: str | None = None,
        resume_ref: str | None = None,
        duration_seconds: int = 0,
        transcript: str = "",
    ) -> AttemptRecord:
        """Single insert. Raises DuplicateAttempt or PersistenceFailed."""
        record = AttemptRecord(
            interview_id=str(interview_id).strip(),
            candidate_email=normalize_email(candidate_email),
            feedback=feedback,
            candidate_name=candidate_name,
            accept_resume=accept_resume,
            organization=organization,
            resume_ref=resume_ref,
            duration_seconds=max(0, int(duration_seconds or 0)),
            transcript=transcript,
        )
        await self.store.insert(record.to_row())
        logger.info("Attempt recorded | interview_id=%s", record.interview_id)
        return record
