from __future__ import annotations

import time
from dataclasses import dataclass, field

from orchestrator.scoring.models import FeedbackResult


@dataclass
class AttemptRecord:
    """One persisted attempt. Unique on (interview_id, candidate_email)."""
    interview_id: str
    candidate_email: str
    feedback: FeedbackResult
    candidate_name: str = ""
    accept_resume: bool = False
    organization: str | None = None
    resume_ref: str | None = None
    duration_seconds: int = 0
    transcript: str = ""
    created_at: float = field(default_factory=time.time)

    @property
    def key(self) -> tuple[str, str]:
        return (self.interview_id, self.candidate_email)

    def to_row(self) -> dict:
        return {
            "interview_id": self.interview_id,
            "candidate_email": self.candidate_email,
            "candidate_name": self.candidate_name,
            "feedback": self.feedback.to_wire(),
            "recommended": self.feedback.recommendation.value,
            "feedback_fallback": self.feedback.is_fallback,
            "accept_resume": self.accept_resume,
            "organization": self.organization,
            "resume_ref": self.resume_ref,
            "duration_seconds": self.duration_seconds,
            "transcript": self.transcript,
            "created_at": self.created_at,
        }
