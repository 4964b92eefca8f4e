from __future__ import annotations

from dataclasses import dataclass, field


def _pick(data: dict, *keys, default=None):
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return default


def normalize_email(email: str | None) -> str:
    return str(email or "").strip().lower()


@dataclass(frozen=True)
class InterviewContext:
    """
    Configuration captured when a session is created.
    Frozen: nothing may change it once the session exists.
    """
    interview_id: str
    candidate_name: str
    candidate_email: str
    job_title: str = ""
    job_description: str = ""
    duration_minutes: int = 0
    question_list: tuple[str, ...] = field(default_factory=tuple)
    accept_resume: bool = False
    resume_ref: str | None = None
    organization: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "InterviewContext":
        """Accepts both snake_case and the camelCase keys the web client sends."""
        raw_questions = _pick(data, "question_list", "questionList", "interviewData", default=[]) or []
        questions = []
        for item in raw_questions:
            if isinstance(item, dict):
                question = str(item.get("question") or "").strip()
            else:
                question = str(item or "").strip()
            if question:
                questions.append(question)

        try:
            duration = int(_pick(data, "duration_minutes", "durationMinutes", "interviewDuration", default=0) or 0)
        except (TypeError, ValueError):
            duration = 0

        return cls(
            interview_id=str(_pick(data, "interview_id", "interviewId", "interviewID", default="")).strip(),
            candidate_name=str(_pick(data, "candidate_name", "candidateName", "userName", default="")).strip(),
            candidate_email=normalize_email(_pick(data, "candidate_email", "candidateEmail", "userEmail", default="")),
            job_title=str(_pick(data, "job_title", "jobTitle", default="")).strip(),
            job_description=str(_pick(data, "job_description", "jobDescription", "jobPosition", default="")).strip(),
            duration_minutes=max(0, duration),
            question_list=tuple(questions),
            accept_resume=bool(_pick(data, "accept_resume", "acceptResume", default=False)),
            resume_ref=_pick(data, "resume_ref", "resumeRef", "resumeURL"),
            organization=_pick(data, "organization"),
        )

    def missing_identity_fields(self) -> list[str]:
        missing = []
        if not str(self.candidate_name or "").strip():
            missing.append("candidate_name")
        if not normalize_email(self.candidate_email):
            missing.append("candidate_email")
        if not str(self.interview_id or "").strip():
            missing.append("interview_id")
        return missing

    @property
    def attempt_key(self) -> tuple[str, str]:
        return (str(self.interview_id).strip(), normalize_email(self.candidate_email))
