from pydantic import BaseModel, ConfigDict


class CreateSessionRequest(BaseModel):
    # camelCase keys from the web client pass through as extras
    model_config = ConfigDict(extra="allow")

    interview_id: str | None = None
    candidate_name: str | None = None
    candidate_email: str | None = None
    job_title: str | None = None
    job_description: str | None = None
    duration_minutes: int | None = None
    question_list: list[str | dict] | None = None
    accept_resume: bool | None = None
    resume_ref: str | None = None
    organization: str | None = None


class CreateSessionResponse(BaseModel):
    session_id: str
    state: str
    ws_path: str


class AttemptStatusResponse(BaseModel):
    interview_id: str
    candidate_email: str
    attempted: bool
