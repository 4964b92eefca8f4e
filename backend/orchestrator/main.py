from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import asyncio
import logging
import os

from core.config import QA_MODE, SESSION_CLEANUP_INTERVAL_SEC, SESSION_CLEANUP_TTL_SEC
from core.logger import log_event
from orchestrator.api.deps import get_gatekeeper, get_service_scorer, get_session_scorer
from orchestrator.api.ws_session import SocketLink, router as session_ws_router
from orchestrator.errors import FeedbackGenerationFailed, SessionError
from orchestrator.schemas import AttemptStatusResponse, CreateSessionRequest, CreateSessionResponse
from orchestrator.scoring.models import FeedbackRequest
from orchestrator.session.factory import build_relay_session
from orchestrator.session.models import InterviewContext, normalize_email
from orchestrator.session.registry import session_registry

app = FastAPI(title="Interview Session Orchestrator")
logger = logging.getLogger("orchestrator.main")

_STATUS_BY_CODE = {
    "duplicate_attempt": 409,
    "invalid_transition": 409,
    "missing_context": 422,
    "permission_denied": 403,
    "device_error": 424,
    "relay_timeout": 408,
}


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    return [item.strip() for item in raw.split(",") if item.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_allowed_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

_session_cleanup_task: asyncio.Task | None = None


@app.exception_handler(SessionError)
async def session_error_handler(request: Request, exc: SessionError):
    return JSONResponse(status_code=_STATUS_BY_CODE.get(exc.code, 400), content=exc.to_dict())


@app.on_event("startup")
async def startup_handler():
    global _session_cleanup_task
    if QA_MODE:
        logger.info("[SYSTEM] QA mode enabled")

    async def _session_cleanup_loop():
        while True:
            await asyncio.sleep(SESSION_CLEANUP_INTERVAL_SEC)
            removed = session_registry.cleanup_inactive(SESSION_CLEANUP_TTL_SEC)
            if removed > 0:
                logger.info("[SYSTEM] cleaned inactive sessions=%s", removed)

    _session_cleanup_task = asyncio.create_task(_session_cleanup_loop())


@app.on_event("shutdown")
async def shutdown_handler():
    global _session_cleanup_task
    if _session_cleanup_task is not None:
        _session_cleanup_task.cancel()
        try:
            await _session_cleanup_task
        except asyncio.CancelledError:
            pass
        finally:
            _session_cleanup_task = None
    logger.info("[SYSTEM] shutdown complete")


@app.get("/healthz")
async def healthz():
    return {"status": "ok", "service": "orchestrator"}


@app.post("/api/sessions", response_model=CreateSessionResponse)
async def create_session(req: CreateSessionRequest):
    context = InterviewContext.from_dict(req.model_dump())
    missing = context.missing_identity_fields()
    if missing:
        # Still allowed: the pipeline refuses to score without identity
        logger.warning("session created with incomplete context | missing=%s", ",".join(missing))

    link = SocketLink()
    session, bundle = build_relay_session(
        context,
        send_fn=link.send,
        gatekeeper=get_gatekeeper(),
        scorer=get_session_scorer(),
    )
    bundle.link = link
    session_registry.register(session, bundle)
    log_event("api", "session_created", session.session_id, interview_id=context.interview_id)

    return CreateSessionResponse(
        session_id=session.session_id,
        state=session.state.value,
        ws_path=f"/ws/sessions/{session.session_id}",
    )


@app.get("/api/sessions/{session_id}")
async def get_session_snapshot(session_id: str):
    session = session_registry.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session.snapshot()


@app.get("/api/attempts/{interview_id}", response_model=AttemptStatusResponse)
async def get_attempt_status(interview_id: str, email: str):
    candidate_email = normalize_email(email)
    if not candidate_email:
        raise HTTPException(status_code=400, detail="email is required")
    attempted = await get_gatekeeper().check_attempted(interview_id, candidate_email)
    return AttemptStatusResponse(
        interview_id=interview_id,
        candidate_email=candidate_email,
        attempted=attempted,
    )


@app.post("/api/ai-feedback")
async def ai_feedback(req: FeedbackRequest):
    conversation = [turn.model_dump() for turn in req.conversation]
    if not conversation:
        return JSONResponse(status_code=400, content={"error": "Missing conversation data"})

    try:
        result = await get_service_scorer().score(conversation)
    except FeedbackGenerationFailed as exc:
        logger.error("ai-feedback failed | err=%s", exc)
        return JSONResponse(status_code=502, content={"error": "Failed to parse AI response"})

    return result.to_wire()


app.include_router(session_ws_router)
