from __future__ import annotations


class SessionError(Exception):
    code = "session_error"
    message = "Interview session error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "message": str(self)}


class PermissionDenied(SessionError):
    code = "permission_denied"
    message = "Microphone permission was denied. Allow microphone access and start a new session."


class ProviderError(SessionError):
    code = "provider_error"
    message = "The voice call provider reported an error. Start a new session to retry."

    def __init__(self, cause: object = None, message: str | None = None):
        self.cause = cause
        detail = message or (f"{self.message} ({cause})" if cause else None)
        super().__init__(detail)


class DuplicateAttempt(SessionError):
    code = "duplicate_attempt"
    message = "This interview has already been attempted with this email."

    def __init__(self, interview_id: str = "", candidate_email: str = ""):
        self.interview_id = interview_id
        self.candidate_email = candidate_email
        super().__init__()


class MissingContext(SessionError):
    code = "missing_context"
    message = "Interview context is missing required fields"

    def __init__(self, fields: list[str]):
        self.fields = list(fields)
        super().__init__(f"{self.message}: {', '.join(self.fields)}")


class FeedbackGenerationFailed(SessionError):
    code = "feedback_generation_failed"
    message = "Feedback could not be generated"


class PersistenceFailed(SessionError):
    code = "persistence_failed"
    message = "Attempt record could not be persisted"


class DeviceError(SessionError):
    code = "device_error"
    message = "Media device is unavailable"

    def __init__(self, device: str, message: str | None = None):
        self.device = device
        super().__init__(message or f"{self.message}: {device}")


class InvalidTransition(SessionError):
    code = "invalid_transition"
    message = "Operation is not allowed in the current session state"


class RelayTimeout(SessionError):
    code = "relay_timeout"
    message = "The browser did not answer the relay request in time"
