import asyncio

from orchestrator.attempts.gatekeeper import AttemptGatekeeper
from orchestrator.attempts.store import LocalAttemptStore
from orchestrator.devices.manager import DeviceManager
from orchestrator.errors import DeviceError, PersistenceFailed
from orchestrator.feedback.pipeline import FeedbackPipeline
from orchestrator.providers.call_provider import EventFanout
from orchestrator.providers.events import CallEvent
from orchestrator.scoring.models import FeedbackResult, Recommendation
from orchestrator.session.components import NotificationEmitter
from orchestrator.session.machine import InterviewSession
from orchestrator.session.models import InterviewContext
from orchestrator.transcript.models import Role


def make_context(**overrides) -> InterviewContext:
    data = {
        "interview_id": "int-1",
        "candidate_name": "Ada",
        "candidate_email": "ada@example.com",
        "job_title": "Backend Engineer",
        "job_description": "Backend Engineer",
        "duration_minutes": 15,
        "question_list": ("Tell me about yourself", "Design a rate limiter"),
    }
    data.update(overrides)
    return InterviewContext(**data)


def make_feedback(recommendation: Recommendation = Recommendation.YES) -> FeedbackResult:
    return FeedbackResult(
        ratings={"relevance": 8, "technicalDepth": 7, "clarity": 9, "communicationQuality": 8},
        summary="Solid answers.",
        recommendation=recommendation,
        recommendation_message="Move forward.",
        confidence=80,
    )


async def no_sleep(seconds: float) -> None:
    return None


class FakeProvider:
    def __init__(self, start_error: Exception | None = None):
        self.fanout = EventFanout()
        self.start_error = start_error
        self.configs = []
        self.stop_calls = 0
        self.mute_calls = []

    async def start(self, config) -> None:
        self.configs.append(config)
        if self.start_error is not None:
            raise self.start_error

    async def stop(self) -> None:
        self.stop_calls += 1

    async def mute(self, muted: bool) -> None:
        self.mute_calls.append(muted)

    def subscribe(self, handler):
        return self.fanout.subscribe(handler)

    @property
    def started(self) -> bool:
        return bool(self.configs)

    def emit(self, event: CallEvent) -> None:
        self.fanout.publish(event)

    def say(self, role: Role, content: str) -> None:
        self.emit(CallEvent.message(role, content))


class FakeDeviceAPI:
    def __init__(self, granted: bool = True, failing: set | None = None):
        self.granted = granted
        self.failing = set(failing or ())
        self.permission_requests = 0
        self.acquired = []
        self.released = []

    async def request_permission(self, device: str) -> bool:
        self.permission_requests += 1
        return self.granted

    async def acquire(self, device: str) -> str:
        if device in self.failing:
            raise DeviceError(device)
        self.acquired.append(device)
        return f"{device}-handle"

    async def release(self, device: str, handle: str) -> None:
        self.released.append((device, handle))


class CountingScorer:
    """Plays back results in order; an Exception item is raised instead of returned."""

    def __init__(self, *results):
        self.results = list(results) or [make_feedback()]
        self.calls = 0
        self.conversations = []
        self.gate: asyncio.Event | None = None

    async def score(self, conversation: list[dict]) -> FeedbackResult:
        self.calls += 1
        self.conversations.append(list(conversation))
        if self.gate is not None:
            await self.gate.wait()
        item = self.results[min(self.calls, len(self.results)) - 1]
        if isinstance(item, Exception):
            raise item
        return item


class FlakyStore(LocalAttemptStore):
    def __init__(self, insert_failures: int = 0, lookup_fails: bool = False):
        super().__init__()
        self.insert_failures = insert_failures
        self.lookup_fails = lookup_fails
        self.insert_calls = 0

    async def exists(self, interview_id: str, candidate_email: str) -> bool:
        if self.lookup_fails:
            raise PersistenceFailed("lookup unavailable")
        return await super().exists(interview_id, candidate_email)

    async def insert(self, row: dict) -> dict:
        self.insert_calls += 1
        if self.insert_failures > 0:
            self.insert_failures -= 1
            raise PersistenceFailed("insert unavailable")
        return await super().insert(row)


class Harness:
    """One session wired to fakes; every collaborator is reachable for assertions."""

    def __init__(
        self,
        context: InterviewContext | None = None,
        store: LocalAttemptStore | None = None,
        scorer: CountingScorer | None = None,
        provider: FakeProvider | None = None,
        device_api: FakeDeviceAPI | None = None,
        session_id: str = "test-session",
    ):
        self.context = context or make_context()
        self.store = store if store is not None else LocalAttemptStore()
        self.gatekeeper = AttemptGatekeeper(self.store)
        self.scorer = scorer or CountingScorer()
        self.provider = provider or FakeProvider()
        self.device_api = device_api or FakeDeviceAPI()
        self.sent = []
        self.notifier = NotificationEmitter(send_fn=self._send, session_id=session_id)
        self.session = InterviewSession(
            context=self.context,
            provider=self.provider,
            gatekeeper=self.gatekeeper,
            scorer=self.scorer,
            devices=DeviceManager(self.device_api, notifier=self.notifier),
            notifier=self.notifier,
            pipeline=FeedbackPipeline(
                scorer=self.scorer,
                gatekeeper=self.gatekeeper,
                session_id=session_id,
                timeout_sec=2.0,
                sleep=no_sleep,
            ),
            session_id=session_id,
        )

    async def _send(self, payload: dict) -> None:
        self.sent.append(payload)

    def notification_kinds(self) -> list[str]:
        return [item["kind"] for item in self.sent if item.get("type") == "notification"]

    async def run_to_active(self) -> None:
        await self.session.start()
        self.provider.emit(CallEvent.call_start())
