import logging

from orchestrator.providers.events import CallEvent, CallEventType
from orchestrator.transcript.models import ConversationLog, Role, TranscriptEntry

logger = logging.getLogger("transcript_aggregator")


class TranscriptAggregator:
    """
    Ordered, append-only conversation log for one session.

    Contract of ingest():
    - only MESSAGE events are accepted
    - an event whose (role, content) equals the last entry is dropped,
      since the provider may redeliver the same final transcript
    - entries are numbered in arrival order
    - after freeze() every ingest is a no-op
    """

    def __init__(self):
        self._entries: list[TranscriptEntry] = []
        self._next_sequence = 0
        self._frozen = False
        self.duplicates_dropped = 0

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._entries)

    def ingest(self, event: CallEvent) -> TranscriptEntry | None:
        if self._frozen:
            logger.debug("ingest ignored: log frozen")
            return None
        if event.type != CallEventType.MESSAGE or event.role is None:
            return None

        content = str(event.content or "").strip()
        if not content:
            return None

        if self._entries:
            last = self._entries[-1]
            if last.role == event.role and last.content == content:
                self.duplicates_dropped += 1
                logger.info("Duplicate transcript ignored | role=%s seq=%s", event.role.value, last.sequence)
                return None

        entry = TranscriptEntry(role=event.role, content=content, sequence=self._next_sequence)
        self._next_sequence += 1
        self._entries.append(entry)
        return entry

    def freeze(self) -> None:
        self._frozen = True

    def snapshot(self) -> ConversationLog:
        return tuple(self._entries)

    def render_as_text(self) -> str:
        return "\n".join(f"{entry.role.label}: {entry.content}" for entry in self._entries)

    def to_conversation(self) -> list[dict]:
        """Payload shape of the scoring request: [{role, content}]."""
        return [
            {"role": entry.role.wire_role, "content": entry.content}
            for entry in self._entries
        ]

    def counts(self) -> dict:
        candidate = sum(1 for entry in self._entries if entry.role == Role.CANDIDATE)
        return {
            "entries": len(self._entries),
            "candidate": candidate,
            "interviewer": len(self._entries) - candidate,
            "duplicates_dropped": self.duplicates_dropped,
        }
