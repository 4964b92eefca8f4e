from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    CANDIDATE = "candidate"
    INTERVIEWER = "interviewer"

    @property
    def label(self) -> str:
        return "Candidate" if self is Role.CANDIDATE else "Interviewer"

    @property
    def wire_role(self) -> str:
        # Role names the scoring service expects
        return "user" if self is Role.CANDIDATE else "assistant"

    @classmethod
    def from_provider(cls, raw: str | None) -> "Role":
        value = str(raw or "").strip().lower()
        if value in {"user", "candidate"}:
            return cls.CANDIDATE
        return cls.INTERVIEWER


@dataclass(frozen=True)
class TranscriptEntry:
    """
    One finalized utterance in the conversation.
    `sequence` is the local assignment order, never the provider's.
    """
    role: Role
    content: str
    sequence: int

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "content": self.content,
            "sequence": self.sequence,
        }


ConversationLog = tuple[TranscriptEntry, ...]
