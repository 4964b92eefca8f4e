from __future__ import annotations

import logging
from typing import Protocol

import httpx
from openai import AsyncOpenAI

from core.config import FEEDBACK_MODEL, FEEDBACK_SCORER_URL, FEEDBACK_TIMEOUT_SEC, OPENAI_API_KEY
from orchestrator.errors import FeedbackGenerationFailed
from orchestrator.scoring.models import FeedbackResult
from orchestrator.scoring.parser import normalize_feedback, parse_feedback_text
from orchestrator.scoring.prompts import build_feedback_prompt

logger = logging.getLogger("feedback_scoring")


def render_conversation(conversation: list[dict]) -> str:
    lines = []
    for turn in conversation or []:
        role = str((turn or {}).get("role") or "")
        speaker = "User" if role in {"user", "candidate"} else "Assistant"
        lines.append(f"{speaker}: {str((turn or {}).get('content') or '').strip()}")
    return "\n".join(lines)


class FeedbackScorer(Protocol):
    async def score(self, conversation: list[dict]) -> FeedbackResult:
        """Raise FeedbackGenerationFailed on transport or parse failure."""
        ...


class OpenAIFeedbackScorer:
    """One scoring attempt against the chat completions API. Retries belong to the caller."""

    def __init__(self, client: AsyncOpenAI | None = None, model: str = FEEDBACK_MODEL):
        self.client = client or AsyncOpenAI(api_key=OPENAI_API_KEY)
        self.model = model

    async def score(self, conversation: list[dict]) -> FeedbackResult:
        if not conversation:
            raise FeedbackGenerationFailed("Missing conversation data")

        prompt = build_feedback_prompt(render_conversation(conversation))
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": "You are a strict JSON generator. Output JSON only."
                    },
                    {
                        "role": "user",
                        "content": prompt
                    }
                ],
                temperature=0.3,
            )
        except Exception as exc:
            raise FeedbackGenerationFailed(f"scoring request failed: {exc}") from exc

        message = response.choices[0].message.content if response.choices else ""
        return parse_feedback_text(str(message or ""))


class HttpFeedbackScorer:
    """Client for a scoring service exposing POST {conversation} -> {feedback}."""

    def __init__(self, url: str, timeout_sec: float = FEEDBACK_TIMEOUT_SEC):
        self.url = url
        self.timeout_sec = timeout_sec

    async def score(self, conversation: list[dict]) -> FeedbackResult:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_sec) as client:
                response = await client.post(self.url, json={"conversation": conversation})
        except httpx.HTTPError as exc:
            raise FeedbackGenerationFailed(f"scoring request failed: {exc}") from exc

        if response.status_code != 200:
            raise FeedbackGenerationFailed(f"scoring service returned {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise FeedbackGenerationFailed("scoring service returned invalid JSON") from exc

        return normalize_feedback(data)


def build_feedback_scorer() -> FeedbackScorer:
    if FEEDBACK_SCORER_URL:
        logger.info("Feedback scorer: HTTP %s", FEEDBACK_SCORER_URL)
        return HttpFeedbackScorer(FEEDBACK_SCORER_URL)
    return OpenAIFeedbackScorer()
