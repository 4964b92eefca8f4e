import json
import re

from orchestrator.errors import FeedbackGenerationFailed
from orchestrator.scoring.models import (
    COMMUNICATION_NOT_ASSESSED,
    INSUFFICIENT_RECOMMENDATION,
    INSUFFICIENT_SUMMARY,
    MAX_RATING,
    RATING_CRITERIA,
    TECHNICAL_NOT_ASSESSED,
    FeedbackResult,
    Recommendation,
)


def _clamp(value, low: int, high: int, default: int = 0) -> int:
    try:
        return max(low, min(high, int(round(float(value)))))
    except Exception:
        return default


def _text(value, default: str) -> str:
    text = str(value or "").strip()
    return text or default


def _string_list(value) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item).strip() for item in value if str(item or "").strip()]


def _recommendation(value) -> Recommendation:
    normalized = str(value or "").strip().lower()
    for option in Recommendation:
        if option.value.lower() == normalized:
            return option
    return Recommendation.NO


def extract_json_dict(text: str) -> dict | None:
    text = (text or "").strip()
    if not text:
        return None

    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else None
    except Exception:
        pass

    fenced = re.search(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", text, re.IGNORECASE)
    if fenced:
        try:
            parsed = json.loads(fenced.group(1))
            return parsed if isinstance(parsed, dict) else None
        except Exception:
            pass

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        try:
            parsed = json.loads(text[start:end + 1])
            return parsed if isinstance(parsed, dict) else None
        except Exception:
            return None

    return None


def normalize_feedback(data: dict) -> FeedbackResult:
    """
    Build a FeedbackResult from a scoring response, filling every gap with
    a default so a partial answer never breaks the pipeline.
    Accepts both {"feedback": {...}} and the bare inner object.
    """
    if not isinstance(data, dict):
        raise FeedbackGenerationFailed("scoring response is not a JSON object")

    body = data.get("feedback") if isinstance(data.get("feedback"), dict) else data
    # Some callers wrap the body once more as {"data": {"feedback": ...}}
    if "data" in body and isinstance(body.get("data"), dict):
        inner = body["data"]
        body = inner.get("feedback") if isinstance(inner.get("feedback"), dict) else inner

    raw_ratings = body.get("rating") or body.get("ratings") or {}
    if not isinstance(raw_ratings, dict):
        raw_ratings = {}

    ratings = {
        criterion: _clamp(raw_ratings.get(criterion), 0, MAX_RATING)
        for criterion in RATING_CRITERIA
    }

    confidence = body.get("confidence")
    if confidence is None:
        confidence = body.get("overallConfidence")

    return FeedbackResult(
        ratings=ratings,
        summary=_text(body.get("summary"), INSUFFICIENT_SUMMARY),
        recommendation=_recommendation(body.get("recommendation")),
        recommendation_message=_text(body.get("recommendationMessage"), INSUFFICIENT_RECOMMENDATION),
        confidence=_clamp(confidence, 0, 100),
        strengths=_string_list(body.get("strengths")),
        improvements=_string_list(body.get("improvements")),
        technical_assessment=_text(body.get("technicalAssessment"), TECHNICAL_NOT_ASSESSED),
        communication_assessment=_text(body.get("communicationAssessment"), COMMUNICATION_NOT_ASSESSED),
    )


def parse_feedback_text(raw_text: str) -> FeedbackResult:
    parsed = extract_json_dict(raw_text)
    if parsed is None:
        raise FeedbackGenerationFailed("scoring model returned invalid feedback format")
    return normalize_feedback(parsed)
