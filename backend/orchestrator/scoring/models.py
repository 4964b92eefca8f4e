from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

RATING_CRITERIA = ("relevance", "technicalDepth", "clarity", "communicationQuality")
MAX_RATING = 10

INSUFFICIENT_SUMMARY = "Insufficient data provided for comprehensive assessment."
INSUFFICIENT_RECOMMENDATION = "Unable to provide recommendation due to limited interview data."
TECHNICAL_NOT_ASSESSED = "Technical skills could not be adequately assessed."
COMMUNICATION_NOT_ASSESSED = "Communication skills could not be adequately assessed."


class Recommendation(str, Enum):
    YES = "Yes"
    NO = "No"
    MAYBE = "Maybe"


class ConversationTurn(BaseModel):
    role: str
    content: str


class FeedbackRequest(BaseModel):
    conversation: list[ConversationTurn] = Field(default_factory=list)


class FeedbackResult(BaseModel):
    ratings: dict[str, int]
    summary: str = INSUFFICIENT_SUMMARY
    recommendation: Recommendation = Recommendation.NO
    recommendation_message: str = INSUFFICIENT_RECOMMENDATION
    confidence: int = Field(default=0, ge=0, le=100)
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    technical_assessment: str = TECHNICAL_NOT_ASSESSED
    communication_assessment: str = COMMUNICATION_NOT_ASSESSED
    is_fallback: bool = False

    @field_validator("ratings")
    @classmethod
    def _ratings_in_range(cls, value: dict[str, int]) -> dict[str, int]:
        for criterion, score in value.items():
            if not 0 <= int(score) <= MAX_RATING:
                raise ValueError(f"rating {criterion}={score} outside 0..{MAX_RATING}")
        return value

    def to_wire(self) -> dict:
        """Response body of the scoring service: {"feedback": {...}}."""
        return {
            "feedback": {
                "rating": dict(self.ratings),
                "summary": self.summary,
                "recommendation": self.recommendation.value,
                "recommendationMessage": self.recommendation_message,
                "confidence": self.confidence,
                "strengths": list(self.strengths),
                "improvements": list(self.improvements),
                "technicalAssessment": self.technical_assessment,
                "communicationAssessment": self.communication_assessment,
            }
        }


def fallback_feedback() -> FeedbackResult:
    return FeedbackResult(
        ratings={criterion: 0 for criterion in RATING_CRITERIA},
        recommendation=Recommendation.NO,
        recommendation_message=INSUFFICIENT_RECOMMENDATION,
        summary=INSUFFICIENT_SUMMARY,
        confidence=0,
        is_fallback=True,
    )
