"""
Structured output schemas and parsing for model responses.
"""
import json
from typing import Any, Dict, Iterable, List

from pydantic import BaseModel, Field, ValidationError

from .models import Assessment, BreakdownItem, Turn


# Response schema sent to the model for the final report
FEEDBACK_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "score": {"type": "STRING", "description": "Overall score out of 5, e.g., '3.5'. Must be a string."},
        "summary": {"type": "STRING", "description": "A concise summary of the candidate's performance."},
        "breakdown": {
            "type": "ARRAY",
            "description": "Scores for key criteria.",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "label": {"type": "STRING", "description": "Criteria name, e.g., 'Communication Clarity'."},
                    "rating": {"type": "NUMBER", "description": "Score for this criterion out of 5."},
                },
                "required": ["label", "rating"],
            },
        },
    },
    "required": ["score", "summary", "breakdown"],
}

FEEDBACK_RESPONSE_FORMAT: Dict[str, Any] = {
    "responseMimeType": "application/json",
    "responseSchema": FEEDBACK_SCHEMA,
}


class BreakdownModel(BaseModel):
    label: str
    rating: float = Field(ge=0, le=5)


class FeedbackModel(BaseModel):
    """Validated shape of the assessment JSON."""
    score: str
    summary: str
    breakdown: List[BreakdownModel]

    model_config = {"extra": "forbid"}

    def to_assessment(self) -> Assessment:
        return Assessment(
            overall_score=self.score.strip(),
            summary=self.summary.strip(),
            breakdown=tuple(BreakdownItem(label=b.label, rating=b.rating) for b in self.breakdown),
        )


def parse_assessment(raw_response: str) -> Assessment:
    """
    Parse the model's JSON report into an Assessment.

    Args:
        raw_response: Raw JSON string from the model

    Returns:
        Assessment built from the validated payload

    Raises:
        ValueError: If the response is not JSON or does not match the schema
    """
    try:
        data = json.loads(raw_response)
    except json.JSONDecodeError as e:
        raise ValueError(f"Response is not valid JSON: {e}") from e
    except RecursionError as e:
        raise ValueError("Response JSON is nested too deeply") from e

    try:
        return FeedbackModel.model_validate(data).to_assessment()
    except ValidationError as e:
        raise ValueError(f"Response does not match the feedback schema: {e.error_count()} error(s)") from e


def serialize_transcript(turns: Iterable[Turn]) -> str:
    """One 'Speaker: text' line per turn, in transcript order."""
    return "\n".join(f"{turn.speaker.label}: {turn.text}" for turn in turns)
