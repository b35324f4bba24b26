"""
Final assessment generation.
"""
import logging
from typing import Iterable

from .models import Assessment, Turn
from .prompts import InterviewPrompts
from .schemas import FEEDBACK_RESPONSE_FORMAT, parse_assessment, serialize_transcript

logger = logging.getLogger("assessment")


class AssessmentFinalizer:
    """Turns a transcript into a schema-validated Assessment."""

    def __init__(self, llm_client):
        self.llm_client = llm_client

    def finalize(self, transcript: Iterable[Turn], role: str, context: str = "") -> Assessment:
        """
        Request the structured report for transcript.

        Never raises: gateway failures, non-JSON output and schema violations
        all produce the fallback Assessment (score "N/A", empty breakdown).
        """
        conversation = serialize_transcript(transcript)
        result = self.llm_client.generate_text(
            [InterviewPrompts.assessment_request(conversation)],
            InterviewPrompts.assessment_system_prompt(role, context),
            FEEDBACK_RESPONSE_FORMAT,
        )

        if not result.ok:
            logger.error("Assessment request failed: %s", result.error)
            return self.fallback(str(result.error))

        try:
            assessment = parse_assessment(result.value)
        except ValueError as e:
            logger.error("Assessment response rejected: %s", e)
            return self.fallback(str(e))

        logger.info("Assessment parsed: score=%s, %d criteria",
                    assessment.overall_score, len(assessment.breakdown))
        return assessment

    @staticmethod
    def fallback(reason: str) -> Assessment:
        summary = InterviewPrompts.fallback_messages()["assessment_failed"].format(error=reason)
        return Assessment(overall_score="N/A", summary=summary, breakdown=())
