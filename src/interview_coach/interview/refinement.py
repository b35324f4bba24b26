"""
Critique-and-rewrite workflow for a pending answer.
"""
import re
import logging

from .models import RefinementDraft
from .prompts import InterviewPrompts, REFINEMENT_FEEDBACK_MARKER, REFINEMENT_ANSWER_MARKER

logger = logging.getLogger("refinement")

_FEEDBACK_RE = re.compile(
    re.escape(REFINEMENT_FEEDBACK_MARKER) + r"(.*?)(?=" + re.escape(REFINEMENT_ANSWER_MARKER) + r"|\Z)",
    re.IGNORECASE | re.DOTALL,
)
_ANSWER_RE = re.compile(re.escape(REFINEMENT_ANSWER_MARKER) + r"(.*)", re.IGNORECASE | re.DOTALL)


def parse_refinement(raw_response: str, original_text: str) -> RefinementDraft:
    """
    Split a model response into critique and refined answer.

    A missing (or empty) feedback section yields a diagnostic placeholder; a
    missing (or empty) refined section yields the original text unchanged.
    """
    fallbacks = InterviewPrompts.fallback_messages()
    original = original_text.strip()

    feedback_match = _FEEDBACK_RE.search(raw_response or "")
    answer_match = _ANSWER_RE.search(raw_response or "")

    critique = feedback_match.group(1).strip() if feedback_match else ""
    refined = answer_match.group(1).strip() if answer_match else ""

    if not critique:
        logger.warning("Refinement response had no feedback section")
        critique = fallbacks["critique_missing"]
    if not refined:
        logger.warning("Refinement response had no refined answer section")
        refined = original

    return RefinementDraft(critique=critique, refined_text=refined, original_text=original)


class RefinementWorkflow:
    """Asks the model to critique and rewrite a draft answer."""

    def __init__(self, llm_client):
        self.llm_client = llm_client

    def refine(self, draft_text: str, role: str, context: str = "") -> RefinementDraft:
        """
        Critique and rewrite draft_text. Never raises for model failures.

        Args:
            draft_text: The candidate's current, unsubmitted answer
            role: Interview role label
            context: Optional job description text

        Returns:
            RefinementDraft (degraded to placeholder critique + original text on failure)
        """
        original = draft_text.strip()
        result = self.llm_client.generate_text(
            [InterviewPrompts.refinement_request(original)],
            InterviewPrompts.refinement_system_prompt(role, context),
        )

        if not result.ok:
            logger.error("Refinement request failed: %s", result.error)
            return RefinementDraft(
                critique=InterviewPrompts.fallback_messages()["critique_failed"],
                refined_text=original,
                original_text=original,
            )

        logger.info("Refinement response received (%d chars)", len(result.value))
        return parse_refinement(result.value, original)
