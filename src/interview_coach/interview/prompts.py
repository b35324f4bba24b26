"""
Interview prompt templates.

This module contains all the prompt templates used throughout the interview system,
keeping them separate from the business logic for easier maintenance and editing.
"""

from typing import Dict


REFINEMENT_FEEDBACK_MARKER = "**FEEDBACK:**"
REFINEMENT_ANSWER_MARKER = "**REFINED ANSWER:**"


class InterviewPrompts:
    """Collection of all interview-related prompts."""

    @staticmethod
    def context_instruction(role: str, context: str) -> str:
        """Sentence telling the model what the role is based on."""
        if context:
            return (
                f'The candidate is applying for a role defined by the following context: "{context}". '
                "Base your questions SPECIFICALLY on the skills and responsibilities mentioned in this "
                "context, starting with the job title itself if present."
            )
        return f"The candidate is interviewing for a standard {role} role."

    @staticmethod
    def question_system_prompt(role: str, context: str, question_number: int, turn_limit: int) -> str:
        """System instruction for generating the next interview question."""
        return (
            f"You are a professional AI interviewer for a {role} position. "
            f"{InterviewPrompts.context_instruction(role, context)} "
            "Your task is to generate the next interview question. "
            f"You must use the STAR method for at least one behavioral question across the {turn_limit} questions. "
            "Do not generate more than one question at a time. "
            f"The current question number is {question_number} out of {turn_limit}."
        )

    @staticmethod
    def question_request(transcript: str) -> str:
        """User prompt asking for one question, carrying the conversation so far."""
        if not transcript:
            return "This is the start of the interview. Generate a concise, single, highly relevant opening interview question."
        return (
            "Conversation so far:\n---\n"
            f"{transcript}\n---\n"
            "Based on the conversation so far, generate a concise, single, highly relevant interview question."
        )

    @staticmethod
    def refinement_system_prompt(role: str, context: str) -> str:
        """System instruction for critiquing and rewriting a draft answer."""
        return (
            f"Analyze the following answer provided by a candidate for the role of {role}, "
            f'specifically considering the interview context: "{context}". '
            "Provide constructive feedback on how to improve the answer's clarity, structure, and content, "
            "focusing on the STAR method if applicable. Then, rewrite the answer to be highly effective, "
            "concise, and professional. Use the following format STRICTLY:\n\n"
            f"{REFINEMENT_FEEDBACK_MARKER} [Your critique]\n\n"
            f"{REFINEMENT_ANSWER_MARKER} [Your suggested polished answer]"
        )

    @staticmethod
    def refinement_request(draft: str) -> str:
        return f'Candidate\'s current answer: "{draft}"'

    @staticmethod
    def assessment_system_prompt(role: str, context: str) -> str:
        """System instruction for the final structured report."""
        return (
            "You are a professional Interview Assessor. Based on the following conversation for a candidate "
            f'applying for the role of {role} (Context: "{context}"), provide a structured performance report. '
            "You MUST follow the JSON schema EXACTLY. The overall score should be reflective of the candidate's "
            "performance across all questions, focusing on clarity, technical accuracy, relevance, and ability "
            "to use structured response methods (like STAR)."
        )

    @staticmethod
    def assessment_request(transcript: str) -> str:
        return (
            "Provide the final assessment and score using the provided JSON structure, "
            f"based on this interview:\n\n---\n{transcript}\n---"
        )

    @staticmethod
    def image_extraction_prompt() -> str:
        """Prompt for pulling a job description out of an image."""
        return (
            "Analyze the provided image of a job posting or description. Extract all relevant details: "
            "the job title, required skills, main responsibilities, and company information. Present the "
            "extracted information as a concise, structured text block suitable for an AI interviewer to "
            "base their questions on. If no job description is visible, state that clearly."
        )

    @staticmethod
    def fallback_messages() -> Dict[str, str]:
        """Placeholder text used when a model call fails."""
        return {
            "question": "Error: Failed to generate the next question ({error}). Please answer in your own words or end the interview.",
            "critique_missing": "No specific feedback found. The AI might have had trouble parsing the structure.",
            "critique_failed": "Error: Failed to fetch refinement from AI.",
            "assessment_failed": "Failed to generate feedback: {error}.",
            "image_failed": "Error: Failed to analyze image content ({error}).",
        }
