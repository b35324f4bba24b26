"""Interview system components.

This module contains the business logic for running a mock interview:
the session state machine, answer refinement, final assessment, audio
synthesis, and the event system.
"""

# Core session class
from .orchestrator import InterviewSession

# Data models
from .models import (
    Turn, Speaker, SessionStatus, AudioState, RefinementDraft,
    Assessment, BreakdownItem, SessionSnapshot
)

# Structured output schemas
from .schemas import FEEDBACK_SCHEMA, FeedbackModel, parse_assessment, serialize_transcript

# Workflows and services
from .refinement import RefinementWorkflow, parse_refinement
from .assessment import AssessmentFinalizer
from .services import AudioPipeline, ContextService

# Event system
from .events import (
    InterviewEventBus, EventLogger, InterviewMetrics,
    EventType, InterviewEvent, SessionStartedEvent,
    QuestionAskedEvent, AnswerSubmittedEvent, RefinementOfferedEvent,
    AudioStateChangedEvent, InterviewEndedEarlyEvent,
    AssessmentCompletedEvent, StaleResponseDiscardedEvent, ErrorOccurredEvent
)

__all__ = [
    # Session
    "InterviewSession",

    # Data models
    "Turn", "Speaker", "SessionStatus", "AudioState", "RefinementDraft",
    "Assessment", "BreakdownItem", "SessionSnapshot",

    # Schemas
    "FEEDBACK_SCHEMA", "FeedbackModel", "parse_assessment", "serialize_transcript",

    # Workflows and services
    "RefinementWorkflow", "parse_refinement", "AssessmentFinalizer",
    "AudioPipeline", "ContextService",

    # Events
    "InterviewEventBus", "EventLogger", "InterviewMetrics",
    "EventType", "InterviewEvent", "SessionStartedEvent",
    "QuestionAskedEvent", "AnswerSubmittedEvent", "RefinementOfferedEvent",
    "AudioStateChangedEvent", "InterviewEndedEarlyEvent",
    "AssessmentCompletedEvent", "StaleResponseDiscardedEvent", "ErrorOccurredEvent",
]
