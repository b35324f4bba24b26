"""
Event-driven notifications for the interview system.
"""
import logging
from abc import ABC
from typing import Dict, Any, List, Callable, Optional
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of interview events."""
    SESSION_STARTED = "session_started"
    QUESTION_ASKED = "question_asked"
    ANSWER_SUBMITTED = "answer_submitted"
    REFINEMENT_OFFERED = "refinement_offered"
    AUDIO_STATE_CHANGED = "audio_state_changed"
    INTERVIEW_ENDED_EARLY = "interview_ended_early"
    ASSESSMENT_COMPLETED = "assessment_completed"
    STALE_RESPONSE_DISCARDED = "stale_response_discarded"
    ERROR_OCCURRED = "error_occurred"


@dataclass
class InterviewEvent(ABC):
    """Base class for all interview events."""
    event_type: EventType
    session_id: str
    timestamp: float
    data: Dict[str, Any]


@dataclass
class SessionStartedEvent(InterviewEvent):
    """Event fired when a session requests its first question."""
    def __init__(self, session_id: str, timestamp: float, role: str, turn_limit: int, has_context: bool):
        super().__init__(
            event_type=EventType.SESSION_STARTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"role": role, "turn_limit": turn_limit, "has_context": has_context}
        )


@dataclass
class QuestionAskedEvent(InterviewEvent):
    """Event fired when an interviewer turn is appended."""
    def __init__(self, session_id: str, timestamp: float, turn_index: int,
                 question_number: int, text: str, is_placeholder: bool):
        super().__init__(
            event_type=EventType.QUESTION_ASKED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "turn_index": turn_index,
                "question_number": question_number,
                "text": text,
                "is_placeholder": is_placeholder
            }
        )


@dataclass
class AnswerSubmittedEvent(InterviewEvent):
    """Event fired when a candidate answer is accepted."""
    def __init__(self, session_id: str, timestamp: float, turn_index: int,
                 answered: int, turn_limit: int):
        super().__init__(
            event_type=EventType.ANSWER_SUBMITTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"turn_index": turn_index, "answered": answered, "turn_limit": turn_limit}
        )


@dataclass
class RefinementOfferedEvent(InterviewEvent):
    """Event fired when a refinement draft becomes available."""
    def __init__(self, session_id: str, timestamp: float, changed: bool):
        super().__init__(
            event_type=EventType.REFINEMENT_OFFERED,
            session_id=session_id,
            timestamp=timestamp,
            data={"changed": changed}
        )


@dataclass
class AudioStateChangedEvent(InterviewEvent):
    """Event fired when an interviewer turn's audio state changes."""
    def __init__(self, session_id: str, timestamp: float, turn_index: int, state: str):
        super().__init__(
            event_type=EventType.AUDIO_STATE_CHANGED,
            session_id=session_id,
            timestamp=timestamp,
            data={"turn_index": turn_index, "state": state}
        )


@dataclass
class InterviewEndedEarlyEvent(InterviewEvent):
    """Event fired when the user ends the interview before the quota."""
    def __init__(self, session_id: str, timestamp: float, answered: int, turn_limit: int):
        super().__init__(
            event_type=EventType.INTERVIEW_ENDED_EARLY,
            session_id=session_id,
            timestamp=timestamp,
            data={"answered": answered, "turn_limit": turn_limit}
        )


@dataclass
class AssessmentCompletedEvent(InterviewEvent):
    """Event fired when the final assessment is attached."""
    def __init__(self, session_id: str, timestamp: float, score: str, criteria: int, turn_count: int):
        super().__init__(
            event_type=EventType.ASSESSMENT_COMPLETED,
            session_id=session_id,
            timestamp=timestamp,
            data={"score": score, "criteria": criteria, "turn_count": turn_count}
        )


@dataclass
class StaleResponseDiscardedEvent(InterviewEvent):
    """Event fired when a late response is dropped instead of applied."""
    def __init__(self, session_id: str, timestamp: float, operation: str):
        super().__init__(
            event_type=EventType.STALE_RESPONSE_DISCARDED,
            session_id=session_id,
            timestamp=timestamp,
            data={"operation": operation}
        )


@dataclass
class ErrorOccurredEvent(InterviewEvent):
    """Event fired when an external call degrades to a fallback."""
    def __init__(self, session_id: str, timestamp: float, error_message: str, component: str):
        super().__init__(
            event_type=EventType.ERROR_OCCURRED,
            session_id=session_id,
            timestamp=timestamp,
            data={"error_message": error_message, "component": component}
        )


EventHandler = Callable[[InterviewEvent], None]


class InterviewEventBus:
    """Event bus for interview system communication."""

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Function to call when event occurs
        """
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to all events."""
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Unsubscribed handler from {event_type}")
            except ValueError:
                logger.warning(f"Handler not found for {event_type}")

    def emit(self, event: InterviewEvent) -> None:
        """
        Emit an event to all subscribers.

        Handler errors are logged and never reach the emitter.
        """
        logger.debug(f"Emitting event: {event.event_type} for session {event.session_id}")

        for handler in list(self._handlers.get(event.event_type, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")

        for handler in list(self._global_handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in global event handler: {e}")

    def clear_handlers(self) -> None:
        """Clear all event handlers."""
        self._handlers.clear()
        self._global_handlers.clear()


class EventLogger:
    """Logs all events for debugging and analysis."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.log_level = log_level

    def handle_event(self, event: InterviewEvent) -> None:
        self.logger.log(self.log_level, f"Event: {event.event_type.value} | Session: {event.session_id} | Data: {event.data}")


class InterviewMetrics:
    """Collects metrics from interview events."""

    _COUNTED = {
        EventType.SESSION_STARTED: "sessions_started",
        EventType.QUESTION_ASKED: "questions_asked",
        EventType.ANSWER_SUBMITTED: "answers_submitted",
        EventType.REFINEMENT_OFFERED: "refinements_offered",
        EventType.INTERVIEW_ENDED_EARLY: "interviews_ended_early",
        EventType.ASSESSMENT_COMPLETED: "assessments_completed",
        EventType.STALE_RESPONSE_DISCARDED: "stale_responses_discarded",
        EventType.ERROR_OCCURRED: "errors_occurred",
    }

    def __init__(self):
        self._counts: Dict[str, int] = {}
        self.reset()

    def handle_event(self, event: InterviewEvent) -> None:
        """Update metrics based on event."""
        name: Optional[str] = self._COUNTED.get(event.event_type)
        if name is not None:
            self._counts[name] += 1

    def get_metrics(self) -> Dict[str, int]:
        """Get current metrics snapshot."""
        return dict(self._counts)

    def reset(self) -> None:
        """Reset all metrics to zero."""
        self._counts = {name: 0 for name in self._COUNTED.values()}
