"""
Interview session orchestrator: the conversation state machine.
"""
import time
import uuid
import logging
import threading
from typing import Callable, List, Optional

from .models import (
    Assessment, AudioState, RefinementDraft, SessionSnapshot, SessionStatus,
    Speaker, Turn, count_speaker
)
from .prompts import InterviewPrompts
from .schemas import serialize_transcript
from .services import AudioPipeline
from .refinement import RefinementWorkflow
from .assessment import AssessmentFinalizer
from .events import (
    InterviewEventBus, InterviewEvent,
    SessionStartedEvent, QuestionAskedEvent, AnswerSubmittedEvent,
    RefinementOfferedEvent, AudioStateChangedEvent, InterviewEndedEarlyEvent,
    AssessmentCompletedEvent, StaleResponseDiscardedEvent, ErrorOccurredEvent
)
from ..config import TURN_LIMIT, AUTOPLAY

logger = logging.getLogger("orchestrator")


class InterviewSession:
    """
    One interview run, from the first question to the final assessment.

    Status moves AWAITING_NEXT_QUESTION -> COLLECTING -> AWAITING_NEXT_QUESTION
    ... -> ASSESSING -> COMPLETE. Every public method is safe to call from any
    thread. Network calls happen outside the session lock; results are applied
    only if the session epoch and status are unchanged, so a response arriving
    after an early end is discarded instead of mutating the transcript.
    """

    def __init__(self,
                 llm_client,
                 role: str,
                 context: str = "",
                 turn_limit: int = TURN_LIMIT,
                 audio: Optional[AudioPipeline] = None,
                 autoplay: bool = AUTOPLAY,
                 event_bus: Optional[InterviewEventBus] = None,
                 refinement: Optional[RefinementWorkflow] = None,
                 finalizer: Optional[AssessmentFinalizer] = None,
                 session_id: Optional[str] = None,
                 clock: Callable[[], float] = time.time):
        if turn_limit < 1:
            raise ValueError("turn_limit must be at least 1")

        self.llm_client = llm_client
        self.role = role
        self.context = context or ""
        self.turn_limit = turn_limit
        self.audio = audio
        self.autoplay = autoplay
        self.event_bus = event_bus or InterviewEventBus()
        self.refinement = refinement or RefinementWorkflow(llm_client)
        self.finalizer = finalizer or AssessmentFinalizer(llm_client)
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self._clock = clock

        self._lock = threading.RLock()
        self._turns: List[Turn] = []
        self._status = SessionStatus.AWAITING_NEXT_QUESTION
        self._draft = ""
        self._refinement: Optional[RefinementDraft] = None
        self._assessment: Optional[Assessment] = None
        self._started = False
        self._finalizing = False
        self._in_flight = False
        self._epoch = 0

        if self.audio is not None and self.audio.on_state_change is None:
            self.audio.on_state_change = self._on_audio_state

    # ------------------------------------------------------------------
    # Read model
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        with self._lock:
            return self._status

    @property
    def transcript(self) -> List[Turn]:
        with self._lock:
            return list(self._turns)

    @property
    def assessment(self) -> Optional[Assessment]:
        with self._lock:
            return self._assessment

    def snapshot(self) -> SessionSnapshot:
        """Immutable view of the session for rendering."""
        with self._lock:
            return SessionSnapshot(
                role=self.role,
                context=self.context,
                status=self._status,
                turn_limit=self.turn_limit,
                turns=tuple(self._turns),
                audio_states=self.audio.states() if self.audio is not None else {},
                draft_text=self._draft,
                refinement=self._refinement,
                assessment=self._assessment,
                busy=self._in_flight or self._status is SessionStatus.ASSESSING,
            )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self) -> Optional[Turn]:
        """
        Request the first question. Calling it again is a no-op.

        Returns:
            The first interviewer turn, or None if the session was already
            started or the response went stale
        """
        with self._lock:
            if self._started:
                logger.debug("start() ignored: session already started")
                return None
            self._started = True
            self._in_flight = True
            epoch = self._epoch

        logger.info("Session %s started: role=%s, %d questions", self.session_id, self.role, self.turn_limit)
        self._emit(SessionStartedEvent(
            self.session_id, self._clock(), self.role, self.turn_limit, bool(self.context)
        ))
        return self._request_question(epoch)

    def submit_answer(self, text: str) -> bool:
        """
        Append a candidate answer and advance the interview.

        Rejected (False, nothing changes) unless the session is COLLECTING with
        no call in flight and the text has non-whitespace content.
        """
        with self._lock:
            if self._status is not SessionStatus.COLLECTING:
                logger.debug("Answer rejected: status is %s", self._status.value)
                return False
            if self._in_flight:
                logger.debug("Answer rejected: a call is in flight")
                return False
            if not text or not text.strip():
                logger.debug("Answer rejected: empty text")
                return False

            self._stop_audio()
            self._refinement = None
            self._draft = ""

            turn = Turn(index=len(self._turns), speaker=Speaker.CANDIDATE, text=text.strip())
            self._turns.append(turn)
            answered = count_speaker(self._turns, Speaker.CANDIDATE)

            if answered >= self.turn_limit:
                self._status = SessionStatus.ASSESSING
                finalize = True
            else:
                self._status = SessionStatus.AWAITING_NEXT_QUESTION
                self._in_flight = True
                finalize = False
            epoch = self._epoch

        logger.info("Answer %d/%d submitted (%d chars)", answered, self.turn_limit, len(turn.text))
        self._emit(AnswerSubmittedEvent(
            self.session_id, self._clock(), turn.index, answered, self.turn_limit
        ))

        if finalize:
            self._finalize()
        else:
            self._request_question(epoch)
        return True

    def end_interview_early(self) -> bool:
        """
        Skip the remaining questions and assess the transcript so far.

        Does not wait for an in-flight call; its result will be discarded.
        """
        with self._lock:
            if self._status not in (SessionStatus.COLLECTING, SessionStatus.AWAITING_NEXT_QUESTION):
                logger.debug("End early ignored: status is %s", self._status.value)
                return False
            self._epoch += 1
            self._status = SessionStatus.ASSESSING
            self._in_flight = False
            self._refinement = None
            self._stop_audio()
            answered = count_speaker(self._turns, Speaker.CANDIDATE)

        logger.info("Interview ended early after %d/%d answers", answered, self.turn_limit)
        self._emit(InterviewEndedEarlyEvent(self.session_id, self._clock(), answered, self.turn_limit))
        self._finalize()
        return True

    def update_draft(self, text: str) -> bool:
        """Replace the pending answer text. Only allowed while COLLECTING."""
        with self._lock:
            if self._status is not SessionStatus.COLLECTING:
                return False
            self._draft = text or ""
            return True

    # ------------------------------------------------------------------
    # Refinement
    # ------------------------------------------------------------------

    def request_refinement(self) -> Optional[RefinementDraft]:
        """Critique and rewrite the current draft. None when rejected or stale."""
        with self._lock:
            if self._status is not SessionStatus.COLLECTING or self._in_flight:
                logger.debug("Refinement rejected: status=%s in_flight=%s", self._status.value, self._in_flight)
                return None
            draft = self._draft
            if not draft.strip():
                logger.debug("Refinement rejected: empty draft")
                return None
            self._in_flight = True
            epoch = self._epoch

        draft_result = self.refinement.refine(draft, self.role, self.context)

        with self._lock:
            if epoch != self._epoch or self._status is not SessionStatus.COLLECTING:
                stale = True
            else:
                stale = False
                self._in_flight = False
                self._refinement = draft_result

        if stale:
            self._discard_stale("refinement")
            return None

        self._emit(RefinementOfferedEvent(
            self.session_id, self._clock(), draft_result.refined_text != draft_result.original_text
        ))
        return draft_result

    def accept_refined(self) -> bool:
        """Replace the draft with the refined answer and close the refinement."""
        with self._lock:
            if self._refinement is None or self._status is not SessionStatus.COLLECTING:
                return False
            self._draft = self._refinement.refined_text
            self._refinement = None
            return True

    def dismiss_refinement(self) -> bool:
        with self._lock:
            if self._refinement is None:
                return False
            self._refinement = None
            return True

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------

    def play_audio(self, turn_index: int) -> bool:
        """Replay an interviewer turn's audio."""
        if self.audio is None:
            return False
        with self._lock:
            if not 0 <= turn_index < len(self._turns):
                return False
            if self._turns[turn_index].speaker is not Speaker.INTERVIEWER:
                return False
        return self.audio.play(turn_index)

    def stop_audio(self) -> None:
        self._stop_audio()

    def close(self) -> None:
        """Release audio resources."""
        if self.audio is not None:
            self.audio.shutdown()

    def _stop_audio(self) -> None:
        if self.audio is not None:
            self.audio.stop()

    def _on_audio_state(self, turn_index: int, state: AudioState) -> None:
        self._emit(AudioStateChangedEvent(self.session_id, self._clock(), turn_index, state.value))

    # ------------------------------------------------------------------
    # Network-backed steps
    # ------------------------------------------------------------------

    def _request_question(self, epoch: int) -> Optional[Turn]:
        with self._lock:
            conversation = serialize_transcript(self._turns)
            question_number = count_speaker(self._turns, Speaker.INTERVIEWER) + 1

        logger.info("Requesting question %d/%d", question_number, self.turn_limit)
        result = self.llm_client.generate_text(
            [InterviewPrompts.question_request(conversation)],
            InterviewPrompts.question_system_prompt(self.role, self.context, question_number, self.turn_limit),
        )

        text = result.value.strip() if result.ok and result.value else ""
        is_placeholder = not text
        if is_placeholder:
            reason = str(result.error) if not result.ok else "empty response"
            text = InterviewPrompts.fallback_messages()["question"].format(error=reason)

        with self._lock:
            if epoch != self._epoch or self._status is not SessionStatus.AWAITING_NEXT_QUESTION:
                turn = None
            else:
                turn = Turn(index=len(self._turns), speaker=Speaker.INTERVIEWER, text=text)
                self._turns.append(turn)
                self._status = SessionStatus.COLLECTING
                self._in_flight = False

        if turn is None:
            self._discard_stale("question")
            return None

        if is_placeholder:
            logger.error("Question generation failed: %s", reason)
            self._emit(ErrorOccurredEvent(self.session_id, self._clock(), reason, "question_generation"))
        else:
            logger.info("Question %d: %s", question_number, text)

        self._emit(QuestionAskedEvent(
            self.session_id, self._clock(), turn.index, question_number, text, is_placeholder
        ))
        if self.audio is not None and not is_placeholder:
            self.audio.prepare(turn.index, text, autoplay=self.autoplay)
        return turn

    def _finalize(self) -> Optional[Assessment]:
        with self._lock:
            if self._assessment is not None or self._finalizing:
                return self._assessment
            self._finalizing = True
            turns = tuple(self._turns)

        logger.info("Finalizing assessment over %d turns", len(turns))
        try:
            assessment = self.finalizer.finalize(turns, self.role, self.context)
        except Exception as e:
            logger.error("Assessment finalizer raised: %s", e)
            assessment = AssessmentFinalizer.fallback(str(e) or type(e).__name__)

        with self._lock:
            self._assessment = assessment
            self._status = SessionStatus.COMPLETE
            self._in_flight = False
            self._draft = ""
        self._stop_audio()

        if assessment.overall_score == "N/A":
            self._emit(ErrorOccurredEvent(self.session_id, self._clock(), assessment.summary, "assessment"))
        self._emit(AssessmentCompletedEvent(
            self.session_id, self._clock(), assessment.overall_score, len(assessment.breakdown), len(turns)
        ))
        return assessment

    def _discard_stale(self, operation: str) -> None:
        logger.info("Discarding stale %s response", operation)
        self._emit(StaleResponseDiscardedEvent(self.session_id, self._clock(), operation))

    def _emit(self, event: InterviewEvent) -> None:
        self.event_bus.emit(event)
