"""
Data models for the interview system.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Iterable, Tuple


class Speaker(str, Enum):
    """Who produced a turn."""
    INTERVIEWER = "interviewer"
    CANDIDATE = "candidate"

    @property
    def label(self) -> str:
        return "Interviewer" if self is Speaker.INTERVIEWER else "Candidate"


class SessionStatus(str, Enum):
    """Lifecycle of an interview session."""
    COLLECTING = "collecting"
    AWAITING_NEXT_QUESTION = "awaiting_next_question"
    ASSESSING = "assessing"
    COMPLETE = "complete"


class AudioState(str, Enum):
    """Playback state of an interviewer turn."""
    NONE = "none"
    PENDING = "pending"
    READY = "ready"
    PLAYING = "playing"


@dataclass(frozen=True)
class Turn:
    """Represents a single message in the transcript."""
    index: int
    speaker: Speaker
    text: str


@dataclass(frozen=True)
class RefinementDraft:
    """Critique and rewrite offered for a pending answer."""
    critique: str
    refined_text: str
    original_text: str


@dataclass(frozen=True)
class BreakdownItem:
    label: str
    rating: float


@dataclass(frozen=True)
class Assessment:
    """Final performance report."""
    overall_score: str
    summary: str
    breakdown: Tuple[BreakdownItem, ...] = ()

    @property
    def numeric_score(self) -> float:
        """Overall score as a float, 0.0 when it is not numeric (e.g. "N/A")."""
        try:
            return float(self.overall_score)
        except ValueError:
            return 0.0


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of a session for rendering."""
    role: str
    context: str
    status: SessionStatus
    turn_limit: int
    turns: Tuple[Turn, ...] = ()
    audio_states: Dict[int, AudioState] = field(default_factory=dict)
    draft_text: str = ""
    refinement: Optional[RefinementDraft] = None
    assessment: Optional[Assessment] = None
    busy: bool = False

    @property
    def answered_count(self) -> int:
        return sum(1 for t in self.turns if t.speaker is Speaker.CANDIDATE)

    @property
    def current_question_number(self) -> int:
        return min(self.answered_count + 1, self.turn_limit)

    @property
    def last_question(self) -> Optional[Turn]:
        for turn in reversed(self.turns):
            if turn.speaker is Speaker.INTERVIEWER:
                return turn
        return None


def count_speaker(turns: Iterable[Turn], speaker: Speaker) -> int:
    return sum(1 for t in turns if t.speaker is speaker)
