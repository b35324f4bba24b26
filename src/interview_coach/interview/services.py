"""
Service classes for the interview system.
"""
import base64
import logging
import mimetypes
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Tuple

from .models import AudioState
from .prompts import InterviewPrompts
from ..infrastructure.audio import AudioPlayer, speech_to_wav
from ..config import AUDIO_WORKERS, CUSTOM_ROLE, ROLES, ConfigurationError

logger = logging.getLogger("services")

CUSTOM_ROLE_TITLE = "Custom Role"

StateListener = Callable[[int, AudioState], None]


class AudioPipeline:
    """
    Synthesizes and plays interviewer audio, one clip at a time.

    Synthesis runs on a background executor so it never blocks input. At most
    one turn is PLAYING at any instant; the player's completion callback only
    applies if it belongs to the current playback.
    """

    def __init__(self,
                 llm_client,
                 player: AudioPlayer,
                 executor: Optional[Executor] = None,
                 on_state_change: Optional[StateListener] = None):
        self.llm_client = llm_client
        self.player = player
        self.executor = executor or ThreadPoolExecutor(
            max_workers=AUDIO_WORKERS, thread_name_prefix="audio-synth"
        )
        self.on_state_change = on_state_change

        self._lock = threading.RLock()
        # Held across a state change and its player call
        self._playback_lock = threading.RLock()
        self._states: Dict[int, AudioState] = {}
        self._handles: Dict[int, bytes] = {}
        self._playing: Optional[int] = None
        self._play_token = 0
        self._autoplay_token = 0

    # ------------------------------------------------------------------
    # Synthesis
    # ------------------------------------------------------------------

    def synthesize(self, text: str) -> Optional[bytes]:
        """Return WAV bytes for text, or None when no usable audio came back."""
        payload = self.llm_client.synthesize_speech(text)
        if payload is None:
            return None
        return speech_to_wav(payload.audio_base64, payload.mime_type)

    def prepare(self, turn_index: int, text: str, autoplay: bool = True) -> Future:
        """
        Mark turn_index PENDING and synthesize its audio in the background.

        A later prepare() or stop() cancels this call's autoplay.
        """
        with self._lock:
            self._autoplay_token += 1
            token = self._autoplay_token if autoplay else None
            changes = self._set_state(turn_index, AudioState.PENDING)
        self._notify(changes)

        logger.debug("Queued synthesis for turn %d (autoplay=%s)", turn_index, autoplay)
        return self.executor.submit(self._synthesize_turn, turn_index, text, token)

    def _synthesize_turn(self, turn_index: int, text: str, token: Optional[int]) -> bool:
        try:
            wav_bytes = self.synthesize(text)
        except Exception as e:
            logger.error("Synthesis failed for turn %d: %s", turn_index, e)
            wav_bytes = None

        with self._lock:
            if wav_bytes is not None:
                self._handles[turn_index] = wav_bytes
            changes = self._set_state(turn_index, AudioState.READY)
        self._notify(changes)

        if wav_bytes is None:
            logger.info("No audio for turn %d", turn_index)
        elif token is not None:
            self._play(turn_index, autoplay_token=token)
        return wav_bytes is not None

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def play(self, turn_index: int) -> bool:
        """Play turn_index, stopping whatever else is playing. False when it has no audio."""
        return self._play(turn_index)

    def _play(self, turn_index: int, autoplay_token: Optional[int] = None) -> bool:
        with self._playback_lock:
            with self._lock:
                if autoplay_token is not None and autoplay_token != self._autoplay_token:
                    logger.debug("Autoplay for turn %d cancelled", turn_index)
                    return False
                wav_bytes = self._handles.get(turn_index)
                if wav_bytes is None:
                    logger.debug("No audio handle for turn %d", turn_index)
                    return False

                changes = self._release_current()
                self._play_token += 1
                token = self._play_token
                self._playing = turn_index
                changes += self._set_state(turn_index, AudioState.PLAYING)
            self._notify(changes)

            self.player.stop()
            self.player.play(wav_bytes, lambda: self._on_finished(turn_index, token))
        return True

    def _on_finished(self, turn_index: int, token: int) -> None:
        with self._lock:
            if token != self._play_token or self._playing != turn_index:
                return
            self._playing = None
            changes = self._set_state(turn_index, AudioState.READY)
        self._notify(changes)

    def stop(self) -> None:
        """Stop playback and cancel any pending autoplay."""
        with self._playback_lock:
            with self._lock:
                self._autoplay_token += 1
                self._play_token += 1
                changes = self._release_current()
            self._notify(changes)
            self.player.stop()

    def _release_current(self) -> List[Tuple[int, AudioState]]:
        if self._playing is None:
            return []
        previous, self._playing = self._playing, None
        return self._set_state(previous, AudioState.READY)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def state(self, turn_index: int) -> AudioState:
        with self._lock:
            return self._states.get(turn_index, AudioState.NONE)

    def states(self) -> Dict[int, AudioState]:
        with self._lock:
            return dict(self._states)

    def has_audio(self, turn_index: int) -> bool:
        with self._lock:
            return turn_index in self._handles

    @property
    def playing_turn(self) -> Optional[int]:
        with self._lock:
            return self._playing

    def _set_state(self, turn_index: int, state: AudioState) -> List[Tuple[int, AudioState]]:
        if self._states.get(turn_index) is state:
            return []
        self._states[turn_index] = state
        return [(turn_index, state)]

    def _notify(self, changes: List[Tuple[int, AudioState]]) -> None:
        if self.on_state_change is None:
            return
        for turn_index, state in changes:
            try:
                self.on_state_change(turn_index, state)
            except Exception as e:
                logger.error("Audio state listener failed: %s", e)

    def shutdown(self) -> None:
        """Stop playback and release the worker and the player."""
        self.stop()
        self.executor.shutdown(wait=False)
        self.player.close()


class ContextService:
    """Role selection and job-description extraction."""

    def __init__(self, llm_client):
        self.llm_client = llm_client

    @staticmethod
    def resolve_role(selected: str, context: str = "") -> Tuple[str, str]:
        """
        Turn a catalogue selection into (role title, context).

        Raises:
            ConfigurationError: Unknown role, or a custom role without context
        """
        if selected not in ROLES:
            raise ConfigurationError(f"Unknown role '{selected}'. Choose one of: {', '.join(ROLES)}")

        if selected == CUSTOM_ROLE:
            context = (context or "").strip()
            if not context:
                raise ConfigurationError("A custom role needs a job description (text or image)")
            return CUSTOM_ROLE_TITLE, context

        if context:
            logger.info("Ignoring job context for standard role %s", selected)
        return selected, ""

    def extract_from_image(self, path: str) -> str:
        """
        Extract job-description text from an image file.

        Args:
            path: Image file on disk

        Returns:
            Extracted text, or an error message when the model call fails

        Raises:
            ConfigurationError: If the file is not an image
            OSError: If the file cannot be read
        """
        mime_type, _ = mimetypes.guess_type(path)
        if not mime_type or not mime_type.startswith("image/"):
            raise ConfigurationError(f"Please provide an image file (got {mime_type or 'unknown type'})")

        with open(path, "rb") as f:
            image_base64 = base64.b64encode(f.read()).decode("ascii")

        logger.info("Analyzing job description image %s (%s)", path, mime_type)
        result = self.llm_client.analyze_image(
            image_base64, mime_type, InterviewPrompts.image_extraction_prompt()
        )
        if not result.ok:
            logger.error("Image analysis failed: %s", result.error)
            return InterviewPrompts.fallback_messages()["image_failed"].format(error=result.error)
        return result.value.strip()
