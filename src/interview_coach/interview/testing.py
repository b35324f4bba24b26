"""
Testing infrastructure with fake services for the interview system.
"""
import base64
import threading
from concurrent.futures import Executor, Future
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from .events import InterviewEvent, InterviewEventBus
from .orchestrator import InterviewSession
from .services import AudioPipeline
from ..infrastructure.audio import AudioPlayer
from ..infrastructure.llm import GatewayError, GatewayResult, SpeechPayload

TextResponse = Union[str, GatewayError, GatewayResult]


def _as_result(response: TextResponse) -> GatewayResult:
    if isinstance(response, GatewayResult):
        return response
    if isinstance(response, GatewayError):
        return GatewayResult.failure(response)
    return GatewayResult.success(response)


def make_speech_payload(samples: Sequence[int] = (0, 1000, -1000, 0),
                        sample_rate: int = 24000) -> SpeechPayload:
    """Build an L16 speech payload like the TTS model returns."""
    pcm = np.asarray(samples, dtype="<i2").tobytes()
    return SpeechPayload(
        audio_base64=base64.b64encode(pcm).decode("ascii"),
        mime_type=f"audio/L16;codec=pcm;rate={sample_rate}",
    )


class FakeLLMClient:
    """
    Scripted stand-in for GeminiRestClient.

    Text responses are consumed in order; a str is a success, a GatewayError
    a failure. When the script runs out, default_text is returned.
    """

    def __init__(self,
                 text_responses: Optional[List[TextResponse]] = None,
                 speech: Optional[SpeechPayload] = None,
                 image_response: TextResponse = "Job title: Backend Engineer",
                 default_text: str = "Tell me about a recent project."):
        self.text_responses = list(text_responses or [])
        self.speech = speech
        self.image_response = image_response
        self.default_text = default_text
        self.text_requests: List[Dict[str, Any]] = []
        self.speech_requests: List[str] = []
        self.image_requests: List[Dict[str, Any]] = []
        self.on_text_request = None

    def generate_text(self, prompt_parts, system_instruction, response_format=None) -> GatewayResult:
        self.text_requests.append({
            "prompt_parts": list(prompt_parts),
            "system_instruction": system_instruction,
            "response_format": response_format,
        })
        if self.text_responses:
            result = _as_result(self.text_responses.pop(0))
        else:
            result = GatewayResult.success(self.default_text)
        # Runs while the call is "in flight", after the response is chosen
        if self.on_text_request is not None:
            self.on_text_request()
        return result

    def synthesize_speech(self, text: str) -> Optional[SpeechPayload]:
        self.speech_requests.append(text)
        return self.speech

    def analyze_image(self, image_base64: str, mime_type: str, prompt: str) -> GatewayResult:
        self.image_requests.append({"image_base64": image_base64, "mime_type": mime_type, "prompt": prompt})
        return _as_result(self.image_response)

    def close(self) -> None:
        pass


class RecordingPlayer(AudioPlayer):
    """Player that records calls and finishes only when told to."""

    def __init__(self):
        self.played: List[bytes] = []
        self.stop_calls = 0
        self._pending: List[Any] = []
        self._lock = threading.Lock()

    def play(self, wav_bytes: bytes, on_finished) -> None:
        with self._lock:
            self.played.append(wav_bytes)
            self._pending.append(on_finished)

    def stop(self) -> None:
        with self._lock:
            self.stop_calls += 1

    def finish_next(self) -> bool:
        """Fire the oldest outstanding completion callback."""
        with self._lock:
            if not self._pending:
                return False
            callback = self._pending.pop(0)
        callback()
        return True

    def finish_all(self) -> None:
        """Fire every outstanding completion callback, oldest first."""
        with self._lock:
            callbacks, self._pending = self._pending, []
        for callback in callbacks:
            callback()


class ImmediateExecutor(Executor):
    """Runs submitted work synchronously on the calling thread."""

    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class ManualExecutor(Executor):
    """Queues submitted work until run_all() is called."""

    def __init__(self):
        self.tasks: List[Any] = []

    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        self.tasks.append((future, fn, args, kwargs))
        return future

    def run_all(self) -> None:
        tasks, self.tasks = self.tasks, []
        for future, fn, args, kwargs in tasks:
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)


class EventRecorder:
    """Collects every event emitted on a bus."""

    def __init__(self, event_bus: InterviewEventBus):
        self.events: List[InterviewEvent] = []
        event_bus.subscribe_all(self.events.append)

    def types(self) -> List[str]:
        return [e.event_type.value for e in self.events]


def create_fake_session(text_responses: Optional[List[TextResponse]] = None,
                        turn_limit: int = 3,
                        role: str = "Software Engineer",
                        context: str = "",
                        with_audio: bool = False,
                        autoplay: bool = False,
                        speech: Optional[SpeechPayload] = None) -> Dict[str, Any]:
    """Create a session wired to fakes, plus the fakes themselves."""
    llm_client = FakeLLMClient(text_responses, speech=speech or make_speech_payload())
    player = RecordingPlayer()
    audio = AudioPipeline(llm_client, player, executor=ImmediateExecutor()) if with_audio else None
    event_bus = InterviewEventBus()
    recorder = EventRecorder(event_bus)
    session = InterviewSession(
        llm_client,
        role=role,
        context=context,
        turn_limit=turn_limit,
        audio=audio,
        autoplay=autoplay,
        event_bus=event_bus,
        clock=lambda: 0.0,
    )
    return {
        "session": session,
        "llm_client": llm_client,
        "player": player,
        "audio": audio,
        "event_bus": event_bus,
        "recorder": recorder,
    }
