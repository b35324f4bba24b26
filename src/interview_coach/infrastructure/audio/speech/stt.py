"""
Speech-to-text capture using PyAudio and Google Cloud Speech.
"""
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any, Callable, List, Optional

from google.cloud import speech

from ....config import (
    LANGUAGE_CODE, CAPTURE_SAMPLE_RATE, CAPTURE_CHANNELS, CAPTURE_CHUNK_FRAMES, CAPTURE_INPUT_DEVICE
)

logger = logging.getLogger("speech_stt")

SAMPLE_WIDTH_BYTES = 2


def recognize_google_sync(pcm16_bytes: bytes,
                          sr_hz: int = CAPTURE_SAMPLE_RATE,
                          language: str = LANGUAGE_CODE) -> str:
    """
    Synchronous Google Cloud Speech-to-Text recognition.
    Returns transcribed text or empty string if no speech detected.
    """
    if not pcm16_bytes:
        return ""

    try:
        client = speech.SpeechClient()
        audio = speech.RecognitionAudio(content=pcm16_bytes)
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=sr_hz,
            language_code=language,
            enable_automatic_punctuation=True,
        )
        resp = client.recognize(config=config, audio=audio)
        texts = [r.alternatives[0].transcript for r in resp.results if r.alternatives]
        return " ".join(texts).strip()
    except Exception as e:
        logger.error("Speech recognition failed: %s", e)
        return ""


def _open_pyaudio():
    # PyAudio is imported lazily so the package imports without PortAudio
    import pyaudio
    return pyaudio.PyAudio()


class SpeechCapture(ABC):
    """
    Start/stop speech capture with a single asynchronous result.

    start() returns a Future that resolves to the transcript (possibly empty)
    after stop() is called.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Whether capture can work in this environment."""

    @abstractmethod
    def start(self) -> "Future[str]":
        """Begin listening."""

    @abstractmethod
    def stop(self) -> None:
        """Stop listening; the pending Future resolves shortly after."""

    @property
    @abstractmethod
    def is_listening(self) -> bool:
        ...


class GoogleSpeechCapture(SpeechCapture):
    """Records 16-bit PCM from a PyAudio input stream and transcribes it on stop."""

    def __init__(self,
                 language: str = LANGUAGE_CODE,
                 sample_rate: int = CAPTURE_SAMPLE_RATE,
                 channels: int = CAPTURE_CHANNELS,
                 chunk_frames: int = CAPTURE_CHUNK_FRAMES,
                 input_device: Optional[int] = CAPTURE_INPUT_DEVICE,
                 audio_factory: Callable[[], Any] = _open_pyaudio):
        self.language = language
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_frames = chunk_frames
        self.input_device = input_device
        self.audio_factory = audio_factory
        self._lock = threading.Lock()
        self._pa = None
        self._stream = None
        self._stop_event: Optional[threading.Event] = None
        self._reader: Optional[threading.Thread] = None
        self._chunks: List[bytes] = []
        self._future: Optional[Future] = None

    def is_available(self) -> bool:
        try:
            pa = self.audio_factory()
        except Exception as e:
            logger.warning("PyAudio unavailable: %s", e)
            return False
        try:
            if self.input_device is None:
                info = pa.get_default_input_device_info()
            else:
                info = pa.get_device_info_by_index(self.input_device)
            logger.info("Input device: %s", info.get("name", "unknown"))
            return True
        except Exception as e:
            logger.warning("No usable input device: %s", e)
            return False
        finally:
            pa.terminate()

    @property
    def is_listening(self) -> bool:
        with self._lock:
            return self._stream is not None

    def start(self) -> "Future[str]":
        with self._lock:
            if self._future is not None and self._stream is not None:
                return self._future

            future: Future = Future()
            pa = None
            try:
                pa = self.audio_factory()
                stream = pa.open(
                    format=pa.get_format_from_width(SAMPLE_WIDTH_BYTES),
                    channels=self.channels,
                    rate=self.sample_rate,
                    input=True,
                    input_device_index=self.input_device,
                    frames_per_buffer=self.chunk_frames,
                )
            except Exception as e:
                logger.error("Failed to open microphone: %s", e)
                if pa is not None:
                    pa.terminate()
                future.set_result("")
                return future

            self._pa = pa
            self._stream = stream
            self._chunks = []
            self._stop_event = threading.Event()
            self._reader = threading.Thread(
                target=self._drain, args=(stream, self._stop_event, self._chunks),
                name="speech-capture", daemon=True,
            )
            self._reader.start()
            self._future = future
            logger.info("Speech capture started (%d Hz, %d channel(s))", self.sample_rate, self.channels)
            return future

    def _drain(self, stream, stop_event: threading.Event, chunks: List[bytes]) -> None:
        while not stop_event.is_set():
            try:
                chunks.append(stream.read(self.chunk_frames, exception_on_overflow=False))
            except OSError as e:
                logger.warning("Microphone read failed: %s", e)
                break

    def stop(self) -> None:
        with self._lock:
            pa, stream, stop_event = self._pa, self._stream, self._stop_event
            reader, future, chunks = self._reader, self._future, self._chunks
            self._pa = None
            self._stream = None
            self._stop_event = None
            self._reader = None
            self._future = None
        if stream is None or future is None:
            return

        stop_event.set()
        if reader is not None:
            reader.join()
        try:
            stream.stop_stream()
            stream.close()
        except Exception as e:
            logger.warning("Failed to close microphone stream: %s", e)
        finally:
            pa.terminate()

        pcm = b"".join(chunks)
        logger.info("Speech capture stopped (%d bytes)", len(pcm))

        worker = threading.Thread(
            target=self._recognize, args=(pcm, future), name="speech-recognize", daemon=True,
        )
        worker.start()

    def _recognize(self, pcm: bytes, future: Future) -> None:
        try:
            transcript = recognize_google_sync(pcm, sr_hz=self.sample_rate, language=self.language)
        except Exception as e:
            logger.error("Speech recognition worker failed: %s", e)
            future.set_exception(e)
            return
        logger.info("Speech recognition result: %s", transcript or "(empty)")
        future.set_result(transcript)
