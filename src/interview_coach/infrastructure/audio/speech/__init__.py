"""Speech-to-text capture."""

from .stt import SpeechCapture, GoogleSpeechCapture, recognize_google_sync

__all__ = ["SpeechCapture", "GoogleSpeechCapture", "recognize_google_sync"]
