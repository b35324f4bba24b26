"""
Audio infrastructure for the interview coach.

- wav: PCM decoding and WAV container encoding
- playback: non-blocking system audio playback
- speech: speech-to-text capture
"""

from .wav import pcm_to_wav, speech_to_wav, parse_sample_rate, read_wav_samples
from .playback import AudioPlayer, SubprocessPlayer

__all__ = [
    "pcm_to_wav",
    "speech_to_wav",
    "parse_sample_rate",
    "read_wav_samples",
    "AudioPlayer",
    "SubprocessPlayer",
]
