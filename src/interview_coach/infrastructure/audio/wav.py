"""
PCM to WAV conversion for synthesized speech.
"""
import io
import re
import wave
import base64
import binascii
import logging
from typing import Optional

import numpy as np

from ...config import DEFAULT_SAMPLE_RATE, PCM_MIME_PREFIX

logger = logging.getLogger("wav")

_RATE_PATTERN = re.compile(r"rate=(\d+)")


def parse_sample_rate(mime_type: str, default: int = DEFAULT_SAMPLE_RATE) -> int:
    """Read the sample rate from a mime type such as 'audio/L16;codec=pcm;rate=24000'."""
    match = _RATE_PATTERN.search(mime_type or "")
    return int(match.group(1)) if match else default


def is_pcm16(mime_type: Optional[str]) -> bool:
    return bool(mime_type) and mime_type.startswith(PCM_MIME_PREFIX)


def decode_pcm16(audio_base64: str) -> np.ndarray:
    """Decode base64 little-endian 16-bit PCM into an int16 array."""
    raw = base64.b64decode(audio_base64, validate=True)
    if len(raw) % 2:
        raise ValueError(f"PCM payload has odd length {len(raw)}")
    return np.frombuffer(raw, dtype="<i2")


def pcm_to_wav(pcm16: np.ndarray, sample_rate: int) -> bytes:
    """
    Wrap mono 16-bit PCM samples in a canonical 44-byte RIFF/WAVE header.

    Args:
        pcm16: Samples (anything convertible to int16)
        sample_rate: Samples per second

    Returns:
        Complete WAV file bytes
    """
    samples = np.asarray(pcm16, dtype="<i2")
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(samples.tobytes())
    return buf.getvalue()


def speech_to_wav(audio_base64: Optional[str], mime_type: Optional[str]) -> Optional[bytes]:
    """
    Convert a speech payload into WAV bytes.

    Returns None when the payload is absent, malformed or not L16 PCM.
    """
    if not audio_base64 or not is_pcm16(mime_type):
        logger.warning("Unsupported or missing audio payload (mime type %r)", mime_type)
        return None
    try:
        samples = decode_pcm16(audio_base64)
    except (binascii.Error, ValueError) as e:
        logger.warning("Malformed PCM payload: %s", e)
        return None
    return pcm_to_wav(samples, parse_sample_rate(mime_type))


def read_wav_samples(wav_bytes: bytes) -> np.ndarray:
    """Decode the data chunk of a mono 16-bit WAV file."""
    with wave.open(io.BytesIO(wav_bytes), "rb") as wf:
        frames = wf.readframes(wf.getnframes())
    return np.frombuffer(frames, dtype="<i2")
