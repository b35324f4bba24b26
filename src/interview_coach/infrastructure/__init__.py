"""Infrastructure components for the interview coach.

This module contains low-level technical components: the retrying HTTP
gateway, the Gemini client, and audio encoding and playback.
"""

# Audio infrastructure
from .audio import pcm_to_wav, speech_to_wav, parse_sample_rate, AudioPlayer, SubprocessPlayer

# LLM infrastructure
from .llm import GeminiRestClient, ResilientGateway, GatewayResult, GatewayError

__all__ = [
    # Audio
    "pcm_to_wav", "speech_to_wav", "parse_sample_rate", "AudioPlayer", "SubprocessPlayer",

    # LLM
    "GeminiRestClient", "ResilientGateway", "GatewayResult", "GatewayError",
]
