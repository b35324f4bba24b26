"""
Interview Coach Configuration System
====================================

This file contains ALL configuration for the interview coach.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass
from typing import Optional


# =============================================================================
# USER SETTINGS - Edit these to customize the interview
# =============================================================================

# REQUIRED: Set your Gemini API key (ai_studio) or Google Cloud project (vertex)
GEMINI_API_KEY = ""
GEMINI_PROVIDER = "ai_studio"  # Options: ai_studio, vertex
GOOGLE_CLOUD_PROJECT = "your-project-id"
GOOGLE_APPLICATION_CREDENTIALS = None  # Optional: path to credentials JSON

# Interview settings
TURN_LIMIT = 5

# Speech settings
ENABLE_TTS = True
AUTOPLAY = True
TTS_VOICE = "Kore"
LANGUAGE_CODE = "en-US"

# Logging
LOG_FILE = "./_interview/interview.log"
LOG_LEVEL = "INFO"


# =============================================================================
# ROLE CATALOGUE
# =============================================================================

CUSTOM_ROLE = "Custom Role (via Job Description/Image)"

ROLES = [
    "Software Engineer",
    "Sales Representative",
    "Retail Associate",
    "Data Scientist",
    "Product Manager",
    CUSTOM_ROLE,
]


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# LLM
MODEL_NAME_TEXT = "gemini-2.5-flash-preview-09-2025"
MODEL_NAME_TTS = "gemini-2.5-flash-preview-tts"
AI_STUDIO_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
VERTEX_LOCATION = "us-central1"
LLM_TIMEOUT = 60

# Gateway retry policy: delay after failed attempt n is BASE * 2**n seconds
GATEWAY_MAX_ATTEMPTS = 3
GATEWAY_BASE_DELAY_SECONDS = 1.0

# Audio
DEFAULT_SAMPLE_RATE = 16000
PCM_MIME_PREFIX = "audio/L16"
PLAYER_COMMANDS = (("afplay",), ("aplay", "-q"))
AUDIO_WORKERS = 1

# Speech capture
CAPTURE_SAMPLE_RATE = 16000
CAPTURE_CHANNELS = 1
CAPTURE_CHUNK_FRAMES = 1600  # 100 ms at 16 kHz
CAPTURE_INPUT_DEVICE = None  # None uses the default input device


class ConfigurationError(ValueError):
    """Raised when required settings are missing or inconsistent."""


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Main configuration object."""
    gemini_api_key: str = ""
    provider: str = GEMINI_PROVIDER
    google_cloud_project: Optional[str] = None
    google_application_credentials: Optional[str] = None
    vertex_location: str = VERTEX_LOCATION
    model_name_text: str = MODEL_NAME_TEXT
    model_name_tts: str = MODEL_NAME_TTS
    llm_timeout: int = LLM_TIMEOUT
    turn_limit: int = TURN_LIMIT
    enable_tts: bool = ENABLE_TTS
    autoplay: bool = AUTOPLAY
    tts_voice: str = TTS_VOICE
    language_code: str = LANGUAGE_CODE
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL
    max_attempts: int = GATEWAY_MAX_ATTEMPTS
    base_delay_seconds: float = GATEWAY_BASE_DELAY_SECONDS


def get_config() -> Config:
    """Load configuration from the environment, falling back to the settings above."""
    provider = (os.getenv("GEMINI_PROVIDER") or GEMINI_PROVIDER).strip().lower()
    api_key = os.getenv("GEMINI_API_KEY") or GEMINI_API_KEY
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    credentials = os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS

    if provider not in ("ai_studio", "vertex"):
        raise ConfigurationError(f"Unknown GEMINI_PROVIDER '{provider}' (expected ai_studio or vertex)")
    if provider == "ai_studio" and not api_key:
        raise ConfigurationError("Please set GEMINI_API_KEY in config.py or as environment variable")
    if provider == "vertex" and project == "your-project-id":
        raise ConfigurationError("Please set GOOGLE_CLOUD_PROJECT in config.py or as environment variable")

    try:
        turn_limit = int(os.getenv("INTERVIEW_TURN_LIMIT", TURN_LIMIT))
    except ValueError:
        raise ConfigurationError("INTERVIEW_TURN_LIMIT must be an integer")
    if turn_limit < 1:
        raise ConfigurationError("INTERVIEW_TURN_LIMIT must be at least 1")

    return Config(
        gemini_api_key=api_key,
        provider=provider,
        google_cloud_project=project if provider == "vertex" else None,
        google_application_credentials=credentials,
        turn_limit=turn_limit,
        autoplay=_env_flag("INTERVIEW_AUTOPLAY", AUTOPLAY),
        log_file=os.getenv("INTERVIEW_LOG_FILE") or LOG_FILE,
        log_level=(os.getenv("INTERVIEW_LOG_LEVEL") or LOG_LEVEL).upper(),
    )
