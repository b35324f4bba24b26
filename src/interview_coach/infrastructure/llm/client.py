"""
Gemini REST client for text, speech and image capability calls.
"""
import json
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, List

import google.auth
import google.auth.exceptions
import google.auth.transport.requests
from google.oauth2 import service_account

from .gateway import ResilientGateway, GatewayRequest, GatewayResult, GatewayError
from ...config import (
    AI_STUDIO_BASE_URL, VERTEX_LOCATION, MODEL_NAME_TEXT, MODEL_NAME_TTS,
    LLM_TIMEOUT, TTS_VOICE
)

logger = logging.getLogger("llm_client")

_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


@dataclass
class SpeechPayload:
    """Raw audio returned by the speech model."""
    audio_base64: str
    mime_type: str


class GeminiRestClient:
    """REST-based client for Gemini models (AI Studio key or Vertex AI credentials)."""

    def __init__(self,
                 api_key: str = "",
                 provider: str = "ai_studio",
                 project: Optional[str] = None,
                 location: str = VERTEX_LOCATION,
                 text_model: str = MODEL_NAME_TEXT,
                 tts_model: str = MODEL_NAME_TTS,
                 voice: str = TTS_VOICE,
                 credentials_json: Optional[str] = None,
                 timeout: int = LLM_TIMEOUT,
                 gateway: Optional[ResilientGateway] = None):
        if provider == "vertex" and not project:
            raise ValueError("project is required for the vertex provider")
        self.api_key = api_key
        self.provider = provider
        self.project = project
        self.location = location
        self.text_model = text_model
        self.tts_model = tts_model
        self.voice = voice
        self.credentials_json = credentials_json
        self.timeout = timeout
        self.gateway = gateway or ResilientGateway()
        self._token: Optional[str] = None

    # ------------------------------------------------------------------
    # Auth and endpoints
    # ------------------------------------------------------------------

    def _refresh_token(self):
        """Refresh the OAuth token for Vertex API calls."""
        if self.credentials_json:
            creds = service_account.Credentials.from_service_account_file(
                self.credentials_json, scopes=_SCOPES,
            )
        else:
            creds, _ = google.auth.default(scopes=_SCOPES)

        auth_req = google.auth.transport.requests.Request()
        creds.refresh(auth_req)
        self._token = creds.token

    def _endpoint(self, model: str) -> str:
        if self.provider == "vertex":
            return (
                f"https://{self.location}-aiplatform.googleapis.com/v1/projects/{self.project}"
                f"/locations/{self.location}/publishers/google/models/{model}:generateContent"
            )
        return f"{AI_STUDIO_BASE_URL}/models/{model}:generateContent"

    def _build_request(self, model: str, body: Dict[str, Any]) -> GatewayRequest:
        headers = {"Content-Type": "application/json"}
        params: Dict[str, str] = {}
        if self.provider == "vertex":
            if not self._token:
                self._refresh_token()
            headers["Authorization"] = f"Bearer {self._token}"
        else:
            params["key"] = self.api_key
        return GatewayRequest(
            url=self._endpoint(model), json=body, headers=headers,
            params=params, timeout=self.timeout,
        )

    def _post(self, model: str, body: Dict[str, Any]) -> GatewayResult[Dict[str, Any]]:
        try:
            request = self._build_request(model, body)
        except google.auth.exceptions.GoogleAuthError as e:
            logger.error("Credential refresh failed: %s", e)
            return GatewayResult.failure(GatewayError(f"credential refresh failed: {e}"))

        result = self.gateway.execute(request)
        if not result.ok:
            return GatewayResult.failure(result.error)
        try:
            return GatewayResult.success(result.value.json())
        except ValueError as e:
            logger.error("Response body was not JSON: %s", e)
            return GatewayResult.failure(GatewayError("response body was not JSON", attempts=1))

    # ------------------------------------------------------------------
    # Capability calls
    # ------------------------------------------------------------------

    def generate_text(self,
                      prompt_parts: List[str],
                      system_instruction: str,
                      response_format: Optional[Dict[str, Any]] = None) -> GatewayResult[str]:
        """
        Generate text from the text model.

        Args:
            prompt_parts: User prompt fragments, sent as separate parts
            system_instruction: System instruction for the model
            response_format: Extra generationConfig entries, e.g. responseMimeType
                and responseSchema for structured output

        Returns:
            Raw model text (JSON-encoded when structured output was requested)
        """
        body: Dict[str, Any] = {
            "contents": [{"parts": [{"text": part} for part in prompt_parts]}],
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "generationConfig": dict(response_format or {}),
        }
        logger.debug("Sending text prompt (%d parts) to %s", len(prompt_parts), self.text_model)

        result = self._post(self.text_model, body)
        if not result.ok:
            return GatewayResult.failure(result.error)

        text = _first_part(result.value).get("text")
        if not isinstance(text, str):
            logger.warning("No text in model response: %s", _preview(result.value))
            return GatewayResult.failure(GatewayError("model returned no text", attempts=1))

        logger.debug("Raw LLM output: %r", text)
        return GatewayResult.success(text)

    def synthesize_speech(self, text: str) -> Optional[SpeechPayload]:
        """Request spoken audio for text; None when no audio came back."""
        body: Dict[str, Any] = {
            "contents": [{"parts": [{"text": f"Say informatively: {text}"}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self.voice}}
                },
            },
        }

        result = self._post(self.tts_model, body)
        if not result.ok:
            logger.error("TTS request failed: %s", result.error)
            return None

        inline = _first_part(result.value).get("inlineData") or {}
        audio = inline.get("data")
        mime_type = inline.get("mimeType")
        if not isinstance(audio, str) or not isinstance(mime_type, str):
            logger.warning("TTS response carried no inline audio")
            return None
        return SpeechPayload(audio_base64=audio, mime_type=mime_type)

    def analyze_image(self, image_base64: str, mime_type: str, prompt: str) -> GatewayResult[str]:
        """Extract text from an image with the text model."""
        body: Dict[str, Any] = {
            "contents": [{
                "role": "user",
                "parts": [
                    {"text": prompt},
                    {"inlineData": {"mimeType": mime_type, "data": image_base64}},
                ],
            }],
        }

        result = self._post(self.text_model, body)
        if not result.ok:
            return GatewayResult.failure(result.error)

        text = _first_part(result.value).get("text")
        if not isinstance(text, str):
            return GatewayResult.failure(GatewayError("model returned no text", attempts=1))
        return GatewayResult.success(text)

    def close(self) -> None:
        self.gateway.close()


def _first_part(resp_json: Dict[str, Any]) -> Dict[str, Any]:
    """Return candidates[0].content.parts[0], or {} when the shape is off."""
    cands = resp_json.get("candidates") if isinstance(resp_json, dict) else None
    if not cands or not isinstance(cands, list) or not isinstance(cands[0], dict):
        return {}
    parts = (cands[0].get("content") or {}).get("parts")
    if not parts or not isinstance(parts, list) or not isinstance(parts[0], dict):
        return {}
    return parts[0]


def _preview(resp_json: Any, limit: int = 200) -> str:
    text = json.dumps(resp_json, separators=(",", ":"))
    return text if len(text) <= limit else text[:limit - 3] + "..."
