"""LLM infrastructure: retrying gateway and Gemini REST client."""

from .gateway import ResilientGateway, GatewayRequest, GatewayResult, GatewayError
from .client import GeminiRestClient, SpeechPayload

__all__ = [
    "ResilientGateway", "GatewayRequest", "GatewayResult", "GatewayError",
    "GeminiRestClient", "SpeechPayload",
]
