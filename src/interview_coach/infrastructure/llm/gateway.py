"""
Retrying HTTP gateway used by every outbound model call.

Failures come back as values (GatewayResult) instead of exceptions so callers
can pick a degraded outcome without try/except control flow.
"""
import time
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

import requests

from ...config import GATEWAY_MAX_ATTEMPTS, GATEWAY_BASE_DELAY_SECONDS, LLM_TIMEOUT

logger = logging.getLogger("gateway")

T = TypeVar("T")
U = TypeVar("U")


@dataclass
class GatewayRequest:
    """A single outbound HTTP request."""
    url: str
    method: str = "POST"
    json: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)
    timeout: float = LLM_TIMEOUT


@dataclass
class GatewayError:
    """Terminal failure after all attempts were used."""
    message: str
    attempts: int = 0
    status_code: Optional[int] = None

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (status {self.status_code}, {self.attempts} attempts)"
        return f"{self.message} ({self.attempts} attempts)"


@dataclass
class GatewayResult(Generic[T]):
    """Either a value or a GatewayError, never both."""
    value: Optional[T] = None
    error: Optional[GatewayError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "GatewayResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: GatewayError) -> "GatewayResult[T]":
        return cls(error=error)

    def map(self, func: Callable[[T], U]) -> "GatewayResult[U]":
        """Apply func to the value of a successful result."""
        if not self.ok:
            return GatewayResult(error=self.error)
        return GatewayResult(value=func(self.value))

    def value_or(self, default: T) -> T:
        return self.value if self.ok else default


class ResilientGateway:
    """
    Executes requests with bounded exponential-backoff retry.

    Every non-2xx status and every transport exception counts as a retryable
    failure; there is no distinction between client and server errors.
    After attempt n fails (n counted from 0) the gateway sleeps
    base_delay * 2**n seconds, except after the final attempt.
    """

    def __init__(self,
                 session: Optional[requests.Session] = None,
                 max_attempts: int = GATEWAY_MAX_ATTEMPTS,
                 base_delay: float = GATEWAY_BASE_DELAY_SECONDS,
                 sleep: Callable[[float], None] = time.sleep):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.session = session or requests.Session()
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    def execute(self, request: GatewayRequest) -> GatewayResult[requests.Response]:
        """Send the request, retrying until it succeeds or attempts run out."""
        last_status: Optional[int] = None
        last_reason = "no attempt made"

        for attempt in range(self.max_attempts):
            try:
                resp = self.session.request(
                    request.method,
                    request.url,
                    json=request.json,
                    headers=request.headers,
                    params=request.params,
                    timeout=request.timeout,
                )
            except requests.RequestException as e:
                last_status = None
                last_reason = f"transport error: {e}"
            else:
                if 200 <= resp.status_code < 300:
                    if attempt > 0:
                        logger.info("Request succeeded on attempt %d", attempt + 1)
                    return GatewayResult.success(resp)
                last_status = resp.status_code
                last_reason = f"HTTP error! status: {resp.status_code}"

            logger.warning("Attempt %d/%d failed: %s", attempt + 1, self.max_attempts, last_reason)
            if attempt < self.max_attempts - 1:
                self._sleep(self.base_delay * (2 ** attempt))

        logger.error("Request to %s failed after %d attempts: %s",
                     _redact(request.url), self.max_attempts, last_reason)
        return GatewayResult.failure(GatewayError(
            message="Gemini API request failed after multiple retries",
            attempts=self.max_attempts,
            status_code=last_status,
        ))

    def close(self) -> None:
        self.session.close()


def _redact(url: str) -> str:
    """Drop the query string, which may carry an API key."""
    return url.split("?", 1)[0]
