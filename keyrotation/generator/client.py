"""Generative-content request wrapper for keyrotation.

Every outbound call picks its API key from the rotator at send time, so a
rotation between calls takes effect on the next request without rebuilding
the client.

Failure handling (one attempt per call, no retries). Errors are always charged
to the key the request was sent with, which may be a fallback key rather than
the one at current_index:
  - 401 / 403 / 429 → report_error(), rotate() to another active key if there
    is one, raise UpstreamError. The caller may retry and will use the new key.
  - Other non-2xx   → report_error(), raise UpstreamError. Rotates only if the
    report deactivated the key.
  - httpx.ConnectError / TimeoutException / RemoteProtocolError
                    → same as other non-2xx.
  - No active keys  → NoActiveCredentialsError propagates before any I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from keyrotation.rotation.rotator import Credential, CredentialRotator, RotationError
from keyrotation.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Constants ────────────────────────────────────────────────────────────────

API_KEY_HEADER: str = "x-goog-api-key"

# Status codes that indicate the key itself is the problem (auth or quota)
ROTATE_ON_STATUS: frozenset[int] = frozenset({401, 403, 429})

POOL_MAX_CONNECTIONS: int = 20
POOL_MAX_KEEPALIVE: int = 20
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds


class UpstreamError(Exception):
    """Raised when a generateContent call fails.

    status_code is None for transport failures. rotated is True when the
    client switched to a different key after the failure.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, rotated: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.rotated = rotated


@dataclass(frozen=True)
class GenerationResult:
    """Decoded response body plus a snapshot of the key that produced it."""

    body: dict[str, Any]
    credential: Credential


def create_http_client(timeout_s: float = 30.0) -> httpx.AsyncClient:
    """Create a shared httpx.AsyncClient with connection pooling configured."""
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(timeout_s),
    )


class ContentGeneratorClient:
    """Sends generateContent requests using the rotator's current key.

    Args:
        rotator:     Shared CredentialRotator (one per process).
        http_client: Shared httpx.AsyncClient — never created per request.
        base_url:    API root, e.g. https://generativelanguage.googleapis.com
        model:       Default model name for generate_content().
    """

    def __init__(
        self,
        rotator: CredentialRotator,
        http_client: httpx.AsyncClient,
        base_url: str,
        model: str,
    ) -> None:
        self.rotator = rotator
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.model = model

    def _url(self, model: str) -> str:
        return f"{self.base_url}/v1beta/models/{model}:generateContent"

    async def generate_content(
        self,
        contents: list[dict[str, Any]],
        model: Optional[str] = None,
        **extra: Any,
    ) -> dict[str, Any]:
        """POST a generateContent request and return the decoded JSON body."""
        result = await self.generate(contents, model=model, **extra)
        return result.body

    async def generate(
        self,
        contents: list[dict[str, Any]],
        model: Optional[str] = None,
        **extra: Any,
    ) -> GenerationResult:
        """Like generate_content(), but also report which key was used.

        Raises:
            NoActiveCredentialsError: Every key has been deactivated.
            UpstreamError:            Transport failure or non-2xx response.
        """
        credential = self.rotator.get_current()
        payload: dict[str, Any] = {"contents": contents, **extra}
        url = self._url(model or self.model)

        try:
            response = await self.http_client.post(
                url,
                json=payload,
                headers={API_KEY_HEADER: credential.value},
            )
        except (httpx.ConnectError, httpx.TimeoutException, httpx.RemoteProtocolError) as exc:
            message = f"{type(exc).__name__}: {exc}"
            rotated = self._record_failure(credential, message, key_at_fault=False)
            logger.warning(
                "Upstream unreachable",
                key_index=credential.index,
                error=message,
                rotated=rotated,
            )
            raise UpstreamError(message, rotated=rotated) from exc

        if response.is_success:
            return GenerationResult(body=response.json(), credential=credential)

        message = f"HTTP {response.status_code}: {_error_detail(response)}"
        rotated = self._record_failure(
            credential, message, key_at_fault=response.status_code in ROTATE_ON_STATUS
        )

        logger.warning(
            "Upstream request failed",
            key_index=credential.index,
            status_code=response.status_code,
            rotated=rotated,
        )
        raise UpstreamError(message, status_code=response.status_code, rotated=rotated)

    def _record_failure(self, credential: Credential, message: str, key_at_fault: bool) -> bool:
        """Charge the failure to the key the request was sent with.

        Rotates when the key is at fault, or when the report just deactivated
        it, so current_index names a key that will actually be served next.
        Returns True when a different key is now current.
        """
        self.rotator.report_error(message, index=credential.index)
        if not key_at_fault:
            used = self.rotator.get_all_status()[credential.index]
            if used.active:
                return False
        return self._rotate_away_from(credential.index)

    def _rotate_away_from(self, failed_index: int) -> bool:
        if self.rotator.get_total_count() <= 1:
            return False
        try:
            credential = self.rotator.rotate()
        except RotationError as exc:
            logger.error("Key rotation failed", error=exc.message, code=exc.code)
            return False
        return credential.index != failed_index


def _error_detail(response: httpx.Response) -> str:
    """Extract ``error.message`` from a Google-style error body, else raw text."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return response.text[:200]
