"""Shared httpx plumbing for HTTP translation providers."""

from __future__ import annotations

from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from translationrouter.domain.interfaces.provider_adapter import ProviderAdapter
from translationrouter.domain.models.translation_outcome import OutcomeKind, TranslationOutcome


class HttpProviderAdapter(ProviderAdapter):
    """Base class for adapters that talk to a provider over HTTP.

    Subclasses implement ``translate`` and ``classify_status``; this class
    owns client construction and the mapping of a non-200 response to a
    TranslationOutcome through ``classify_status``.
    """

    BASE_URL = ""
    TIMEOUT = 30.0
    """Request timeout in seconds."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            base_url: Optional base URL override (for testing).
            timeout: Optional timeout override (for testing).
            transport: Optional httpx transport (e.g. ``httpx.MockTransport``).
        """
        self.base_url = base_url
        self.timeout = timeout or self.TIMEOUT
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _post(
        self, url: str, **kwargs: Any
    ) -> httpx.Response | TranslationOutcome:
        """POST and return the response, or a TransientError outcome on transport failure."""
        try:
            async with self._client() as client:
                return await client.post(url, **kwargs)
        except httpx.TimeoutException:
            return TranslationOutcome.transient_error(
                message=f"Request to {self.provider_id} timed out after {self.timeout}s",
                provider_code="timeout",
            )
        except httpx.TransportError as e:
            return TranslationOutcome.transient_error(
                message=f"Network error connecting to {self.provider_id}: {e}",
                provider_code="network_error",
            )

    def outcome_for_response(self, response: httpx.Response) -> TranslationOutcome:
        """Map a non-success HTTP response to a TranslationOutcome."""
        details = self._extract_error_details(response)
        error_code = details.get("code")
        error_code = str(error_code) if error_code is not None else None
        kind = self.classify_status(response.status_code, error_code)
        message = details.get("message") or f"{self.provider_id} returned HTTP {response.status_code}"
        provider_code = error_code or str(response.status_code)

        if kind == OutcomeKind.QuotaExceeded:
            return TranslationOutcome.quota_exceeded(message=message, provider_code=provider_code)
        if kind == OutcomeKind.RateLimited:
            return TranslationOutcome.rate_limited(
                message=message,
                provider_code=provider_code,
                retry_after=self._extract_retry_after(response),
            )
        if kind == OutcomeKind.PermanentError:
            return TranslationOutcome.permanent_error(message=message, provider_code=provider_code)
        return TranslationOutcome.transient_error(message=message, provider_code=provider_code)

    @staticmethod
    def _extract_retry_after(response: httpx.Response) -> float | None:
        """Extract the Retry-After header as seconds, if present.

        Retry-After can be either seconds or an HTTP date.
        """
        header = response.headers.get("retry-after")
        if not header:
            return None

        try:
            seconds = float(header)
            return seconds if seconds >= 0 else None
        except ValueError:
            pass

        try:
            retry_date = parsedate_to_datetime(header)
        except (ValueError, TypeError):
            return None
        if retry_date.tzinfo is None:
            # RFC 2822 "-0000" parses naive; HTTP dates are always UTC.
            retry_date = retry_date.replace(tzinfo=UTC)
        delta = (retry_date - datetime.now(UTC)).total_seconds()
        return delta if delta > 0 else None

    @staticmethod
    def _extract_error_details(response: httpx.Response) -> dict[str, Any]:
        """Extract ``message`` and ``code`` from an error body.

        Understands ``{"error": {"code": ..., "message": ...}}`` (Azure) and
        flat ``{"message": ...}`` (DeepL) bodies.
        """
        details: dict[str, Any] = {}

        try:
            error_data = response.json()
        except ValueError:
            if response.text:
                details["message"] = response.text
            return details

        if isinstance(error_data, dict):
            if isinstance(error_data.get("error"), dict):
                error_obj = error_data["error"]
                details["message"] = error_obj.get("message")
                details["code"] = error_obj.get("code")
            else:
                details["message"] = error_data.get("message")
                details["code"] = error_data.get("code")
        return details
