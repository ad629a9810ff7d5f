"""DeepL provider adapter implementation."""

from __future__ import annotations

import httpx

from translationrouter.domain.interfaces.provider_adapter import UsageQueryError
from translationrouter.domain.models.provider_key import ProviderKey
from translationrouter.domain.models.translation_outcome import OutcomeKind, TranslationOutcome
from translationrouter.domain.models.translation_request import TranslationRequest
from translationrouter.domain.models.usage_report import UsageReport
from translationrouter.infrastructure.adapters.http_adapter import HttpProviderAdapter


class DeepLAdapter(HttpProviderAdapter):
    """DeepL API adapter.

    Free-plan credentials end in ``:fx`` and must be sent to the free
    endpoint; every other credential goes to the pro endpoint. DeepL reports
    an exhausted character quota with HTTP 456.

    Example:
        ```python
        adapter = DeepLAdapter()
        outcome = await adapter.translate(key, "abc...:fx", TranslationRequest(text="Hi", target_lang="de"))
        ```
    """

    provider_id = "deepl"

    FREE_BASE_URL = "https://api-free.deepl.com"
    PRO_BASE_URL = "https://api.deepl.com"

    QUOTA_EXCEEDED_STATUS = 456

    @property
    def supports_usage_query(self) -> bool:
        return True

    def endpoint_for(self, credential: str) -> str:
        """Base URL for a credential (an explicit base_url override wins)."""
        if self.base_url:
            return self.base_url.rstrip("/")
        return self.FREE_BASE_URL if credential.endswith(":fx") else self.PRO_BASE_URL

    @staticmethod
    def _headers(credential: str) -> dict[str, str]:
        return {"Authorization": f"DeepL-Auth-Key {credential}"}

    async def translate(
        self,
        key: ProviderKey,
        credential: str,
        request: TranslationRequest,
    ) -> TranslationOutcome:
        body: dict[str, object] = {"text": [request.text], "target_lang": request.target_lang}
        if request.source_lang:
            body["source_lang"] = request.source_lang

        response = await self._post(
            f"{self.endpoint_for(credential)}/v2/translate",
            json=body,
            headers=self._headers(credential),
        )
        if isinstance(response, TranslationOutcome):
            return response
        if response.status_code != 200:
            return self.outcome_for_response(response)

        try:
            text = response.json()["translations"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError):
            return TranslationOutcome.transient_error(
                message="Malformed DeepL translation response",
                provider_code="malformed_response",
            )
        return TranslationOutcome.success(text, provider_code="200")

    def classify_status(self, status_code: int, error_code: str | None = None) -> OutcomeKind:
        """Map a DeepL HTTP status to an OutcomeKind.

        401/403 mean the key itself is unusable: TransientError cools the key
        down and fails over instead of failing the request.
        """
        if status_code == 200:
            return OutcomeKind.Success
        if status_code == self.QUOTA_EXCEEDED_STATUS:
            return OutcomeKind.QuotaExceeded
        if status_code == 429:
            return OutcomeKind.RateLimited
        if status_code in (401, 403):
            return OutcomeKind.TransientError
        if 400 <= status_code < 500:
            return OutcomeKind.PermanentError
        return OutcomeKind.TransientError

    async def query_usage(self, key: ProviderKey, credential: str) -> UsageReport:
        """Fetch ``character_count`` / ``character_limit`` from ``/v2/usage``.

        Raises:
            UsageQueryError: On transport failure, non-200 status or bad body.
        """
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.endpoint_for(credential)}/v2/usage",
                    headers=self._headers(credential),
                )
        except httpx.HTTPError as e:
            raise UsageQueryError(f"DeepL usage query failed for {key.key_id}: {e}") from e

        if response.status_code != 200:
            raise UsageQueryError(
                f"DeepL usage query for {key.key_id} returned HTTP {response.status_code}"
            )

        try:
            data = response.json()
            return UsageReport(used=int(data["character_count"]), limit=int(data["character_limit"]))
        except (ValueError, KeyError, TypeError) as e:
            raise UsageQueryError(f"Malformed DeepL usage response for {key.key_id}") from e
