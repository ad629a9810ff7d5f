"""Azure AI Translator provider adapter implementation."""

from __future__ import annotations

from translationrouter.domain.models.provider_key import ProviderKey
from translationrouter.domain.models.translation_outcome import OutcomeKind, TranslationOutcome
from translationrouter.domain.models.translation_request import TranslationRequest
from translationrouter.infrastructure.adapters.http_adapter import HttpProviderAdapter


class AzureTranslatorAdapter(HttpProviderAdapter):
    """Azure Translator (v3) adapter.

    Multi-service and regional resources need the resource region; it is
    read from ``key.metadata["region"]`` when present. Azure offers no
    usage API, so keys served by this adapter are never reconciled by the
    usage sync job.
    """

    provider_id = "azure"

    BASE_URL = "https://api.cognitive.microsofttranslator.com"
    API_VERSION = "3.0"

    QUOTA_EXCEEDED_CODE = "403001"
    """Free-tier character quota used up."""

    async def translate(
        self,
        key: ProviderKey,
        credential: str,
        request: TranslationRequest,
    ) -> TranslationOutcome:
        params = {"api-version": self.API_VERSION, "to": request.target_lang.lower()}
        if request.source_lang:
            params["from"] = request.source_lang.lower()

        headers = {"Ocp-Apim-Subscription-Key": credential}
        region = key.metadata.get("region")
        if region:
            headers["Ocp-Apim-Subscription-Region"] = str(region)

        base_url = (self.base_url or self.BASE_URL).rstrip("/")
        response = await self._post(
            f"{base_url}/translate",
            params=params,
            json=[{"Text": request.text}],
            headers=headers,
        )
        if isinstance(response, TranslationOutcome):
            return response
        if response.status_code != 200:
            return self.outcome_for_response(response)

        try:
            text = response.json()[0]["translations"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError):
            return TranslationOutcome.transient_error(
                message="Malformed Azure translation response",
                provider_code="malformed_response",
            )
        return TranslationOutcome.success(text, provider_code="200")

    def classify_status(self, status_code: int, error_code: str | None = None) -> OutcomeKind:
        if status_code == 200:
            return OutcomeKind.Success
        if status_code == 429:
            return OutcomeKind.RateLimited
        if status_code == 403 and error_code == self.QUOTA_EXCEEDED_CODE:
            return OutcomeKind.QuotaExceeded
        if status_code in (401, 403):
            return OutcomeKind.TransientError
        if 400 <= status_code < 500:
            return OutcomeKind.PermanentError
        return OutcomeKind.TransientError
