"""ProviderAdapter abstract interface for provider-specific implementations.

This module defines the collaborator boundary between the routing core and
the concrete translation providers. The core never sees provider status
codes; each adapter maps them to one of the five ``OutcomeKind`` values.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from translationrouter.domain.models.provider_key import ProviderKey
    from translationrouter.domain.models.translation_outcome import (
        OutcomeKind,
        TranslationOutcome,
    )
    from translationrouter.domain.models.translation_request import TranslationRequest
    from translationrouter.domain.models.usage_report import UsageReport


class ProviderAdapterError(Exception):
    """Raised by an adapter when a call failed in a way it could not classify.

    The dispatcher treats it as a TransientError for the key.
    """

    pass


class UsageQueryError(Exception):
    """Raised when a provider usage query fails or is unsupported."""

    pass


class ProviderAdapter(ABC):
    """Abstract interface for provider-specific implementations.

    Key Responsibilities:
    - Translate a TranslationRequest with one ProviderKey's credential
    - Map every provider response to a TranslationOutcome (one mapping
      function per provider: ``classify_status``)
    - Optionally report authoritative usage for the Usage Sync Job

    Example Usage:
        ```python
        class EchoAdapter(ProviderAdapter):
            provider_id = "echo"

            async def translate(self, key, credential, request):
                return TranslationOutcome.success(request.text)

            def classify_status(self, status_code, error_code=None):
                return OutcomeKind.Success if status_code == 200 else OutcomeKind.TransientError
        ```
    """

    provider_id: str = ""

    @property
    def supports_usage_query(self) -> bool:
        """Whether ``query_usage`` returns authoritative figures."""
        return False

    @abstractmethod
    async def translate(
        self,
        key: ProviderKey,
        credential: str,
        request: TranslationRequest,
    ) -> TranslationOutcome:
        """Translate ``request`` using ``key``.

        Args:
            key: ProviderKey selected by the router.
            credential: Secret resolved from ``key.credential_ref``.
            request: Immutable translation request.

        Returns:
            TranslationOutcome: one of the five outcome kinds.

        Raises:
            ProviderAdapterError: Only when the adapter cannot classify the
                failure itself. Adapters should prefer returning an outcome.
        """
        ...

    @abstractmethod
    def classify_status(self, status_code: int, error_code: str | None = None) -> OutcomeKind:
        """Map a provider HTTP status (and optional error code) to an OutcomeKind."""
        ...

    async def query_usage(self, key: ProviderKey, credential: str) -> UsageReport:
        """Fetch authoritative ``(used, limit, reset_at)`` for ``key``.

        Raises:
            UsageQueryError: If the provider cannot be reached or does not
                support usage queries.
        """
        raise UsageQueryError(f"Provider '{self.provider_id}' does not support usage queries")


__all__ = [
    "ProviderAdapter",
    "ProviderAdapterError",
    "UsageQueryError",
]
