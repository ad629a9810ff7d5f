"""Domain interfaces."""

from translationrouter.domain.interfaces.credential_resolver import (
    CredentialResolutionError,
    CredentialResolver,
)
from translationrouter.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)
from translationrouter.domain.interfaces.provider_adapter import (
    ProviderAdapter,
    ProviderAdapterError,
    UsageQueryError,
)
from translationrouter.domain.interfaces.quota_store import QuotaStore, QuotaStoreError

__all__ = [
    "CredentialResolver",
    "CredentialResolutionError",
    "ObservabilityManager",
    "ObservabilityError",
    "ProviderAdapter",
    "ProviderAdapterError",
    "UsageQueryError",
    "QuotaStore",
    "QuotaStoreError",
]
