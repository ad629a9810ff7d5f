"""translationrouter - quota-aware routing across translation providers."""

from translationrouter.domain.components import (
    ProviderPool,
    QuotaLedger,
    RateLimitController,
    TranslationDispatcher,
    UsageSyncJob,
    UsageSyncReport,
)
from translationrouter.domain.interfaces import (
    CredentialResolutionError,
    CredentialResolver,
    ObservabilityManager,
    ProviderAdapter,
    ProviderAdapterError,
    QuotaStore,
    QuotaStoreError,
    UsageQueryError,
)
from translationrouter.domain.models import (
    ConfigurationError,
    OutcomeKind,
    PoolConfig,
    ProviderKey,
    QuotaState,
    ResultStatus,
    Tier,
    TranslationCancelledError,
    TranslationOutcome,
    TranslationRequest,
    TranslationResult,
    TranslationRouterError,
    TranslationUnavailableError,
    UnknownProviderKeyError,
    UsageReport,
)
from translationrouter.router import TranslationRouter

__version__ = "0.1.0"

__all__ = [
    "TranslationRouter",
    "ProviderPool",
    "QuotaLedger",
    "RateLimitController",
    "TranslationDispatcher",
    "UsageSyncJob",
    "UsageSyncReport",
    "CredentialResolver",
    "CredentialResolutionError",
    "ObservabilityManager",
    "ProviderAdapter",
    "ProviderAdapterError",
    "QuotaStore",
    "QuotaStoreError",
    "UsageQueryError",
    "ProviderKey",
    "Tier",
    "PoolConfig",
    "QuotaState",
    "TranslationRequest",
    "OutcomeKind",
    "TranslationOutcome",
    "ResultStatus",
    "TranslationResult",
    "UsageReport",
    "TranslationRouterError",
    "ConfigurationError",
    "UnknownProviderKeyError",
    "TranslationUnavailableError",
    "TranslationCancelledError",
]
