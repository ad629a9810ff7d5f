"""Domain components."""

from translationrouter.domain.components.provider_pool import ProviderPool
from translationrouter.domain.components.quota_ledger import QuotaLedger
from translationrouter.domain.components.rate_limit_controller import RateLimitController
from translationrouter.domain.components.translation_dispatcher import TranslationDispatcher
from translationrouter.domain.components.usage_sync_job import UsageSyncJob, UsageSyncReport

__all__ = [
    "QuotaLedger",
    "RateLimitController",
    "ProviderPool",
    "TranslationDispatcher",
    "UsageSyncJob",
    "UsageSyncReport",
]
