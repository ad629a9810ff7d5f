"""Domain models for the translation router."""

from translationrouter.domain.models.cooldown_state import CooldownState, CooldownStatus
from translationrouter.domain.models.provider_key import PoolConfig, ProviderKey, Tier
from translationrouter.domain.models.quota_state import QuotaState
from translationrouter.domain.models.state_transition import StateTransition
from translationrouter.domain.models.system_error import (
    ConfigurationError,
    TranslationCancelledError,
    TranslationRouterError,
    TranslationUnavailableError,
    UnknownProviderKeyError,
)
from translationrouter.domain.models.translation_outcome import OutcomeKind, TranslationOutcome
from translationrouter.domain.models.translation_request import TranslationRequest
from translationrouter.domain.models.translation_result import ResultStatus, TranslationResult
from translationrouter.domain.models.usage_report import UsageReport

__all__ = [
    "ProviderKey",
    "Tier",
    "PoolConfig",
    "QuotaState",
    "CooldownState",
    "CooldownStatus",
    "StateTransition",
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
