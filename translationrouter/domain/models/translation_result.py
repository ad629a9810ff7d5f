"""TranslationResult model: terminal outcome of one logical request."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from translationrouter.domain.models.system_error import TranslationUnavailableError
from translationrouter.domain.models.translation_outcome import OutcomeKind


class ResultStatus(str, Enum):
    """Terminal status of a dispatched translation."""

    Success = "success"
    AllProvidersExhausted = "all_providers_exhausted"
    PermanentError = "permanent_error"


class TranslationResult(BaseModel):
    """What crosses the dispatcher's public boundary.

    Callers only need ``succeeded`` / ``translated_text``; the remaining
    fields exist so operators can tell which providers are degraded.
    """

    status: ResultStatus
    translated_text: str | None = None
    key_id: str | None = Field(
        default=None,
        description="Key that produced the translation (Success only)",
    )
    provider_id: str | None = None
    attempts: int = Field(default=0, description="Provider calls made", ge=0)
    last_outcome: OutcomeKind | None = Field(
        default=None,
        description="Outcome class of the last provider attempt, if any",
    )
    attempted_keys: tuple[str, ...] = Field(
        default_factory=tuple,
        description="Keys excluded during this request, in the order they were tried",
    )

    model_config = ConfigDict(frozen=True)

    @property
    def succeeded(self) -> bool:
        return self.status == ResultStatus.Success

    def unwrap(self) -> str:
        """Return the translated text or raise TranslationUnavailableError."""
        if not self.succeeded or self.translated_text is None:
            raise TranslationUnavailableError(self)
        return self.translated_text

    def __repr__(self) -> str:
        last = self.last_outcome.value if self.last_outcome else None
        return (
            f"TranslationResult(status={self.status.value}, key_id={self.key_id!r}, "
            f"attempts={self.attempts}, last_outcome={last})"
        )
