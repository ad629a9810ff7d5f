"""TranslationOutcome model: result of one attempt against one ProviderKey."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class OutcomeKind(str, Enum):
    """The five outcome classes every provider response is mapped to."""

    Success = "success"
    """Provider returned a translation."""

    QuotaExceeded = "quota_exceeded"
    """Provider refused because the key's character quota is used up (DeepL 456)."""

    RateLimited = "rate_limited"
    """Provider throttled the key (HTTP 429)."""

    TransientError = "transient_error"
    """5xx, timeout, network failure or other provider-health problem."""

    PermanentError = "permanent_error"
    """Request defect such as a malformed body or unsupported language pair."""


class TranslationOutcome(BaseModel):
    """Outcome of one provider attempt.

    Adapters build these through the classmethod constructors; the
    dispatcher only ever looks at ``kind`` and ``translated_text``.
    """

    kind: OutcomeKind
    translated_text: str | None = Field(
        default=None,
        description="Translated text, present only for Success",
    )
    provider_code: str | None = Field(
        default=None,
        description="Original provider status or error code, for operators",
    )
    message: str | None = Field(default=None, description="Human-readable detail")
    retry_after: float | None = Field(
        default=None,
        description="Provider Retry-After hint in seconds",
        ge=0.0,
    )

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_text(self) -> TranslationOutcome:
        """Success carries text, every other kind does not."""
        if self.kind == OutcomeKind.Success and self.translated_text is None:
            raise ValueError("Success outcome requires translated_text")
        if self.kind != OutcomeKind.Success and self.translated_text is not None:
            raise ValueError(f"{self.kind.value} outcome cannot carry translated_text")
        return self

    @property
    def is_success(self) -> bool:
        return self.kind == OutcomeKind.Success

    @classmethod
    def success(cls, translated_text: str, provider_code: str | None = None) -> TranslationOutcome:
        return cls(kind=OutcomeKind.Success, translated_text=translated_text, provider_code=provider_code)

    @classmethod
    def quota_exceeded(
        cls, message: str | None = None, provider_code: str | None = None
    ) -> TranslationOutcome:
        return cls(kind=OutcomeKind.QuotaExceeded, message=message, provider_code=provider_code)

    @classmethod
    def rate_limited(
        cls,
        message: str | None = None,
        provider_code: str | None = None,
        retry_after: float | None = None,
    ) -> TranslationOutcome:
        return cls(
            kind=OutcomeKind.RateLimited,
            message=message,
            provider_code=provider_code,
            retry_after=retry_after,
        )

    @classmethod
    def transient_error(
        cls, message: str | None = None, provider_code: str | None = None
    ) -> TranslationOutcome:
        return cls(kind=OutcomeKind.TransientError, message=message, provider_code=provider_code)

    @classmethod
    def permanent_error(
        cls, message: str | None = None, provider_code: str | None = None
    ) -> TranslationOutcome:
        return cls(kind=OutcomeKind.PermanentError, message=message, provider_code=provider_code)

    def __repr__(self) -> str:
        """String representation without the translated text."""
        return (
            f"TranslationOutcome(kind={self.kind.value}, "
            f"provider_code={self.provider_code!r})"
        )
