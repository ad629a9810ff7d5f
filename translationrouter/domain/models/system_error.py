"""Exception hierarchy for the translation router."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from translationrouter.domain.models.translation_result import TranslationResult


class TranslationRouterError(Exception):
    """Base class for all errors raised by this library."""

    pass


class ConfigurationError(TranslationRouterError):
    """Raised when pool or settings configuration is invalid.

    Configuration errors are fatal and are raised before any request is
    accepted.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize ConfigurationError.

        Args:
            message: Human-readable error message.
            field: Optional field name that failed validation.
        """
        self.message = message
        self.field = field
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return error message with field name if available."""
        if self.field:
            return f"Configuration error in field '{self.field}': {self.message}"
        return self.message


class UnknownProviderKeyError(TranslationRouterError):
    """Raised when a key_id is not registered with a component."""

    def __init__(self, key_id: str) -> None:
        self.key_id = key_id
        super().__init__(f"Unknown provider key: {key_id}")


class TranslationUnavailableError(TranslationRouterError):
    """Uniform "translation unavailable, try later" signal.

    Raised by ``TranslationResult.unwrap()``; ``result`` carries the operator
    detail (attempt count, last outcome class, attempted keys).
    """

    def __init__(self, result: TranslationResult) -> None:
        self.result = result
        last = result.last_outcome.value if result.last_outcome else None
        super().__init__(
            f"Translation unavailable ({result.status.value}) after "
            f"{result.attempts} attempt(s), last outcome: {last}"
        )


class TranslationCancelledError(TranslationRouterError):
    """Raised when a caller-supplied cancel event fires during dispatch."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Translation cancelled after {attempts} attempt(s)")
