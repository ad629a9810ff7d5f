"""QuotaState data model for per-key character accounting."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class QuotaState(BaseModel):
    """Represents the character quota state of a ProviderKey.

    ``used`` is a local estimate between syncs; the Usage Sync Job overwrites
    it with provider-authoritative figures. ``limit == 0`` means the key is
    unbounded (pay-as-you-go).
    """

    key_id: str = Field(
        ...,
        description="Reference to the ProviderKey this quota state belongs to",
        min_length=1,
    )
    used: int = Field(
        default=0,
        description="Characters consumed in the current billing period",
        ge=0,
    )
    limit: int = Field(
        default=0,
        description="Characters allowed per period, 0 means unbounded",
        ge=0,
    )
    period_reset_at: datetime | None = Field(
        default=None,
        description="Advisory timestamp of the next provider-side reset",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Timestamp when quota state was last updated",
    )

    model_config = ConfigDict(
        frozen=False,
        validate_assignment=True,
        str_strip_whitespace=True,
    )

    @field_validator("key_id")
    @classmethod
    def validate_key_id(cls, v: str) -> str:
        """Validate key_id is non-empty."""
        if not v or not v.strip():
            raise ValueError("key_id cannot be empty")
        return v.strip()

    @property
    def is_unbounded(self) -> bool:
        """Whether this key has no character limit."""
        return self.limit == 0

    @property
    def remaining(self) -> int | None:
        """Remaining characters, or None when unbounded."""
        if self.is_unbounded:
            return None
        return max(0, self.limit - self.used)

    @property
    def is_exhausted(self) -> bool:
        """Whether a bounded key has no characters left."""
        return not self.is_unbounded and self.used >= self.limit

    def can_accommodate(self, character_count: int) -> bool:
        """Check whether ``character_count`` more characters fit under the limit."""
        if self.is_unbounded:
            return True
        return self.used + character_count <= self.limit

    def __repr__(self) -> str:
        """String representation of quota state."""
        limit = "unbounded" if self.is_unbounded else str(self.limit)
        return f"QuotaState(key_id={self.key_id!r}, used={self.used}, limit={limit})"
