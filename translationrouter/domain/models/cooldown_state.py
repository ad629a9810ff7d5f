"""CooldownState data model and CooldownStatus enum."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CooldownStatus(str, Enum):
    """Rate-limit state of a ProviderKey.

    Keys move ``Available -> Cooling -> Available``; the return to Available
    happens either when the cooldown expires or on the next successful call.
    """

    Available = "available"
    """Key may be selected by the router."""

    Cooling = "cooling"
    """Key was throttled or failed transiently and must be skipped."""


class CooldownState(BaseModel):
    """Per-key cooldown bookkeeping owned by the RateLimitController."""

    key_id: str = Field(..., min_length=1)
    active: bool = Field(
        default=False,
        description="Whether a cooldown has been entered and not cleared by a success",
    )
    until: datetime | None = Field(
        default=None,
        description="Timestamp when the key becomes selectable again",
    )
    consecutive_failures: int = Field(
        default=0,
        description="Throttling/transient failures since the last success",
        ge=0,
    )

    model_config = ConfigDict(
        frozen=False,
        validate_assignment=True,
    )

    def status(self, now: datetime) -> CooldownStatus:
        """Derive the current status for ``now``."""
        if self.active and self.until is not None and now < self.until:
            return CooldownStatus.Cooling
        return CooldownStatus.Available

    def remaining_seconds(self, now: datetime) -> float:
        """Seconds left in the cooldown, 0.0 when Available."""
        if self.status(now) == CooldownStatus.Available or self.until is None:
            return 0.0
        return (self.until - now).total_seconds()

    def __repr__(self) -> str:
        """String representation of cooldown state."""
        until = self.until.isoformat() if self.until else None
        return (
            f"CooldownState(key_id={self.key_id!r}, active={self.active}, "
            f"until={until}, consecutive_failures={self.consecutive_failures})"
        )
