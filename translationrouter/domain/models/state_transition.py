"""StateTransition record for cooldown and quota audit trails."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StateTransition(BaseModel):
    """One observed state change of a ProviderKey.

    Produced by the RateLimitController (``available`` <-> ``cooling``) and
    the QuotaLedger (``available`` <-> ``exhausted``) and forwarded to the
    observability sink.
    """

    entity_type: str = Field(
        default="ProviderKey",
        description="Type of entity (ProviderKey, QuotaState)",
        min_length=1,
    )
    entity_id: str = Field(..., description="Entity identifier (key_id)", min_length=1)
    from_state: str = Field(..., description="Previous state value")
    to_state: str = Field(..., description="New state value")
    transition_timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Timestamp when transition occurred",
    )
    trigger: str = Field(
        ...,
        description="What caused the transition (rate_limited, success, reconcile, ...)",
        min_length=1,
    )
    context: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def to_payload(self) -> dict[str, Any]:
        """Flatten into an observability event payload."""
        return {
            "key_id": self.entity_id,
            "entity_type": self.entity_type,
            "from_state": self.from_state,
            "to_state": self.to_state,
            "trigger": self.trigger,
            **self.context,
        }
