"""UsageReport model returned by provider usage queries."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UsageReport(BaseModel):
    """Provider-authoritative usage figures for one key."""

    used: int = Field(..., description="Characters consumed this period", ge=0)
    limit: int = Field(..., description="Characters allowed this period, 0 = unbounded", ge=0)
    reset_at: datetime | None = Field(
        default=None,
        description="Next provider-side reset, if the provider reports one",
    )

    model_config = ConfigDict(frozen=True)
