"""ProviderKey, Tier and PoolConfig data models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ProviderKey(BaseModel):
    """One credential for one translation provider.

    ProviderKey is the unit of quota accounting and rate limiting. The
    credential itself is never held here; ``credential_ref`` is an opaque
    reference resolved by a CredentialResolver right before a provider call.
    """

    key_id: str = Field(
        ...,
        description="Stable, unique identifier for the key (not the secret itself)",
        min_length=1,
    )
    provider_id: str = Field(
        ...,
        description="Provider this key belongs to (e.g. 'deepl', 'azure')",
        min_length=1,
    )
    tier: str = Field(
        default="default",
        description="Name of the priority tier this key belongs to",
        min_length=1,
    )
    priority: int = Field(
        default=0,
        description="Rank within the tier, lower values are tried first",
        ge=0,
    )
    credential_ref: str | None = Field(
        default=None,
        description="Opaque reference to the secret (e.g. an environment variable name)",
    )
    character_limit: int = Field(
        default=0,
        description="Characters allowed per billing period, 0 means unbounded",
        ge=0,
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Provider-specific metadata (account tier, region, etc.)",
    )

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
    )

    @field_validator("key_id")
    @classmethod
    def validate_key_id(cls, v: str) -> str:
        """Validate key ID format."""
        if not v or not v.strip():
            raise ValueError("Key ID cannot be empty")
        if len(v) > 255:
            raise ValueError("Key ID must be 255 characters or less")
        return v.strip()

    @field_validator("provider_id")
    @classmethod
    def validate_provider_id(cls, v: str) -> str:
        """Validate provider ID format."""
        if not v or not v.strip():
            raise ValueError("Provider ID cannot be empty")
        if len(v) > 100:
            raise ValueError("Provider ID must be 100 characters or less")
        return v.strip().lower()

    def __repr__(self) -> str:
        """String representation that never exposes credential references."""
        return (
            f"ProviderKey(key_id={self.key_id!r}, provider_id={self.provider_id!r}, "
            f"tier={self.tier!r}, priority={self.priority})"
        )


class Tier(BaseModel):
    """A priority group of ProviderKeys.

    Keys are kept sorted by ``(priority, key_id)`` so that round-robin order
    inside the tier is deterministic.
    """

    name: str = Field(..., description="Tier name", min_length=1)
    keys: tuple[ProviderKey, ...] = Field(
        default_factory=tuple,
        description="Keys in this tier, sorted by priority then key_id",
    )

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @field_validator("keys")
    @classmethod
    def sort_keys(cls, v: tuple[ProviderKey, ...]) -> tuple[ProviderKey, ...]:
        """Sort keys into their deterministic round-robin order."""
        return tuple(sorted(v, key=lambda k: (k.priority, k.key_id)))

    @model_validator(mode="after")
    def validate_membership(self) -> "Tier":
        """Ensure every key names this tier."""
        for key in self.keys:
            if key.tier != self.name:
                raise ValueError(
                    f"Key '{key.key_id}' declares tier '{key.tier}' but is listed in tier '{self.name}'"
                )
        return self


class PoolConfig(BaseModel):
    """Ordered tier structure consumed once by the ProviderPool."""

    tiers: tuple[Tier, ...] = Field(
        ...,
        description="Tiers in priority order, highest priority first",
    )

    model_config = ConfigDict(frozen=True)

    @property
    def keys(self) -> list[ProviderKey]:
        """All keys across all tiers, in tier order."""
        return [key for tier in self.tiers for key in tier.keys]

    @classmethod
    def from_tiers(cls, tiers: list[tuple[str, list[dict[str, Any]]]]) -> "PoolConfig":
        """Build a PoolConfig from ``(tier_name, [key_fields, ...])`` pairs.

        Example:
            ```python
            config = PoolConfig.from_tiers([
                ("primary", [{"key_id": "azure-1", "provider_id": "azure"}]),
                ("fallback", [{"key_id": "deepl-1", "provider_id": "deepl",
                               "character_limit": 500000}]),
            ])
            ```
        """
        return cls(
            tiers=tuple(
                Tier(
                    name=name,
                    keys=tuple(ProviderKey(tier=name, **fields) for fields in key_fields),
                )
                for name, key_fields in tiers
            )
        )
