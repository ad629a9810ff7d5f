"""ProviderPool component: tiered, round-robin candidate selection."""

from collections.abc import Iterable

from translationrouter.domain.components.quota_ledger import QuotaLedger
from translationrouter.domain.components.rate_limit_controller import RateLimitController
from translationrouter.domain.models.provider_key import PoolConfig, ProviderKey, Tier
from translationrouter.domain.models.system_error import ConfigurationError


class ProviderPool:
    """Orders ProviderKeys into priority tiers and selects the next candidate.

    Selection walks tiers in configured order. Inside a tier keys are visited
    in round-robin order starting at a per-tier cursor, so repeated calls
    spread load over all keys of the tier. Keys that are excluded for the
    current request, cooling down, or (advisory) short of quota are skipped.

    Given the same cursor positions, cooldown/quota snapshot and excluded
    set, selection is deterministic.
    """

    def __init__(
        self,
        config: PoolConfig,
        quota_ledger: QuotaLedger,
        rate_limit_controller: RateLimitController,
    ) -> None:
        """Initialize ProviderPool.

        Args:
            config: Ordered tier structure.
            quota_ledger: Ledger consulted for the advisory quota pre-check.
            rate_limit_controller: Controller consulted for cooldowns.

        Raises:
            ConfigurationError: If the tier structure is unusable.
        """
        self.validate_config(config)
        self._config = config
        self._ledger = quota_ledger
        self._cooldowns = rate_limit_controller
        self._cursors: dict[str, int] = {tier.name: 0 for tier in config.tiers}
        self._keys: dict[str, ProviderKey] = {key.key_id: key for key in config.keys}

        for key in config.keys:
            self._ledger.register(key)
            self._cooldowns.register(key.key_id)

    @staticmethod
    def validate_config(config: PoolConfig) -> None:
        """Fail fast on a pool that could never serve a request.

        Raises:
            ConfigurationError: If there are no tiers, a tier is empty, tier
                names repeat, or a key_id appears more than once.
        """
        if not config.tiers:
            raise ConfigurationError("Pool must define at least one tier", field="tiers")

        seen_tiers: set[str] = set()
        seen_keys: set[str] = set()
        for idx, tier in enumerate(config.tiers):
            if tier.name in seen_tiers:
                raise ConfigurationError(
                    f"Duplicate tier name '{tier.name}'", field=f"tiers[{idx}].name"
                )
            seen_tiers.add(tier.name)
            if not tier.keys:
                raise ConfigurationError(
                    f"Tier '{tier.name}' has no keys", field=f"tiers[{idx}].keys"
                )
            for key_idx, key in enumerate(tier.keys):
                if key.key_id in seen_keys:
                    raise ConfigurationError(
                        f"Duplicate key_id '{key.key_id}'",
                        field=f"tiers[{idx}].keys[{key_idx}].key_id",
                    )
                seen_keys.add(key.key_id)

    @property
    def config(self) -> PoolConfig:
        return self._config

    @property
    def tiers(self) -> tuple[Tier, ...]:
        return self._config.tiers

    @property
    def keys(self) -> list[ProviderKey]:
        return self._config.keys

    @property
    def provider_ids(self) -> set[str]:
        return {key.provider_id for key in self._config.keys}

    def get_key(self, key_id: str) -> ProviderKey | None:
        return self._keys.get(key_id)

    def is_eligible(self, key: ProviderKey, character_count: int = 0) -> bool:
        """Whether ``key`` may be offered right now (ignoring exclusions).

        A key that has been retired by a reload is never eligible, so a
        request still walking a replaced pool skips it.
        """
        if key.key_id not in self._ledger or key.key_id not in self._cooldowns:
            return False
        if self._cooldowns.is_cooling(key.key_id):
            return False
        return self._ledger.has_capacity(key.key_id, character_count)

    def select_candidate(
        self,
        excluded: Iterable[str] = frozenset(),
        character_count: int = 0,
    ) -> ProviderKey | None:
        """Return the next eligible ProviderKey, or None if the pool is exhausted.

        Args:
            excluded: key_ids already tried for the current request.
            character_count: Characters the request needs (advisory quota check).

        Returns:
            The first surviving key in tier order, round-robin within its tier,
            or None when every key is excluded, cooling or out of quota.
        """
        excluded_ids = frozenset(excluded)
        for tier in self._config.tiers:
            size = len(tier.keys)
            start = self._cursors[tier.name] % size
            for offset in range(size):
                idx = (start + offset) % size
                key = tier.keys[idx]
                if key.key_id in excluded_ids:
                    continue
                if not self.is_eligible(key, character_count):
                    continue
                self._cursors[tier.name] = (idx + 1) % size
                return key
        return None

    def eligible_keys(self, character_count: int = 0) -> list[ProviderKey]:
        """All currently eligible keys in tier order (no cursor movement)."""
        return [key for key in self._config.keys if self.is_eligible(key, character_count)]
