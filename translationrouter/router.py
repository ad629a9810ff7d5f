"""TranslationRouter - Main entry point for quota-aware translation routing."""

import asyncio
import random
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from translationrouter.domain.components.provider_pool import ProviderPool
from translationrouter.domain.components.quota_ledger import QuotaLedger
from translationrouter.domain.components.rate_limit_controller import RateLimitController
from translationrouter.domain.components.translation_dispatcher import TranslationDispatcher
from translationrouter.domain.components.usage_sync_job import UsageSyncJob, UsageSyncReport
from translationrouter.domain.interfaces.credential_resolver import CredentialResolver
from translationrouter.domain.interfaces.observability_manager import (
    ObservabilityManager,
    emit_event_safely,
)
from translationrouter.domain.interfaces.provider_adapter import ProviderAdapter
from translationrouter.domain.interfaces.quota_store import QuotaStore
from translationrouter.domain.models.provider_key import PoolConfig
from translationrouter.domain.models.system_error import ConfigurationError
from translationrouter.domain.models.translation_request import TranslationRequest
from translationrouter.domain.models.translation_result import TranslationResult
from translationrouter.infrastructure.config.file_loader import ConfigurationFileLoader
from translationrouter.infrastructure.config.settings import RouterSettings
from translationrouter.infrastructure.observability.logger import DefaultObservabilityManager
from translationrouter.infrastructure.quota_store.memory_store import InMemoryQuotaStore
from translationrouter.infrastructure.quota_store.redis_store import RedisQuotaStore
from translationrouter.infrastructure.utils.clock import SYSTEM_CLOCK, Clock
from translationrouter.infrastructure.utils.credentials import EnvironmentCredentialResolver


class TranslationRouter:
    """Main entry point for library.

    TranslationRouter wires the QuotaLedger, RateLimitController,
    ProviderPool, TranslationDispatcher and UsageSyncJob together and
    exposes a small API to applications.

    Example:
        ```python
        pool = PoolConfig.from_tiers([
            ("free", [{"key_id": "deepl-free-1", "provider_id": "deepl",
                       "character_limit": 500000}]),
            ("paid", [{"key_id": "azure-s1", "provider_id": "azure"}]),
        ])
        router = TranslationRouter(
            pool,
            providers={"deepl": DeepLAdapter(), "azure": AzureTranslatorAdapter()},
        )

        async with router:
            result = await router.translate("Hello world", "DE")
            print(result.unwrap())
        ```
    """

    def __init__(
        self,
        pool_config: PoolConfig,
        providers: dict[str, ProviderAdapter] | None = None,
        quota_store: QuotaStore | None = None,
        credential_resolver: CredentialResolver | None = None,
        observability_manager: ObservabilityManager | None = None,
        config: RouterSettings | dict[str, Any] | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize TranslationRouter with dependencies.

        Args:
            pool_config: Ordered tier structure of ProviderKeys.
            providers: Optional mapping of provider_id to adapter. When given,
                every provider in the pool must be covered immediately;
                otherwise adapters are added with ``register_provider`` and
                checked on ``start``/first ``translate``.
            quota_store: Optional QuotaStore. Defaults to RedisQuotaStore when
                ``redis_url`` is configured, else InMemoryQuotaStore.
            credential_resolver: Optional CredentialResolver. Defaults to
                EnvironmentCredentialResolver.
            observability_manager: Optional ObservabilityManager. Defaults to
                DefaultObservabilityManager.
            config: RouterSettings, a dictionary of settings, or None
                (loads from environment variables).
            clock: Clock shared by all components (tests inject a fake).
            rng: Random source for cooldown jitter.

        Raises:
            ConfigurationError: If the pool is invalid, or ``providers`` was
                given and does not cover every provider in the pool.
            ValueError: If config has an invalid type.
        """
        if config is None:
            self._config = RouterSettings()
        elif isinstance(config, dict):
            self._config = RouterSettings.from_dict(config)
        elif isinstance(config, RouterSettings):
            self._config = config
        else:
            raise ValueError(
                f"Invalid config type: {type(config)}. Expected RouterSettings, dict, or None"
            )

        self._clock = clock or SYSTEM_CLOCK

        if observability_manager is None:
            self._observability_manager: ObservabilityManager = DefaultObservabilityManager(
                log_level=self._config.log_level,
                json_format=self._config.json_logs,
            )
        else:
            self._observability_manager = observability_manager

        self._owns_quota_store = quota_store is None
        if quota_store is not None:
            self._quota_store: QuotaStore = quota_store
        elif self._config.redis_url:
            self._quota_store = RedisQuotaStore(
                redis_url=self._config.redis_url,
                key_prefix=self._config.redis_key_prefix,
            )
        else:
            self._quota_store = InMemoryQuotaStore()

        self._credential_resolver = credential_resolver or EnvironmentCredentialResolver()

        # Shared by dispatcher and sync job; register_provider mutates it in place.
        self._providers: dict[str, ProviderAdapter] = {}
        for provider_id, adapter in (providers or {}).items():
            self._providers[provider_id.strip().lower()] = adapter

        self._quota_ledger = QuotaLedger(
            observability_manager=self._observability_manager,
            quota_store=self._quota_store,
            clock=self._clock,
        )
        self._rate_limit_controller = RateLimitController(
            observability_manager=self._observability_manager,
            backoff_base_seconds=self._config.backoff_base_seconds,
            max_exponent=self._config.max_exponent,
            jitter_ratio=self._config.jitter_ratio,
            clock=self._clock,
            rng=rng,
        )

        ProviderPool.validate_config(pool_config)
        if providers is not None:
            self._check_adapters(pool_config)

        self._provider_pool = ProviderPool(
            config=pool_config,
            quota_ledger=self._quota_ledger,
            rate_limit_controller=self._rate_limit_controller,
        )
        self._dispatcher = TranslationDispatcher(
            provider_pool=self._provider_pool,
            quota_ledger=self._quota_ledger,
            rate_limit_controller=self._rate_limit_controller,
            providers=self._providers,
            credential_resolver=self._credential_resolver,
            observability_manager=self._observability_manager,
            max_provider_attempts=self._config.max_provider_attempts,
            retry_permanent_errors_across_providers=self._config.retry_permanent_errors_across_providers,
            exhausted_retry_seconds=self._config.exhausted_retry_seconds,
            clock=self._clock,
        )
        self._usage_sync_job = UsageSyncJob(
            provider_pool=self._provider_pool,
            quota_ledger=self._quota_ledger,
            providers=self._providers,
            credential_resolver=self._credential_resolver,
            observability_manager=self._observability_manager,
            interval_seconds=self._config.usage_sync_interval_seconds,
            clock=self._clock,
        )
        self._started = False
        self._reload_lock = asyncio.Lock()

    @classmethod
    def from_config_file(
        cls,
        config_file_path: str | Path | None = None,
        **kwargs: Any,
    ) -> "TranslationRouter":
        """Build a router from a YAML/JSON file (tiers plus optional settings).

        Args:
            config_file_path: Path to the file; falls back to
                TRANSLATIONROUTER_CONFIG_FILE.
            **kwargs: Passed through to the constructor (providers, stores...).

        Raises:
            ConfigurationError: If the file is missing or invalid.
        """
        loader = ConfigurationFileLoader(config_file_path)
        raw = loader.load()
        loader.validate_structure(raw)
        kwargs.setdefault("config", loader.parse_settings(raw))
        return cls(loader.build_pool_config(raw), **kwargs)

    async def __aenter__(self) -> "TranslationRouter":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    @property
    def settings(self) -> RouterSettings:
        return self._config

    @property
    def provider_pool(self) -> ProviderPool:
        return self._provider_pool

    @property
    def quota_ledger(self) -> QuotaLedger:
        return self._quota_ledger

    @property
    def rate_limit_controller(self) -> RateLimitController:
        return self._rate_limit_controller

    @property
    def dispatcher(self) -> TranslationDispatcher:
        return self._dispatcher

    @property
    def usage_sync_job(self) -> UsageSyncJob:
        return self._usage_sync_job

    @property
    def quota_store(self) -> QuotaStore:
        return self._quota_store

    @property
    def observability_manager(self) -> ObservabilityManager:
        return self._observability_manager

    @property
    def providers(self) -> dict[str, ProviderAdapter]:
        return dict(self._providers)

    async def register_provider(
        self,
        provider_id: str,
        adapter: ProviderAdapter,
        overwrite: bool = False,
    ) -> None:
        """Register a provider with its adapter.

        Args:
            provider_id: Provider identifier used by ProviderKeys (e.g. "deepl").
            adapter: ProviderAdapter implementation for this provider.
            overwrite: If True, allows replacing an existing registration.

        Raises:
            ValueError: If provider_id is empty, adapter is not a
                ProviderAdapter, or the provider is already registered and
                overwrite is False.
        """
        if not isinstance(provider_id, str) or not provider_id.strip():
            raise ValueError("provider_id must be a non-empty string")
        provider_id = provider_id.strip().lower()

        if not isinstance(adapter, ProviderAdapter):
            raise ValueError(
                f"adapter must be an instance of ProviderAdapter, got: {type(adapter)}"
            )

        if provider_id in self._providers and not overwrite:
            raise ValueError(
                f"Provider '{provider_id}' is already registered. "
                "Use overwrite=True to replace it."
            )

        self._providers[provider_id] = adapter

        payload = {
            "provider_id": provider_id,
            "adapter_type": type(adapter).__name__,
            "supports_usage_query": adapter.supports_usage_query,
            "overwrite": overwrite,
        }
        await self._observability_manager.log(
            level="INFO",
            message="Provider registered",
            context=payload,
        )
        await emit_event_safely(
            self._observability_manager,
            "provider_registered",
            payload,
            metadata={"timestamp": datetime.now(UTC).isoformat()},
        )

    def validate_providers(self) -> None:
        """Fail fast when a provider in the pool has no registered adapter.

        Raises:
            ConfigurationError: Naming the first uncovered provider.
        """
        self._check_adapters(self._provider_pool.config)

    def _check_adapters(self, pool_config: PoolConfig) -> None:
        for tier_idx, tier in enumerate(pool_config.tiers):
            for key_idx, key in enumerate(tier.keys):
                if key.provider_id not in self._providers:
                    raise ConfigurationError(
                        f"No adapter registered for provider '{key.provider_id}'",
                        field=f"tiers[{tier_idx}].keys[{key_idx}].provider_id",
                    )

    async def start(self, sync_usage: bool = True) -> None:
        """Validate providers, restore persisted quota and start the sync loop.

        Args:
            sync_usage: Start the background UsageSyncJob.

        Raises:
            ConfigurationError: If a provider has no adapter.
        """
        self.validate_providers()
        if self._started:
            return
        await self._quota_ledger.restore()
        if sync_usage:
            self._usage_sync_job.start()
        self._started = True
        await self._observability_manager.log(
            level="INFO",
            message="Translation router started",
            context={
                "tiers": [tier.name for tier in self._provider_pool.tiers],
                "key_count": len(self._provider_pool.keys),
                "usage_sync": sync_usage,
            },
        )

    async def stop(self) -> None:
        """Stop the sync loop and release owned resources (idempotent)."""
        await self._usage_sync_job.stop()
        if self._started and self._owns_quota_store and isinstance(self._quota_store, RedisQuotaStore):
            await self._quota_store.close()
        if self._started:
            await self._observability_manager.log(
                level="INFO", message="Translation router stopped", context={}
            )
        self._started = False

    async def translate(
        self,
        request: TranslationRequest | str,
        target_lang: str | None = None,
        source_lang: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> TranslationResult:
        """Translate text through the pool.

        Args:
            request: A TranslationRequest, or the text to translate.
            target_lang: Target language (required when ``request`` is text).
            source_lang: Optional source language when ``request`` is text.
            cancel_event: Optional event; setting it cancels the request.

        Returns:
            TranslationResult. Call ``unwrap()`` to get the text or raise
            TranslationUnavailableError.

        Raises:
            ConfigurationError: If a provider in the pool has no adapter.
            ValueError: If text is given without target_lang.
            TranslationCancelledError: If ``cancel_event`` fires.
        """
        if isinstance(request, str):
            if not target_lang:
                raise ValueError("target_lang is required when translating plain text")
            request = TranslationRequest(
                text=request, target_lang=target_lang, source_lang=source_lang
            )
        self.validate_providers()
        return await self._dispatcher.translate(request, cancel_event=cancel_event)

    async def sync_usage(self) -> UsageSyncReport:
        """Run one usage sync cycle now."""
        return await self._usage_sync_job.run_once()

    async def reload(self, pool_config: PoolConfig) -> None:
        """Replace the pool configuration at runtime.

        Surviving keys keep their quota and cooldown state, new keys start
        fresh (or from the quota store), removed keys are forgotten once no
        in-flight request holds a reservation on them. In-flight requests
        finish against the pool they started with.

        Raises:
            ConfigurationError: If the new pool is invalid or uses a provider
                without an adapter. The current pool stays in place.
        """
        async with self._reload_lock:
            ProviderPool.validate_config(pool_config)
            self._check_adapters(pool_config)

            old_ids = {key.key_id for key in self._provider_pool.keys}
            new_ids = {key.key_id for key in pool_config.keys}

            new_pool = ProviderPool(
                config=pool_config,
                quota_ledger=self._quota_ledger,
                rate_limit_controller=self._rate_limit_controller,
            )
            self._provider_pool = new_pool
            self._dispatcher.provider_pool = new_pool
            self._usage_sync_job.provider_pool = new_pool
            self._dispatcher.retire_keys(old_ids - new_ids)

            added = new_ids - old_ids
            if added:
                await self._quota_ledger.restore(added)

        payload = {
            "added": sorted(added),
            "removed": sorted(old_ids - new_ids),
            "tiers": [tier.name for tier in pool_config.tiers],
        }
        await self._observability_manager.log(
            level="INFO", message="Provider pool reloaded", context=payload
        )
        await emit_event_safely(self._observability_manager, "pool_reloaded", payload)
