"""UsageSyncJob component: periodic reconciliation with provider usage APIs."""

import asyncio
import contextlib

from pydantic import BaseModel, Field

from translationrouter.domain.components.provider_pool import ProviderPool
from translationrouter.domain.components.quota_ledger import QuotaLedger
from translationrouter.domain.interfaces.credential_resolver import (
    CredentialResolutionError,
    CredentialResolver,
)
from translationrouter.domain.interfaces.observability_manager import (
    ObservabilityManager,
    emit_event_safely,
)
from translationrouter.domain.interfaces.provider_adapter import ProviderAdapter, UsageQueryError
from translationrouter.domain.models.provider_key import ProviderKey
from translationrouter.domain.models.system_error import UnknownProviderKeyError
from translationrouter.infrastructure.utils.clock import SYSTEM_CLOCK, Clock


class UsageSyncReport(BaseModel):
    """Summary of one sync cycle."""

    synced: list[str] = Field(default_factory=list, description="Keys reconciled from the provider")
    reset: list[str] = Field(
        default_factory=list, description="Keys zeroed because their reset time passed"
    )
    failed: list[str] = Field(default_factory=list, description="Keys whose query failed")
    skipped: list[str] = Field(
        default_factory=list, description="Keys whose provider cannot report usage"
    )


class UsageSyncJob:
    """Pulls authoritative usage figures and reconciles the QuotaLedger.

    Each cycle queries every key whose adapter supports usage queries,
    concurrently and independently: one key's failure is logged and leaves
    that key's local state untouched. Keys that cannot be queried are only
    touched when their advisory ``period_reset_at`` has passed, in which
    case ``used`` drops to zero and the configured limit comes back.
    """

    def __init__(
        self,
        provider_pool: ProviderPool,
        quota_ledger: QuotaLedger,
        providers: dict[str, ProviderAdapter],
        credential_resolver: CredentialResolver,
        observability_manager: ObservabilityManager,
        interval_seconds: float = 3600.0,
        clock: Clock | None = None,
    ) -> None:
        """Initialize UsageSyncJob.

        Args:
            provider_pool: Pool whose keys are synced.
            quota_ledger: Ledger that receives reconciled figures.
            providers: Mapping of provider_id to ProviderAdapter.
            credential_resolver: Resolves key credentials for usage queries.
            observability_manager: ObservabilityManager for events and logging.
            interval_seconds: Delay between cycles of the background loop.
            clock: Clock used for sleeping and reset-time checks.

        Raises:
            ValueError: If interval_seconds is not positive.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.provider_pool = provider_pool
        self._ledger = quota_ledger
        self._providers = providers
        self._credentials = credential_resolver
        self._observability = observability_manager
        self._interval = interval_seconds
        self._clock = clock or SYSTEM_CLOCK
        self._task: asyncio.Task[None] | None = None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> UsageSyncReport:
        """Run one sync cycle over every key in the pool."""
        report = UsageSyncReport()
        queryable: list[ProviderKey] = []

        for key in self.provider_pool.keys:
            if key.key_id not in self._ledger:
                continue
            adapter = self._providers.get(key.provider_id)
            if adapter is not None and adapter.supports_usage_query:
                queryable.append(key)
            elif await self._reset_if_period_elapsed(key):
                report.reset.append(key.key_id)
            else:
                report.skipped.append(key.key_id)

        results = await asyncio.gather(*(self._sync_key(key) for key in queryable))
        for key, ok in zip(queryable, results, strict=True):
            (report.synced if ok else report.failed).append(key.key_id)

        await self._observability.log(
            level="INFO",
            message="Usage sync cycle finished",
            context=report.model_dump(),
        )
        await emit_event_safely(self._observability, "usage_sync_completed", report.model_dump())
        return report

    async def _sync_key(self, key: ProviderKey) -> bool:
        adapter = self._providers[key.provider_id]
        try:
            credential = self._credentials.resolve(key)
            usage = await adapter.query_usage(key, credential)
        except (UsageQueryError, CredentialResolutionError) as e:
            await self._report_failure(key, e)
            return False
        except Exception as e:
            # One key's adapter bug must not abort the cycle.
            await self._report_failure(key, e)
            await self._observability.log(
                level="ERROR",
                message="Unexpected error while querying usage",
                context={"key_id": key.key_id, "error_type": type(e).__name__},
            )
            return False

        try:
            await self._ledger.reconcile(
                key.key_id,
                used=usage.used,
                limit=usage.limit,
                reset_at=usage.reset_at,
                trigger="usage_sync",
            )
        except UnknownProviderKeyError:
            # Removed by a reload while the query was in flight.
            return False
        return True

    async def _reset_if_period_elapsed(self, key: ProviderKey) -> bool:
        state = self._ledger.snapshot(key.key_id)
        if state.period_reset_at is None or state.period_reset_at > self._clock.now():
            return False
        await self._ledger.reset_period(key.key_id)
        return True

    async def _report_failure(self, key: ProviderKey, error: Exception) -> None:
        payload = {
            "key_id": key.key_id,
            "provider_id": key.provider_id,
            "error": str(error),
            "error_type": type(error).__name__,
        }
        await self._observability.log(
            level="WARNING",
            message="Usage sync failed for key, keeping local state",
            context=payload,
        )
        await emit_event_safely(self._observability, "usage_sync_failed", payload)

    # Background loop

    def start(self) -> None:
        """Start the background loop (no-op if already running).

        Must be called from within a running event loop.
        """
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish (idempotent)."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                await self._observability.log(
                    level="ERROR",
                    message="Error in usage sync loop",
                    context={"error": str(e)},
                )
            await self._clock.sleep(self._interval)
