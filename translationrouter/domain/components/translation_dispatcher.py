"""TranslationDispatcher component: one logical request, sequential failover."""

import asyncio
import uuid
from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from translationrouter.domain.components.provider_pool import ProviderPool
from translationrouter.domain.components.quota_ledger import QuotaLedger
from translationrouter.domain.components.rate_limit_controller import RateLimitController
from translationrouter.domain.interfaces.credential_resolver import (
    CredentialResolutionError,
    CredentialResolver,
)
from translationrouter.domain.interfaces.observability_manager import (
    ObservabilityManager,
    emit_event_safely,
)
from translationrouter.domain.interfaces.provider_adapter import (
    ProviderAdapter,
    ProviderAdapterError,
)
from translationrouter.domain.models.provider_key import ProviderKey
from translationrouter.domain.models.system_error import (
    ConfigurationError,
    TranslationCancelledError,
)
from translationrouter.domain.models.translation_outcome import OutcomeKind, TranslationOutcome
from translationrouter.domain.models.translation_request import TranslationRequest
from translationrouter.domain.models.translation_result import ResultStatus, TranslationResult
from translationrouter.infrastructure.utils.clock import SYSTEM_CLOCK, Clock


class TranslationDispatcher:
    """Orchestrates one logical translation request across the provider pool.

    For each attempt the dispatcher asks the pool for a candidate, reserves
    quota, calls the provider adapter and applies the outcome to the ledger
    and rate-limit controller:

    - Success: return the text; the reservation stays charged.
    - QuotaExceeded: mark the key exhausted until the next sync, fail over.
    - RateLimited / TransientError: release the reservation, cool the key
      down, fail over.
    - PermanentError: release and stop (optionally one more candidate when
      ``retry_permanent_errors_across_providers`` is set).

    Attempts within one request are strictly sequential. Per-attempt failures
    never escape; only the terminal TranslationResult crosses this boundary.

    Each request walks the pool it started with. Keys dropped by a reload are
    forgotten by the ledger and controller only once no request still holds
    a reservation on them (see ``retire_keys``).
    """

    def __init__(
        self,
        provider_pool: ProviderPool,
        quota_ledger: QuotaLedger,
        rate_limit_controller: RateLimitController,
        providers: dict[str, ProviderAdapter],
        credential_resolver: CredentialResolver,
        observability_manager: ObservabilityManager,
        max_provider_attempts: int = 10,
        retry_permanent_errors_across_providers: bool = False,
        exhausted_retry_seconds: float = 3600.0,
        clock: Clock | None = None,
    ) -> None:
        """Initialize TranslationDispatcher.

        Args:
            provider_pool: Pool used to select candidates.
            quota_ledger: Ledger for reservations and exhaustion marking.
            rate_limit_controller: Controller notified of throttling and success.
            providers: Mapping of provider_id to ProviderAdapter.
            credential_resolver: Resolves key credentials right before a call.
            observability_manager: ObservabilityManager for events and logging.
            max_provider_attempts: Upper bound on loop iterations per request.
            retry_permanent_errors_across_providers: Allow one further
                candidate after a PermanentError.
            exhausted_retry_seconds: For keys whose provider cannot report
                usage, how long a QuotaExceeded keeps the key out of rotation
                when it has no advisory reset time of its own.
            clock: Clock used to report cooldown lengths and reset times.

        Raises:
            ValueError: If max_provider_attempts is less than 1 or
                exhausted_retry_seconds is not positive.
        """
        if max_provider_attempts < 1:
            raise ValueError("max_provider_attempts must be at least 1")
        if exhausted_retry_seconds <= 0:
            raise ValueError("exhausted_retry_seconds must be positive")
        self.provider_pool = provider_pool
        self._ledger = quota_ledger
        self._cooldowns = rate_limit_controller
        self._providers = providers
        self._credentials = credential_resolver
        self._observability = observability_manager
        self._max_attempts = max_provider_attempts
        self._retry_permanent = retry_permanent_errors_across_providers
        self._exhausted_retry = timedelta(seconds=exhausted_retry_seconds)
        self._clock = clock or SYSTEM_CLOCK
        # key_id -> number of reservations currently held by running attempts
        self._in_flight: Counter[str] = Counter()
        self._retired: set[str] = set()

    def retire_keys(self, key_ids: Iterable[str]) -> None:
        """Forget keys that a reload removed from the pool.

        Keys with no reservation in flight are unregistered from the ledger
        and controller at once. The rest are unregistered when their last
        running attempt has applied its outcome. A key that is back in the
        current pool is left alone.
        """
        for key_id in key_ids:
            if self.provider_pool.get_key(key_id) is not None:
                self._retired.discard(key_id)
            elif self._in_flight[key_id]:
                self._retired.add(key_id)
            else:
                self._forget(key_id)

    def _forget(self, key_id: str) -> None:
        self._retired.discard(key_id)
        self._in_flight.pop(key_id, None)
        self._ledger.unregister(key_id)
        self._cooldowns.unregister(key_id)

    def _finish_attempt(self, key_id: str) -> None:
        self._in_flight[key_id] -= 1
        if self._in_flight[key_id] > 0:
            return
        del self._in_flight[key_id]
        if key_id in self._retired:
            if self.provider_pool.get_key(key_id) is None:
                self._forget(key_id)
            else:
                self._retired.discard(key_id)

    async def translate(
        self,
        request: TranslationRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> TranslationResult:
        """Translate ``request``, failing over across the pool as needed.

        Args:
            request: The translation request.
            cancel_event: Optional caller cancellation signal. It is checked
                before every attempt and raced against the in-flight provider
                call.

        Returns:
            TranslationResult with status Success, AllProvidersExhausted or
            PermanentError.

        Raises:
            TranslationCancelledError: If ``cancel_event`` fires. No
                reservation is left behind.
            asyncio.CancelledError: If the calling task is cancelled; the
                in-flight reservation is released first.
        """
        request_id = str(uuid.uuid4())
        pool = self.provider_pool
        excluded: list[str] = []
        attempts = 0
        last_outcome: OutcomeKind | None = None
        permanent_retry_used = False

        await self._observability.log(
            level="DEBUG",
            message="Translation dispatch started",
            context={
                "request_id": request_id,
                "length": request.length,
                "target_lang": request.target_lang,
                "source_lang": request.source_lang,
            },
        )

        for _ in range(self._max_attempts):
            if cancel_event is not None and cancel_event.is_set():
                raise TranslationCancelledError(attempts)

            candidate = pool.select_candidate(excluded, request.length)
            if candidate is None:
                break
            if candidate.key_id in self._retired:
                excluded.append(candidate.key_id)
                continue

            self._in_flight[candidate.key_id] += 1
            try:
                if not await self._ledger.try_reserve(candidate.key_id, request.length):
                    # Lost a race with a concurrent request after the advisory pre-check.
                    await self._observability.log(
                        level="DEBUG",
                        message="Quota reservation rejected, failing over",
                        context={"request_id": request_id, "key_id": candidate.key_id},
                    )
                    excluded.append(candidate.key_id)
                    continue

                attempts += 1
                outcome = await self._attempt(candidate, request, cancel_event, attempts)
                last_outcome = outcome.kind
                cooldown_seconds = await self._apply_outcome(candidate, request, outcome)
                await self._emit_attempt(
                    request_id, candidate, attempts, outcome, cooldown_seconds
                )
            finally:
                self._finish_attempt(candidate.key_id)

            if outcome.kind == OutcomeKind.Success:
                return await self._succeed(request_id, candidate, outcome, attempts, excluded)

            excluded.append(candidate.key_id)
            if outcome.kind == OutcomeKind.PermanentError:
                if self._retry_permanent and not permanent_retry_used:
                    permanent_retry_used = True
                    continue
                return await self._fail(
                    request_id, ResultStatus.PermanentError, attempts, last_outcome, excluded
                )

        return await self._fail(
            request_id, ResultStatus.AllProvidersExhausted, attempts, last_outcome, excluded
        )

    async def _attempt(
        self,
        key: ProviderKey,
        request: TranslationRequest,
        cancel_event: asyncio.Event | None,
        attempt: int,
    ) -> TranslationOutcome:
        """Run one provider call for a key whose quota is already reserved.

        Any exit other than an outcome (cancellation, unexpected exception)
        releases the reservation before propagating.
        """
        adapter = self._providers.get(key.provider_id)
        if adapter is None:
            await self._ledger.release(key.key_id, request.length)
            raise ConfigurationError(
                f"No adapter registered for provider '{key.provider_id}'", field="providers"
            )

        try:
            credential = self._credentials.resolve(key)
        except CredentialResolutionError as e:
            await self._observability.log(
                level="ERROR",
                message="Credential resolution failed",
                context={"key_id": key.key_id, "error": str(e)},
            )
            return TranslationOutcome.transient_error(
                message=str(e), provider_code="credential_unavailable"
            )

        try:
            outcome = await self._call_provider(adapter, key, credential, request, cancel_event)
        except ProviderAdapterError as e:
            outcome = TranslationOutcome.transient_error(message=str(e), provider_code="adapter_error")
        except BaseException:
            await self._ledger.release(key.key_id, request.length)
            raise

        if outcome is None:
            await self._ledger.release(key.key_id, request.length)
            raise TranslationCancelledError(attempt)
        return outcome

    async def _call_provider(
        self,
        adapter: ProviderAdapter,
        key: ProviderKey,
        credential: str,
        request: TranslationRequest,
        cancel_event: asyncio.Event | None,
    ) -> TranslationOutcome | None:
        """Await the adapter; return None if ``cancel_event`` fired first."""
        if cancel_event is None:
            return await adapter.translate(key, credential, request)

        call = asyncio.ensure_future(adapter.translate(key, credential, request))
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            waiter.cancel()

        if call in done:
            return call.result()

        call.cancel()
        await asyncio.gather(call, return_exceptions=True)
        return None

    async def _apply_outcome(
        self,
        key: ProviderKey,
        request: TranslationRequest,
        outcome: TranslationOutcome,
    ) -> float | None:
        """Update ledger and cooldown state; return the cooldown entered, if any."""
        if outcome.kind == OutcomeKind.Success:
            await self._cooldowns.record_success(key.key_id)
            return None

        if outcome.kind == OutcomeKind.QuotaExceeded:
            # The provider refused: keep the reservation charged and mark the key full.
            await self._ledger.mark_exhausted(key.key_id, reset_at=self._exhausted_until(key))
            return None

        await self._ledger.release(key.key_id, request.length)

        if outcome.kind in (OutcomeKind.RateLimited, OutcomeKind.TransientError):
            state = await self._cooldowns.enter_cooldown(
                key.key_id, reason=outcome.kind.value, retry_after=outcome.retry_after
            )
            if state.until is None:
                return None
            return state.remaining_seconds(self._clock.now())
        return None

    def _exhausted_until(self, key: ProviderKey) -> datetime | None:
        """Reset time to seed for a refused key, or None to keep its own.

        Keys the sync job can query get real figures from it. Other keys
        would otherwise stay exhausted forever, so they get a retry time.
        """
        adapter = self._providers.get(key.provider_id)
        if adapter is not None and adapter.supports_usage_query:
            return None
        now = self._clock.now()
        reset_at = self._ledger.snapshot(key.key_id).period_reset_at
        if reset_at is not None and reset_at > now:
            return None
        return now + self._exhausted_retry

    async def _emit_attempt(
        self,
        request_id: str,
        key: ProviderKey,
        attempt: int,
        outcome: TranslationOutcome,
        cooldown_seconds: float | None,
    ) -> None:
        remaining = self._ledger.snapshot(key.key_id).remaining
        payload: dict[str, Any] = {
            "request_id": request_id,
            "key_id": key.key_id,
            "provider_id": key.provider_id,
            "tier": key.tier,
            "attempt": attempt,
            "outcome": outcome.kind.value,
            "provider_code": outcome.provider_code,
            "remaining_quota": remaining,
            "cooldown_seconds": round(cooldown_seconds, 3) if cooldown_seconds else None,
        }
        await self._observability.log(
            level="INFO" if outcome.is_success else "WARNING",
            message=f"Translation attempt {attempt} finished: {outcome.kind.value}",
            context=payload,
        )
        await emit_event_safely(self._observability, "translation_attempt", payload)

    async def _succeed(
        self,
        request_id: str,
        key: ProviderKey,
        outcome: TranslationOutcome,
        attempts: int,
        excluded: list[str],
    ) -> TranslationResult:
        result = TranslationResult(
            status=ResultStatus.Success,
            translated_text=outcome.translated_text,
            key_id=key.key_id,
            provider_id=key.provider_id,
            attempts=attempts,
            last_outcome=OutcomeKind.Success,
            attempted_keys=tuple(excluded),
        )
        await emit_event_safely(
            self._observability,
            "translation_completed",
            {
                "request_id": request_id,
                "key_id": key.key_id,
                "provider_id": key.provider_id,
                "attempts": attempts,
                "failed_over_keys": list(excluded),
            },
        )
        return result

    async def _fail(
        self,
        request_id: str,
        status: ResultStatus,
        attempts: int,
        last_outcome: OutcomeKind | None,
        excluded: list[str],
    ) -> TranslationResult:
        result = TranslationResult(
            status=status,
            attempts=attempts,
            last_outcome=last_outcome,
            attempted_keys=tuple(excluded),
        )
        payload = {
            "request_id": request_id,
            "status": status.value,
            "attempts": attempts,
            "last_outcome": last_outcome.value if last_outcome else None,
            "attempted_keys": list(excluded),
        }
        await self._observability.log(
            level="ERROR",
            message="Translation unavailable",
            context=payload,
        )
        await emit_event_safely(self._observability, "translation_failed", payload)
        return result
