"""QuotaLedger component for per-key character quota accounting."""

import asyncio
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from translationrouter.domain.interfaces.observability_manager import (
    ObservabilityManager,
    emit_event_safely,
)
from translationrouter.domain.interfaces.quota_store import QuotaStore, QuotaStoreError
from translationrouter.domain.models.provider_key import ProviderKey
from translationrouter.domain.models.quota_state import QuotaState
from translationrouter.domain.models.state_transition import StateTransition
from translationrouter.domain.models.system_error import UnknownProviderKeyError
from translationrouter.infrastructure.utils.clock import SYSTEM_CLOCK, Clock


class _LedgerEntry:
    """Mutable slot for one key: current snapshot plus its write lock."""

    __slots__ = ("state", "lock", "reconciled_used", "configured_limit")

    def __init__(self, state: QuotaState, configured_limit: int) -> None:
        self.state = state
        self.lock = asyncio.Lock()
        # Highest authoritative ``used`` seen; persisted values never drop below it.
        self.reconciled_used = state.used
        # Limit from configuration (0 = unbounded), restored when a period resets.
        self.configured_limit = configured_limit


class QuotaLedger:
    """Tracks consumed-vs-limit characters per ProviderKey.

    Local bookkeeping is optimistic: ``try_reserve`` charges a request
    before the provider call so that concurrent callers cannot both believe
    they have quota. ``reconcile`` overwrites local state with
    provider-authoritative figures and always wins.

    Concurrency:
        - Each key has its own ``asyncio.Lock``; mutations of one key are
          serialized, unrelated keys never contend.
        - Snapshots are replaced wholesale on every mutation, so readers
          (``snapshot``, ``has_capacity``) never observe a partial update.
    """

    def __init__(
        self,
        observability_manager: ObservabilityManager,
        quota_store: QuotaStore | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize QuotaLedger with dependencies.

        Args:
            observability_manager: ObservabilityManager for events and logging.
            quota_store: Optional QuotaStore. When given, reservations and
                reconciliations are persisted and ``restore`` reloads them.
            clock: Clock used for ``updated_at`` timestamps.
        """
        self._observability = observability_manager
        self._store = quota_store
        self._clock = clock or SYSTEM_CLOCK
        self._entries: dict[str, _LedgerEntry] = {}

    # Registration

    def register(self, key: ProviderKey, state: QuotaState | None = None) -> QuotaState:
        """Start tracking ``key``.

        Already registered keys keep their current state unless ``state`` is
        given explicitly, so reloading a pool does not forget local usage.

        Returns:
            A snapshot of the key's state after registration.
        """
        entry = self._entries.get(key.key_id)
        if entry is None:
            initial = state or QuotaState(
                key_id=key.key_id,
                used=0,
                limit=key.character_limit,
                updated_at=self._clock.now(),
            )
            self._entries[key.key_id] = _LedgerEntry(initial, key.character_limit)
            return self.snapshot(key.key_id)

        entry.configured_limit = key.character_limit
        if state is not None:
            entry.state = state
            entry.reconciled_used = state.used
        return self.snapshot(key.key_id)

    def unregister(self, key_id: str) -> None:
        """Stop tracking ``key_id`` (no-op when unknown)."""
        self._entries.pop(key_id, None)

    @property
    def key_ids(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, key_id: object) -> bool:
        return key_id in self._entries

    async def restore(self, key_ids: Iterable[str] | None = None) -> dict[str, QuotaState]:
        """Load persisted states for registered keys from the QuotaStore.

        Persisted states are conservative by construction, so they replace
        the fresh zero-usage states created at registration.

        Returns:
            Mapping of key_id to the restored snapshot, for keys that had one.
        """
        if self._store is None:
            return {}
        wanted = set(key_ids) if key_ids is not None else set(self._entries)
        try:
            persisted = await self._store.load_all()
        except QuotaStoreError as e:
            await self._observability.log(
                level="WARNING",
                message=f"Failed to restore quota states: {e}",
                context={"key_count": len(wanted)},
            )
            return {}

        restored: dict[str, QuotaState] = {}
        for key_id, state in persisted.items():
            entry = self._entries.get(key_id)
            if entry is None or key_id not in wanted:
                continue
            async with entry.lock:
                entry.state = state
                entry.reconciled_used = state.used
            restored[key_id] = state.model_copy()

        await self._observability.log(
            level="INFO",
            message="Restored quota states",
            context={"restored": sorted(restored)},
        )
        return restored

    # Reads

    def snapshot(self, key_id: str) -> QuotaState:
        """Return a consistent copy of the key's QuotaState.

        Raises:
            UnknownProviderKeyError: If the key is not registered.
        """
        return self._entry(key_id).state.model_copy()

    def snapshots(self) -> dict[str, QuotaState]:
        return {key_id: entry.state.model_copy() for key_id, entry in self._entries.items()}

    def has_capacity(self, key_id: str, character_count: int) -> bool:
        """Advisory check used by the router before it offers a candidate.

        ``try_reserve`` remains the authoritative check.
        """
        return self._entry(key_id).state.can_accommodate(character_count)

    # Mutations

    async def try_reserve(self, key_id: str, character_count: int) -> bool:
        """Atomically charge ``character_count`` characters to ``key_id``.

        Succeeds iff the key is unbounded or ``used + character_count <= limit``.
        On failure the state is left unchanged.

        Raises:
            ValueError: If character_count is negative.
            UnknownProviderKeyError: If the key is not registered.
        """
        if character_count < 0:
            raise ValueError("character_count must be non-negative")
        entry = self._entry(key_id)

        async with entry.lock:
            before = entry.state
            reserved = before.can_accommodate(character_count)
            if reserved:
                entry.state = before.model_copy(
                    update={"used": before.used + character_count, "updated_at": self._clock.now()}
                )
                await self._persist(entry)
            after = entry.state

        await emit_event_safely(
            self._observability,
            "quota_reserved" if reserved else "quota_reserve_rejected",
            self._payload(after, character_count=character_count),
        )
        if reserved and not before.is_exhausted and after.is_exhausted:
            await self._emit_transition(after, "available", "exhausted", "reservation")
        return reserved

    async def release(self, key_id: str, character_count: int) -> QuotaState:
        """Undo an optimistic reservation; ``used`` is floored at 0.

        Releases are not persisted: the persisted value stays higher, which
        can only under-report available quota after a restart.

        Raises:
            ValueError: If character_count is negative.
            UnknownProviderKeyError: If the key is not registered.
        """
        if character_count < 0:
            raise ValueError("character_count must be non-negative")
        entry = self._entry(key_id)

        async with entry.lock:
            before = entry.state
            entry.state = before.model_copy(
                update={
                    "used": max(0, before.used - character_count),
                    "updated_at": self._clock.now(),
                }
            )
            after = entry.state

        await emit_event_safely(
            self._observability,
            "quota_released",
            self._payload(after, character_count=character_count),
        )
        if before.is_exhausted and not after.is_exhausted:
            await self._emit_transition(after, "exhausted", "available", "release")
        return after.model_copy()

    async def reconcile(
        self,
        key_id: str,
        used: int,
        limit: int,
        reset_at: datetime | None = None,
        trigger: str = "usage_sync",
    ) -> QuotaState:
        """Overwrite local state with provider-authoritative values.

        After this call ``snapshot(key_id)`` yields exactly ``(used, limit,
        reset_at)`` regardless of prior optimistic bookkeeping.

        Raises:
            ValueError: If used or limit is negative.
            UnknownProviderKeyError: If the key is not registered.
        """
        if used < 0 or limit < 0:
            raise ValueError("used and limit must be non-negative")
        entry = self._entry(key_id)

        async with entry.lock:
            before = entry.state
            entry.state = QuotaState(
                key_id=key_id,
                used=used,
                limit=limit,
                period_reset_at=reset_at,
                updated_at=self._clock.now(),
            )
            entry.reconciled_used = used
            await self._persist(entry)
            after = entry.state

        await self._after_reconcile(before, after, trigger)
        return after.model_copy()

    async def mark_exhausted(self, key_id: str, reset_at: datetime | None = None) -> QuotaState:
        """Mark the key exhausted until the next sync after a provider refusal.

        Equivalent to ``reconcile(used=limit, limit=limit)``. An unbounded key
        that was refused gets ``limit = used = max(used, 1)`` so the router
        stops offering it until the sync job reports real figures or its
        period resets.

        Args:
            key_id: The refused key.
            reset_at: Advisory time the quota is expected back. When omitted
                the key keeps the ``period_reset_at`` it already had.
        """
        entry = self._entry(key_id)

        async with entry.lock:
            before = entry.state
            limit = before.limit if not before.is_unbounded else max(before.used, 1)
            entry.state = QuotaState(
                key_id=key_id,
                used=limit,
                limit=limit,
                period_reset_at=reset_at or before.period_reset_at,
                updated_at=self._clock.now(),
            )
            entry.reconciled_used = limit
            await self._persist(entry)
            after = entry.state

        await self._after_reconcile(before, after, "quota_exceeded")
        return after.model_copy()

    async def reset_period(self, key_id: str) -> QuotaState:
        """Start a fresh billing period: nothing used, configured limit back.

        A key that was unbounded in configuration returns to unbounded even
        if a refusal gave it a synthetic limit.

        Raises:
            UnknownProviderKeyError: If the key is not registered.
        """
        entry = self._entry(key_id)
        return await self.reconcile(
            key_id, used=0, limit=entry.configured_limit, reset_at=None, trigger="period_reset"
        )

    # Internals

    def _entry(self, key_id: str) -> _LedgerEntry:
        entry = self._entries.get(key_id)
        if entry is None:
            raise UnknownProviderKeyError(key_id)
        return entry

    async def _persist(self, entry: _LedgerEntry) -> None:
        """Persist a conservative copy of the entry; failures are logged only."""
        if self._store is None:
            return
        state = entry.state
        conservative = state.model_copy(update={"used": max(state.used, entry.reconciled_used)})
        try:
            await self._store.save(conservative)
        except QuotaStoreError as e:
            await self._observability.log(
                level="WARNING",
                message=f"Failed to persist quota state: {e}",
                context={"key_id": state.key_id},
            )

    async def _after_reconcile(self, before: QuotaState, after: QuotaState, trigger: str) -> None:
        await emit_event_safely(
            self._observability,
            "quota_reconciled",
            {
                **self._payload(after),
                "previous_used": before.used,
                "period_reset_at": after.period_reset_at.isoformat()
                if after.period_reset_at
                else None,
                "trigger": trigger,
            },
        )
        if before.limit != after.limit:
            # A limit change (e.g. plan upgrade) is surfaced but not acted on.
            await emit_event_safely(
                self._observability,
                "quota_limit_changed",
                {
                    "key_id": after.key_id,
                    "previous_limit": before.limit,
                    "limit": after.limit,
                    "trigger": trigger,
                },
            )
        if before.is_exhausted != after.is_exhausted:
            await self._emit_transition(
                after,
                "exhausted" if before.is_exhausted else "available",
                "exhausted" if after.is_exhausted else "available",
                trigger,
            )

    async def _emit_transition(
        self, state: QuotaState, from_state: str, to_state: str, trigger: str
    ) -> None:
        transition = StateTransition(
            entity_type="QuotaState",
            entity_id=state.key_id,
            from_state=from_state,
            to_state=to_state,
            trigger=trigger,
            transition_timestamp=self._clock.now(),
            context={"used": state.used, "limit": state.limit},
        )
        await emit_event_safely(
            self._observability,
            "quota_state_transition",
            transition.to_payload(),
            metadata={"transition_timestamp": transition.transition_timestamp.isoformat()},
        )

    @staticmethod
    def _payload(state: QuotaState, **extra: Any) -> dict[str, Any]:
        return {
            "key_id": state.key_id,
            "used": state.used,
            "limit": state.limit,
            "remaining_quota": state.remaining,
            **extra,
        }
