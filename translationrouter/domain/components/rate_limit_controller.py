"""RateLimitController component for per-key cooldown state."""

import asyncio
import random
from datetime import datetime, timedelta

from translationrouter.domain.interfaces.observability_manager import (
    ObservabilityManager,
    emit_event_safely,
)
from translationrouter.domain.models.cooldown_state import CooldownState, CooldownStatus
from translationrouter.domain.models.state_transition import StateTransition
from translationrouter.domain.models.system_error import UnknownProviderKeyError
from translationrouter.infrastructure.utils.clock import SYSTEM_CLOCK, Clock


class RateLimitController:
    """Per-key ``Available -> Cooling -> Available`` state machine.

    A key enters Cooling when the dispatcher reports RateLimited or
    TransientError for it. The cooldown grows exponentially with
    consecutive failures:

        duration = backoff_base * 2 ** min(consecutive_failures, max_exponent)

    plus a random jitter of up to ``jitter_ratio`` of that duration. A single
    success resets the failure count and makes the key Available at once.

    State is in-memory and per-process only; it is meaningful for the
    duration of an outage and resets on restart.
    """

    def __init__(
        self,
        observability_manager: ObservabilityManager,
        backoff_base_seconds: float = 1.0,
        max_exponent: int = 5,
        jitter_ratio: float = 0.2,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize RateLimitController.

        Args:
            observability_manager: ObservabilityManager for events and logging.
            backoff_base_seconds: Base cooldown duration in seconds.
            max_exponent: Cap on the number of doublings.
            jitter_ratio: Maximum jitter as a fraction of the computed duration.
            clock: Clock used to stamp and evaluate cooldowns.
            rng: Random source for jitter (seed it for deterministic tests).

        Raises:
            ValueError: If any tunable is out of range.
        """
        if backoff_base_seconds <= 0:
            raise ValueError("backoff_base_seconds must be positive")
        if max_exponent < 0:
            raise ValueError("max_exponent must be non-negative")
        if not 0.0 <= jitter_ratio <= 1.0:
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")

        self._observability = observability_manager
        self._backoff_base = backoff_base_seconds
        self._max_exponent = max_exponent
        self._jitter_ratio = jitter_ratio
        self._clock = clock or SYSTEM_CLOCK
        self._rng = rng or random.Random()
        self._states: dict[str, CooldownState] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def register(self, key_id: str) -> None:
        """Start tracking ``key_id`` in the Available state (idempotent)."""
        if key_id not in self._states:
            self._states[key_id] = CooldownState(key_id=key_id)
            self._locks[key_id] = asyncio.Lock()

    def unregister(self, key_id: str) -> None:
        self._states.pop(key_id, None)
        self._locks.pop(key_id, None)

    def __contains__(self, key_id: object) -> bool:
        return key_id in self._states

    def cooldown_duration(self, consecutive_failures: int) -> float:
        """Cooldown in seconds for a failure count, before jitter."""
        exponent = min(max(consecutive_failures, 0), self._max_exponent)
        return self._backoff_base * (2**exponent)

    @property
    def max_cooldown_seconds(self) -> float:
        """Upper bound of any cooldown before jitter."""
        return self.cooldown_duration(self._max_exponent)

    def snapshot(self, key_id: str) -> CooldownState:
        """Return a copy of the key's CooldownState.

        Raises:
            UnknownProviderKeyError: If the key is not registered.
        """
        state = self._states.get(key_id)
        if state is None:
            raise UnknownProviderKeyError(key_id)
        return state.model_copy()

    def status(self, key_id: str, now: datetime | None = None) -> CooldownStatus:
        return self.snapshot(key_id).status(now or self._clock.now())

    def is_cooling(self, key_id: str, now: datetime | None = None) -> bool:
        """Whether the router must skip ``key_id`` at ``now`` (default: clock time)."""
        state = self._states.get(key_id)
        if state is None:
            raise UnknownProviderKeyError(key_id)
        return state.status(now or self._clock.now()) == CooldownStatus.Cooling

    async def enter_cooldown(
        self,
        key_id: str,
        reason: str,
        retry_after: float | None = None,
    ) -> CooldownState:
        """Put ``key_id`` into Cooling after a throttling or transient failure.

        Args:
            key_id: The key that failed.
            reason: Outcome that caused the cooldown (e.g. "rate_limited").
            retry_after: Optional provider hint; extends the cooldown when
                longer than the computed backoff.

        Returns:
            A copy of the updated CooldownState.

        Raises:
            UnknownProviderKeyError: If the key is not registered.
        """
        lock = self._lock(key_id)
        async with lock:
            state = self._states[key_id]
            now = self._clock.now()
            from_status = state.status(now)

            failures = state.consecutive_failures + 1
            base_duration = self.cooldown_duration(failures)
            jitter = self._rng.uniform(0.0, self._jitter_ratio * base_duration)
            duration = base_duration + jitter
            if retry_after is not None and retry_after > duration:
                duration = retry_after

            updated = CooldownState(
                key_id=key_id,
                active=True,
                until=now + timedelta(seconds=duration),
                consecutive_failures=failures,
            )
            self._states[key_id] = updated

        transition = StateTransition(
            entity_id=key_id,
            from_state=from_status.value,
            to_state=CooldownStatus.Cooling.value,
            trigger=reason,
            transition_timestamp=now,
            context={
                "cooldown_seconds": round(duration, 3),
                "consecutive_failures": failures,
                "cooldown_until": updated.until.isoformat() if updated.until else None,
            },
        )
        await emit_event_safely(self._observability, "cooldown_entered", transition.to_payload())
        await self._observability.log(
            level="WARNING",
            message="Provider key entered cooldown",
            context={
                "key_id": key_id,
                "reason": reason,
                "cooldown_seconds": round(duration, 3),
                "consecutive_failures": failures,
            },
        )
        return updated.model_copy()

    async def record_success(self, key_id: str) -> CooldownState:
        """Reset failures and force the key back to Available.

        Raises:
            UnknownProviderKeyError: If the key is not registered.
        """
        lock = self._lock(key_id)
        async with lock:
            previous = self._states[key_id]
            cleared = CooldownState(key_id=key_id)
            self._states[key_id] = cleared

        if previous.active or previous.consecutive_failures:
            transition = StateTransition(
                entity_id=key_id,
                from_state=previous.status(self._clock.now()).value,
                to_state=CooldownStatus.Available.value,
                trigger="success",
                transition_timestamp=self._clock.now(),
                context={"previous_consecutive_failures": previous.consecutive_failures},
            )
            await emit_event_safely(
                self._observability, "cooldown_cleared", transition.to_payload()
            )
        return cleared.model_copy()

    def _lock(self, key_id: str) -> asyncio.Lock:
        lock = self._locks.get(key_id)
        if lock is None:
            raise UnknownProviderKeyError(key_id)
        return lock
