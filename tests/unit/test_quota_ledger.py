"""Tests for QuotaLedger component."""

import asyncio
from datetime import timedelta

import pytest

from tests.fixtures.fakes import FakeClock, MockObservabilityManager, RecordingQuotaStore
from translationrouter.domain.components.quota_ledger import QuotaLedger
from translationrouter.domain.interfaces.observability_manager import ObservabilityError
from translationrouter.domain.interfaces.quota_store import QuotaStoreError
from translationrouter.domain.models.provider_key import ProviderKey
from translationrouter.domain.models.quota_state import QuotaState
from translationrouter.domain.models.system_error import UnknownProviderKeyError


def make_key(key_id: str = "deepl-a", limit: int = 1000) -> ProviderKey:
    return ProviderKey(key_id=key_id, provider_id="deepl", character_limit=limit)


@pytest.fixture
def ledger(observability: MockObservabilityManager, clock: FakeClock) -> QuotaLedger:
    ledger = QuotaLedger(observability, clock=clock)
    ledger.register(make_key("deepl-a", 1000))
    ledger.register(make_key("azure-1", 0))
    return ledger


class TestRegistration:
    def test_register_uses_key_limit(self, ledger: QuotaLedger) -> None:
        state = ledger.snapshot("deepl-a")
        assert state.used == 0
        assert state.limit == 1000
        assert ledger.snapshot("azure-1").is_unbounded

    @pytest.mark.asyncio
    async def test_re_register_keeps_existing_state(self, ledger: QuotaLedger) -> None:
        await ledger.try_reserve("deepl-a", 300)
        ledger.register(make_key("deepl-a", 1000))
        assert ledger.snapshot("deepl-a").used == 300

    def test_unknown_key_raises(self, ledger: QuotaLedger) -> None:
        with pytest.raises(UnknownProviderKeyError):
            ledger.snapshot("missing")

    def test_unregister(self, ledger: QuotaLedger) -> None:
        ledger.unregister("deepl-a")
        assert "deepl-a" not in ledger
        assert ledger.key_ids == ["azure-1"]

    def test_snapshot_is_a_copy(self, ledger: QuotaLedger) -> None:
        snapshot = ledger.snapshot("deepl-a")
        snapshot.used = 999
        assert ledger.snapshot("deepl-a").used == 0


class TestTryReserve:
    @pytest.mark.asyncio
    async def test_reserve_within_limit(self, ledger: QuotaLedger) -> None:
        assert await ledger.try_reserve("deepl-a", 400) is True
        assert ledger.snapshot("deepl-a").used == 400

    @pytest.mark.asyncio
    async def test_reserve_exactly_to_limit(self, ledger: QuotaLedger) -> None:
        assert await ledger.try_reserve("deepl-a", 1000) is True
        assert ledger.snapshot("deepl-a").is_exhausted

    @pytest.mark.asyncio
    async def test_reserve_over_limit_leaves_state_unchanged(
        self, ledger: QuotaLedger, observability: MockObservabilityManager
    ) -> None:
        await ledger.try_reserve("deepl-a", 900)
        before = ledger.snapshot("deepl-a")

        assert await ledger.try_reserve("deepl-a", 101) is False

        after = ledger.snapshot("deepl-a")
        assert after.used == before.used == 900
        assert observability.events_of("quota_reserve_rejected")[0]["character_count"] == 101

    @pytest.mark.asyncio
    async def test_unbounded_key_always_reserves(self, ledger: QuotaLedger) -> None:
        assert await ledger.try_reserve("azure-1", 10_000_000) is True
        assert ledger.snapshot("azure-1").remaining is None

    @pytest.mark.asyncio
    async def test_zero_length_reserve_succeeds_on_full_key(self, ledger: QuotaLedger) -> None:
        await ledger.try_reserve("deepl-a", 1000)
        assert await ledger.try_reserve("deepl-a", 0) is True

    @pytest.mark.asyncio
    async def test_negative_count_rejected(self, ledger: QuotaLedger) -> None:
        with pytest.raises(ValueError):
            await ledger.try_reserve("deepl-a", -1)

    @pytest.mark.asyncio
    async def test_unknown_key_rejected(self, ledger: QuotaLedger) -> None:
        with pytest.raises(UnknownProviderKeyError):
            await ledger.try_reserve("missing", 1)

    @pytest.mark.asyncio
    async def test_concurrent_reservations_never_overshoot(self, ledger: QuotaLedger) -> None:
        results = await asyncio.gather(*(ledger.try_reserve("deepl-a", 30) for _ in range(100)))

        assert sum(results) == 33
        assert ledger.snapshot("deepl-a").used == 990

    @pytest.mark.asyncio
    async def test_exhaustion_transition_emitted(
        self, ledger: QuotaLedger, observability: MockObservabilityManager
    ) -> None:
        await ledger.try_reserve("deepl-a", 1000)

        transitions = observability.events_of("quota_state_transition")
        assert transitions[-1]["from_state"] == "available"
        assert transitions[-1]["to_state"] == "exhausted"


class TestRelease:
    @pytest.mark.asyncio
    async def test_release_restores_characters(self, ledger: QuotaLedger) -> None:
        await ledger.try_reserve("deepl-a", 400)
        state = await ledger.release("deepl-a", 400)
        assert state.used == 0

    @pytest.mark.asyncio
    async def test_release_floors_at_zero(self, ledger: QuotaLedger) -> None:
        await ledger.try_reserve("deepl-a", 10)
        state = await ledger.release("deepl-a", 50)
        assert state.used == 0


class TestReconcile:
    @pytest.mark.asyncio
    async def test_reconcile_overwrites_exactly(self, ledger: QuotaLedger, clock: FakeClock) -> None:
        await ledger.try_reserve("deepl-a", 700)
        reset_at = clock.now() + timedelta(days=3)

        await ledger.reconcile("deepl-a", used=120, limit=1000, reset_at=reset_at)

        state = ledger.snapshot("deepl-a")
        assert (state.used, state.limit, state.period_reset_at) == (120, 1000, reset_at)

    @pytest.mark.asyncio
    async def test_reconcile_may_exceed_limit(self, ledger: QuotaLedger) -> None:
        await ledger.reconcile("deepl-a", used=1500, limit=1000)
        state = ledger.snapshot("deepl-a")
        assert state.used == 1500
        assert state.remaining == 0
        assert not ledger.has_capacity("deepl-a", 1)

    @pytest.mark.asyncio
    async def test_limit_change_is_reported(
        self, ledger: QuotaLedger, observability: MockObservabilityManager
    ) -> None:
        await ledger.reconcile("deepl-a", used=0, limit=5000)

        changes = observability.events_of("quota_limit_changed")
        assert changes == [
            {"key_id": "deepl-a", "previous_limit": 1000, "limit": 5000, "trigger": "usage_sync"}
        ]

    @pytest.mark.asyncio
    async def test_same_limit_is_not_reported_as_change(
        self, ledger: QuotaLedger, observability: MockObservabilityManager
    ) -> None:
        await ledger.reconcile("deepl-a", used=10, limit=1000)
        assert observability.events_of("quota_limit_changed") == []

    @pytest.mark.asyncio
    async def test_negative_values_rejected(self, ledger: QuotaLedger) -> None:
        with pytest.raises(ValueError):
            await ledger.reconcile("deepl-a", used=-1, limit=1000)


class TestMarkExhausted:
    @pytest.mark.asyncio
    async def test_bounded_key(self, ledger: QuotaLedger) -> None:
        await ledger.try_reserve("deepl-a", 100)
        state = await ledger.mark_exhausted("deepl-a")
        assert (state.used, state.limit) == (1000, 1000)
        assert not ledger.has_capacity("deepl-a", 1)

    @pytest.mark.asyncio
    async def test_unbounded_key_becomes_bounded(self, ledger: QuotaLedger) -> None:
        await ledger.try_reserve("azure-1", 40)
        state = await ledger.mark_exhausted("azure-1")
        assert (state.used, state.limit) == (40, 40)
        assert state.is_exhausted

    @pytest.mark.asyncio
    async def test_unbounded_key_without_usage(self, ledger: QuotaLedger) -> None:
        state = await ledger.mark_exhausted("azure-1")
        assert (state.used, state.limit) == (1, 1)

    @pytest.mark.asyncio
    async def test_keeps_known_reset_time(self, ledger: QuotaLedger, clock: FakeClock) -> None:
        reset_at = clock.now() + timedelta(days=2)
        await ledger.reconcile("deepl-a", used=10, limit=1000, reset_at=reset_at)

        state = await ledger.mark_exhausted("deepl-a")

        assert state.period_reset_at == reset_at

    @pytest.mark.asyncio
    async def test_explicit_reset_time(self, ledger: QuotaLedger, clock: FakeClock) -> None:
        reset_at = clock.now() + timedelta(hours=1)
        state = await ledger.mark_exhausted("azure-1", reset_at=reset_at)
        assert state.period_reset_at == reset_at


class TestResetPeriod:
    @pytest.mark.asyncio
    async def test_unbounded_key_returns_to_unbounded(self, ledger: QuotaLedger) -> None:
        await ledger.try_reserve("azure-1", 40)
        await ledger.mark_exhausted("azure-1")

        state = await ledger.reset_period("azure-1")

        assert state.used == 0
        assert state.is_unbounded
        assert ledger.has_capacity("azure-1", 10**6)

    @pytest.mark.asyncio
    async def test_bounded_key_gets_configured_limit(
        self, ledger: QuotaLedger, observability: MockObservabilityManager
    ) -> None:
        await ledger.reconcile("deepl-a", used=4000, limit=5000)

        state = await ledger.reset_period("deepl-a")

        assert (state.used, state.limit, state.period_reset_at) == (0, 1000, None)
        assert observability.events_of("quota_reconciled")[-1]["trigger"] == "period_reset"

    @pytest.mark.asyncio
    async def test_re_register_updates_configured_limit(self, ledger: QuotaLedger) -> None:
        ledger.register(make_key("deepl-a", 2000))
        assert ledger.snapshot("deepl-a").limit == 1000

        state = await ledger.reset_period("deepl-a")

        assert state.limit == 2000


class TestPersistence:
    @pytest.mark.asyncio
    async def test_reserve_and_reconcile_persist_release_does_not(
        self, observability: MockObservabilityManager, clock: FakeClock
    ) -> None:
        store = RecordingQuotaStore()
        ledger = QuotaLedger(observability, quota_store=store, clock=clock)
        ledger.register(make_key())

        await ledger.reconcile("deepl-a", used=100, limit=1000)
        await ledger.try_reserve("deepl-a", 50)
        await ledger.release("deepl-a", 50)

        assert [s.used for s in store.saves] == [100, 150]

    @pytest.mark.asyncio
    async def test_persisted_usage_never_below_last_reconcile(
        self, observability: MockObservabilityManager, clock: FakeClock
    ) -> None:
        store = RecordingQuotaStore()
        ledger = QuotaLedger(observability, quota_store=store, clock=clock)
        ledger.register(make_key())

        await ledger.reconcile("deepl-a", used=100, limit=1000)
        await ledger.release("deepl-a", 60)
        await ledger.try_reserve("deepl-a", 10)

        assert ledger.snapshot("deepl-a").used == 50
        assert store.states["deepl-a"].used == 100

    @pytest.mark.asyncio
    async def test_store_failure_does_not_fail_reservation(
        self, observability: MockObservabilityManager, clock: FakeClock
    ) -> None:
        store = RecordingQuotaStore()
        store.error = QuotaStoreError("redis down")
        ledger = QuotaLedger(observability, quota_store=store, clock=clock)
        ledger.register(make_key())

        assert await ledger.try_reserve("deepl-a", 10) is True
        assert any(
            log["level"] == "WARNING" and "persist" in log["message"] for log in observability.logs
        )

    @pytest.mark.asyncio
    async def test_restore_loads_persisted_states(
        self, observability: MockObservabilityManager, clock: FakeClock
    ) -> None:
        store = RecordingQuotaStore(
            {
                "deepl-a": QuotaState(key_id="deepl-a", used=640, limit=1000),
                "stale-key": QuotaState(key_id="stale-key", used=1, limit=10),
            }
        )
        ledger = QuotaLedger(observability, quota_store=store, clock=clock)
        ledger.register(make_key())

        restored = await ledger.restore()

        assert list(restored) == ["deepl-a"]
        assert ledger.snapshot("deepl-a").used == 640
        assert "stale-key" not in ledger

    @pytest.mark.asyncio
    async def test_restore_without_store_is_noop(self, ledger: QuotaLedger) -> None:
        assert await ledger.restore() == {}


class TestObservability:
    @pytest.mark.asyncio
    async def test_mutations_emit_events(
        self, ledger: QuotaLedger, observability: MockObservabilityManager
    ) -> None:
        await ledger.try_reserve("deepl-a", 10)
        await ledger.release("deepl-a", 10)
        await ledger.reconcile("deepl-a", used=5, limit=1000)

        types = [e["event_type"] for e in observability.events]
        assert types == ["quota_reserved", "quota_released", "quota_reconciled"]

    @pytest.mark.asyncio
    async def test_emit_failure_is_swallowed(
        self, ledger: QuotaLedger, observability: MockObservabilityManager
    ) -> None:
        observability.emit_error = ObservabilityError("sink down")

        assert await ledger.try_reserve("deepl-a", 10) is True
        assert ledger.snapshot("deepl-a").used == 10
        assert observability.logs[-1]["level"] == "WARNING"
