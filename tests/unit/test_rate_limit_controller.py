"""Tests for RateLimitController component."""

import random

import pytest

from tests.fixtures.fakes import FakeClock, MockObservabilityManager
from translationrouter.domain.components.rate_limit_controller import RateLimitController
from translationrouter.domain.models.cooldown_state import CooldownStatus
from translationrouter.domain.models.system_error import UnknownProviderKeyError


@pytest.fixture
def controller(
    observability: MockObservabilityManager, clock: FakeClock, rng: random.Random
) -> RateLimitController:
    controller = RateLimitController(
        observability,
        backoff_base_seconds=1.0,
        max_exponent=5,
        jitter_ratio=0.2,
        clock=clock,
        rng=rng,
    )
    controller.register("deepl-a")
    return controller


@pytest.fixture
def no_jitter(observability: MockObservabilityManager, clock: FakeClock) -> RateLimitController:
    controller = RateLimitController(observability, jitter_ratio=0.0, clock=clock)
    controller.register("deepl-a")
    return controller


class TestConstruction:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"backoff_base_seconds": 0},
            {"max_exponent": -1},
            {"jitter_ratio": 1.5},
        ],
    )
    def test_invalid_tunables(self, observability: MockObservabilityManager, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            RateLimitController(observability, **kwargs)

    def test_new_key_is_available(self, controller: RateLimitController) -> None:
        assert controller.status("deepl-a") == CooldownStatus.Available
        assert controller.snapshot("deepl-a").consecutive_failures == 0

    def test_unknown_key(self, controller: RateLimitController) -> None:
        with pytest.raises(UnknownProviderKeyError):
            controller.is_cooling("missing")


class TestBackoff:
    def test_duration_doubles_and_caps(self, controller: RateLimitController) -> None:
        assert [controller.cooldown_duration(n) for n in range(1, 8)] == [
            2.0, 4.0, 8.0, 16.0, 32.0, 32.0, 32.0,
        ]
        assert controller.max_cooldown_seconds == 32.0

    @pytest.mark.asyncio
    async def test_cooldown_grows_with_consecutive_failures(
        self, no_jitter: RateLimitController, clock: FakeClock
    ) -> None:
        durations = []
        for _ in range(7):
            state = await no_jitter.enter_cooldown("deepl-a", reason="rate_limited")
            durations.append(state.remaining_seconds(clock.now()))

        assert durations == [2.0, 4.0, 8.0, 16.0, 32.0, 32.0, 32.0]
        assert no_jitter.snapshot("deepl-a").consecutive_failures == 7

    @pytest.mark.asyncio
    async def test_jitter_stays_within_ratio(
        self, controller: RateLimitController, clock: FakeClock
    ) -> None:
        for failures in range(1, 10):
            state = await controller.enter_cooldown("deepl-a", reason="transient_error")
            base = controller.cooldown_duration(failures)
            remaining = state.remaining_seconds(clock.now())
            assert base <= remaining <= base * 1.2

    @pytest.mark.asyncio
    async def test_retry_after_extends_cooldown(
        self, no_jitter: RateLimitController, clock: FakeClock
    ) -> None:
        state = await no_jitter.enter_cooldown("deepl-a", reason="rate_limited", retry_after=30)
        assert state.remaining_seconds(clock.now()) == 30.0

    @pytest.mark.asyncio
    async def test_shorter_retry_after_is_ignored(
        self, no_jitter: RateLimitController, clock: FakeClock
    ) -> None:
        state = await no_jitter.enter_cooldown("deepl-a", reason="rate_limited", retry_after=0.5)
        assert state.remaining_seconds(clock.now()) == 2.0


class TestStateMachine:
    @pytest.mark.asyncio
    async def test_cooling_until_expiry(
        self, no_jitter: RateLimitController, clock: FakeClock
    ) -> None:
        await no_jitter.enter_cooldown("deepl-a", reason="rate_limited")
        assert no_jitter.is_cooling("deepl-a")

        clock.advance(1.999)
        assert no_jitter.is_cooling("deepl-a")

        clock.advance(0.001)
        assert not no_jitter.is_cooling("deepl-a")
        # Failures survive expiry until a success resets them.
        assert no_jitter.snapshot("deepl-a").consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_is_cooling_at_explicit_time(
        self, no_jitter: RateLimitController, clock: FakeClock
    ) -> None:
        state = await no_jitter.enter_cooldown("deepl-a", reason="rate_limited")
        assert no_jitter.is_cooling("deepl-a", now=clock.now())
        assert not no_jitter.is_cooling("deepl-a", now=state.until)

    @pytest.mark.asyncio
    async def test_success_resets(
        self,
        no_jitter: RateLimitController,
        observability: MockObservabilityManager,
    ) -> None:
        await no_jitter.enter_cooldown("deepl-a", reason="rate_limited")
        await no_jitter.enter_cooldown("deepl-a", reason="rate_limited")

        state = await no_jitter.record_success("deepl-a")

        assert state.consecutive_failures == 0
        assert not no_jitter.is_cooling("deepl-a")
        cleared = observability.events_of("cooldown_cleared")
        assert cleared[0]["previous_consecutive_failures"] == 2

    @pytest.mark.asyncio
    async def test_success_on_healthy_key_emits_nothing(
        self,
        no_jitter: RateLimitController,
        observability: MockObservabilityManager,
    ) -> None:
        await no_jitter.record_success("deepl-a")
        assert observability.events == []

    @pytest.mark.asyncio
    async def test_cooldown_entered_event(
        self,
        no_jitter: RateLimitController,
        observability: MockObservabilityManager,
    ) -> None:
        await no_jitter.enter_cooldown("deepl-a", reason="rate_limited")

        event = observability.events_of("cooldown_entered")[0]
        assert event["key_id"] == "deepl-a"
        assert event["from_state"] == "available"
        assert event["to_state"] == "cooling"
        assert event["trigger"] == "rate_limited"
        assert event["cooldown_seconds"] == 2.0

    def test_unregister_forgets_key(self, controller: RateLimitController) -> None:
        controller.unregister("deepl-a")
        with pytest.raises(UnknownProviderKeyError):
            controller.snapshot("deepl-a")
