"""Pytest configuration and shared fixtures."""

import random

import pytest

from tests.fixtures.fakes import FakeClock, MockObservabilityManager
from translationrouter.domain.models.provider_key import PoolConfig


@pytest.fixture
def observability() -> MockObservabilityManager:
    return MockObservabilityManager()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source so cooldown jitter is reproducible."""
    return random.Random(1234)


@pytest.fixture
def two_tier_config() -> PoolConfig:
    """Free DeepL keys first, paid Azure key as fallback."""
    return PoolConfig.from_tiers([
        (
            "free",
            [
                {"key_id": "deepl-a", "provider_id": "deepl", "character_limit": 1000},
                {"key_id": "deepl-b", "provider_id": "deepl", "character_limit": 1000},
            ],
        ),
        ("paid", [{"key_id": "azure-1", "provider_id": "azure"}]),
    ])
