"""Tests for DefaultObservabilityManager and log sanitization."""

from unittest.mock import MagicMock

import pytest

from translationrouter.domain.interfaces.observability_manager import ObservabilityError
from translationrouter.infrastructure.observability.logger import (
    DefaultObservabilityManager,
    looks_like_secret,
    sanitize_for_logging,
)

DEEPL_FREE_KEY = "279a2e9d-83b3-c416-7e2d-f721593e42a0:fx"
AZURE_KEY = "0123456789abcdef0123456789abcdef"


class TestSanitizeForLogging:
    def test_sensitive_fields_redacted(self) -> None:
        data = {"key_id": "deepl-a", "credential": "s3cret", "Api_Key": "x", "attempt": 2}
        assert sanitize_for_logging(data) == {
            "key_id": "deepl-a",
            "credential": "[REDACTED]",
            "Api_Key": "[REDACTED]",
            "attempt": 2,
        }

    def test_nested_structures(self) -> None:
        data = {"keys": [{"key_id": "k1", "secret": "abc"}], "meta": {"auth_key": "abc"}}
        sanitized = sanitize_for_logging(data)
        assert sanitized["keys"][0] == {"key_id": "k1", "secret": "[REDACTED]"}
        assert sanitized["meta"]["auth_key"] == "[REDACTED]"

    def test_bare_provider_keys_redacted(self) -> None:
        assert sanitize_for_logging(["ok", DEEPL_FREE_KEY, AZURE_KEY]) == [
            "ok",
            "[REDACTED]",
            "[REDACTED]",
        ]

    def test_primitives_untouched(self) -> None:
        assert sanitize_for_logging(42) == 42
        assert sanitize_for_logging("deepl-free-1") == "deepl-free-1"

    def test_looks_like_secret(self) -> None:
        assert looks_like_secret(DEEPL_FREE_KEY)
        assert looks_like_secret(AZURE_KEY)
        assert not looks_like_secret("azure-westeurope-1")


class TestDefaultObservabilityManager:
    @pytest.mark.asyncio
    async def test_emit_event_sanitizes_payload(self) -> None:
        manager = DefaultObservabilityManager(log_level="DEBUG")
        manager._logger = MagicMock()

        await manager.emit_event(
            "translation_attempt",
            {"key_id": "deepl-a", "credential": DEEPL_FREE_KEY},
            metadata={"request_id": "r1"},
        )

        args, kwargs = manager._logger.info.call_args
        assert args == ("Event emitted",)
        assert kwargs["event_type"] == "translation_attempt"
        assert kwargs["credential"] == "[REDACTED]"
        assert kwargs["metadata"]["request_id"] == "r1"
        assert "timestamp" in kwargs["metadata"]

    @pytest.mark.asyncio
    async def test_log_uses_level_method(self) -> None:
        manager = DefaultObservabilityManager(json_format=False)
        manager._logger = MagicMock()

        await manager.log("warning", "Usage sync failed", {"key_id": "k1", "secret": "x"})

        manager._logger.warning.assert_called_once_with(
            "Usage sync failed", key_id="k1", secret="[REDACTED]"
        )

    @pytest.mark.asyncio
    async def test_logger_failure_wrapped(self) -> None:
        manager = DefaultObservabilityManager()
        manager._logger = MagicMock()
        manager._logger.info.side_effect = RuntimeError("sink down")

        with pytest.raises(ObservabilityError):
            await manager.emit_event("provider_registered", {"provider_id": "deepl"})

    def test_log_level_exposed(self) -> None:
        assert DefaultObservabilityManager(log_level="ERROR").log_level == "ERROR"
