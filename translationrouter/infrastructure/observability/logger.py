"""Default observability manager implementation."""

import logging
import re
from datetime import UTC, datetime
from typing import Any

import structlog

from translationrouter.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)

SENSITIVE_FIELDS = frozenset({"credential", "secret", "auth_key", "api_key", "subscription_key"})

# DeepL free keys ("<uuid>:fx") and classic 32-hex Azure subscription keys.
_DEEPL_KEY = re.compile(r"^[0-9a-fA-F]{8}(-[0-9a-fA-F]{4}){3}-[0-9a-fA-F]{12}:fx$")
_AZURE_KEY = re.compile(r"^[0-9a-fA-F]{32}$")


def looks_like_secret(value: str) -> bool:
    """Whether a bare string has the shape of a provider credential."""
    return bool(_DEEPL_KEY.match(value) or _AZURE_KEY.match(value))


def sanitize_for_logging(data: Any) -> Any:
    """Sanitize data to remove sensitive information before logging.

    Redacts credential-like fields from dictionaries and nested structures,
    plus bare strings that look like provider keys.

    Args:
        data: Data structure to sanitize (dict, list, or primitive).

    Returns:
        Sanitized data structure with credentials replaced by "[REDACTED]".
    """
    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            if isinstance(key, str) and key.lower() in SENSITIVE_FIELDS:
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = sanitize_for_logging(value)
        return sanitized
    elif isinstance(data, list | tuple):
        return [sanitize_for_logging(item) for item in data]
    elif isinstance(data, str) and looks_like_secret(data):
        return "[REDACTED]"
    return data


class DefaultObservabilityManager(ObservabilityManager):
    """Default implementation of ObservabilityManager using structlog with JSON format.

    Provides structured logging with JSON output for machine readability,
    while maintaining human-readable output in development mode.
    """

    def __init__(
        self,
        log_level: str = "INFO",
        json_format: bool = True,
        logger_name: str = "translationrouter",
    ) -> None:
        """Initialize DefaultObservabilityManager.

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            json_format: If True, use JSON format for structured logging.
                        If False, use human-readable format (development mode).
            logger_name: Name of the underlying stdlib logger.
        """
        self._log_level = log_level
        self._json_format = json_format

        processors: list[Any] = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
        ]

        if json_format:
            processors.append(structlog.processors.JSONRenderer())
        else:
            processors.append(structlog.dev.ConsoleRenderer())

        structlog.configure(
            processors=processors,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        logging.basicConfig(
            format="%(message)s"
            if json_format
            else "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        logging.getLogger(logger_name).setLevel(
            getattr(logging, log_level.upper(), logging.INFO)
        )

        self._logger = structlog.get_logger(logger_name)

    @property
    def log_level(self) -> str:
        return self._log_level

    async def emit_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Emit an event as one structured log line.

        Args:
            event_type: Type of event (e.g., "quota_reserved", "cooldown_entered").
            payload: Event payload data.
            metadata: Optional metadata (request_id, timestamp, etc.).

        Raises:
            ObservabilityError: If event emission fails.
        """
        try:
            event_data = dict(sanitize_for_logging(payload))
            if metadata:
                sanitized_metadata = sanitize_for_logging(metadata)
                sanitized_metadata.setdefault("timestamp", datetime.now(UTC).isoformat())
                event_data["metadata"] = sanitized_metadata

            self._logger.info(
                "Event emitted",
                event_type=event_type,
                **event_data,
            )
        except Exception as e:
            raise ObservabilityError(f"Failed to emit event: {e}") from e

    async def log(
        self,
        level: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log a message with structured context.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            message: Log message.
            context: Optional structured context data.

        Raises:
            ObservabilityError: If logging fails.
        """
        try:
            sanitized_context = sanitize_for_logging(context) if context else None
            sanitized_message = sanitize_for_logging(message)

            log_method = getattr(self._logger, level.lower(), self._logger.info)
            if sanitized_context:
                log_method(sanitized_message, **sanitized_context)
            else:
                log_method(sanitized_message)
        except Exception as e:
            raise ObservabilityError(f"Failed to log message: {e}") from e
