"""ObservabilityManager interface for events and logging."""

from abc import ABC, abstractmethod
from typing import Any


class ObservabilityManager(ABC):
    """Abstract interface for observability (events, logging).

    Every Ledger and Rate-Limit Controller state transition and every
    dispatcher attempt outcome is emitted through ``emit_event``. Delivery is
    fire-and-forget: components never fail an operation because an event
    could not be emitted.
    """

    @abstractmethod
    async def emit_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Emit an event for observability.

        Args:
            event_type: Type of event (e.g., "quota_reserved", "cooldown_entered").
            payload: Event payload data.
            metadata: Optional metadata (request_id, timestamp, etc.).

        Raises:
            ObservabilityError: If event emission fails.
        """
        pass

    @abstractmethod
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
        pass


class ObservabilityError(Exception):
    """Raised when observability operations fail."""

    pass


async def emit_event_safely(
    observability: ObservabilityManager,
    event_type: str,
    payload: dict[str, Any],
    metadata: dict[str, Any] | None = None,
) -> None:
    """Emit an event, downgrading any failure to a WARNING log line."""
    try:
        await observability.emit_event(
            event_type=event_type,
            payload=payload,
            metadata=metadata,
        )
    except Exception as e:
        try:
            await observability.log(
                level="WARNING",
                message=f"Failed to emit {event_type} event: {e}",
                context={"key_id": payload.get("key_id")},
            )
        except ObservabilityError:
            pass
