"""Clock abstraction so cooldown and sync timing can be driven by tests."""

import asyncio
from datetime import UTC, datetime


class Clock:
    """Wall clock plus asyncio sleep.

    Components take a Clock instead of calling ``datetime.now`` and
    ``asyncio.sleep`` directly; tests substitute a fake that advances
    time manually.
    """

    def now(self) -> datetime:
        """Current UTC time (timezone-aware)."""
        return datetime.now(UTC)

    async def sleep(self, seconds: float) -> None:
        """Suspend the calling task for ``seconds``."""
        await asyncio.sleep(seconds)


SYSTEM_CLOCK = Clock()
