"""
Periodic activity reporting for a running discovery call.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from ._types import ActivitySnapshot
from .events import EventChannel

if TYPE_CHECKING:
    from .state import SessionState

logger = logging.getLogger(__name__)


class ActivityReporter:
    """
    Emit a status snapshot every ``interval`` seconds while a call runs,
    and once more when it ends.
    """

    def __init__(
        self,
        state: "SessionState",
        channel: EventChannel[ActivitySnapshot],
        interval: float = 1.0,
    ):
        self.state = state
        self.channel = channel
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        """Start ticking in the background."""
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="activity-reporter")

    async def stop(self) -> None:
        """Stop periodic ticks. Does not emit the final tick."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def tick(self) -> ActivitySnapshot:
        """Emit one snapshot of the current state."""
        snapshot = self.state.snapshot()
        logger.info(
            f"Timer update: Devices Discovered: {snapshot.devices_discovered} "
            f"Total Time: {snapshot.total_time:.1f} seconds. "
            f"Elapsed Time: {snapshot.elapsed_time:.1f}. "
            f"Is Discovering: {snapshot.is_running}"
        )
        await self.channel.publish(snapshot)
        return snapshot

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.tick()
