"""
Mutable state of one discovery call.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from ._types import ActivitySnapshot
from .registry import DeviceRegistry


@dataclass
class SessionState:
    """
    State of a discovery call, read by the activity reporter.

    Created when a call begins and discarded when it returns. Times are
    ``time.monotonic()`` values; ``total_timeout`` only ever grows, as
    probe workers extend their windows.
    """
    registry: DeviceRegistry
    total_timeout: float
    started_at: float = field(default_factory=time.monotonic)
    finished_at: Optional[float] = None
    is_running: bool = False
    last_error: Optional[str] = None
    result_count: Optional[int] = None  # Set once the call knows what it returns

    @property
    def discovered_count(self) -> int:
        if self.result_count is not None:
            return self.result_count
        return len(self.registry)

    @property
    def elapsed(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

    def extend_until(self, deadline: float) -> None:
        """Grow the planned total so it covers ``deadline``."""
        self.total_timeout = max(self.total_timeout, deadline - self.started_at)

    def finish(self, result_count: Optional[int] = None) -> None:
        """Mark the call finished, optionally fixing the reported count."""
        if result_count is not None:
            self.result_count = result_count
        self.is_running = False
        self.finished_at = time.monotonic()

    def snapshot(self) -> ActivitySnapshot:
        return ActivitySnapshot(
            devices_discovered=self.discovered_count,
            elapsed_time=self.elapsed,
            total_time=self.total_timeout,
            is_running=self.is_running,
            last_error=self.last_error,
        )
