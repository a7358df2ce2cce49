"""
Broadcast discovery across a set of adapters.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, Optional

from ._types import ActivitySnapshot, AdapterDescriptor, DeviceRecord
from .activity import ActivityReporter
from .config import DiscoveryConfig
from .events import EventChannel
from .probe import ProbeWorker
from .registry import DeviceRegistry
from .state import SessionState

logger = logging.getLogger(__name__)


class DiscoverySession:
    """
    Fan probe workers out over a set of adapters and merge their results.

    The single-flight gate is shared with the remote discovery path, so
    at most one discovery call of either kind runs at a time. A second
    caller waits for the gate rather than being rejected.
    """

    def __init__(
        self,
        config: DiscoveryConfig,
        gate: asyncio.Lock,
        device_events: EventChannel[DeviceRecord],
        activity_events: EventChannel[ActivitySnapshot],
        track: Optional[Callable[[SessionState], None]] = None,
    ):
        """
        Initialize session.

        Args:
            config: Discovery configuration
            gate: Process-wide single-flight lock
            device_events: Channel receiving one event per new device
            activity_events: Channel receiving activity ticks
            track: Called with the session state once the gate is held
        """
        self.config = config
        self.gate = gate
        self.device_events = device_events
        self.activity_events = activity_events
        self.track = track
        self.state: Optional[SessionState] = None

    async def run_on(self, adapters: Iterable[AdapterDescriptor]) -> list[DeviceRecord]:
        """
        Discover devices on every adapter concurrently.

        Runs until every worker's (possibly extended) window has closed.
        There is no way to stop a session early.
        """
        adapters = list(adapters)

        async with self.gate:
            registry = DeviceRegistry(notify=self.device_events.publish)
            state = SessionState(registry=registry, total_timeout=self.config.discovery_timeout)
            state.is_running = True
            self.state = state
            if self.track:
                self.track(state)

            logger.info(f"Starting broadcast discovery on {len(adapters)} adapter(s)")
            reporter = ActivityReporter(state, self.activity_events, self.config.activity_interval)
            reporter.start()
            devices: Optional[list[DeviceRecord]] = None
            try:
                await self._run_workers(adapters, registry, state)
                devices = registry.devices()
            finally:
                await reporter.stop()
                state.finish(len(devices) if devices is not None else None)
                await reporter.tick()

        logger.info(f"Broadcast discovery complete: {len(devices)} device(s) found")
        return devices

    async def _run_workers(
        self,
        adapters: list[AdapterDescriptor],
        registry: DeviceRegistry,
        state: SessionState,
    ) -> None:
        """Run one worker per adapter; if any fails, cancel the rest."""
        tasks = [
            asyncio.create_task(
                ProbeWorker(adapter, registry, state, self.config).run(),
                name=f"probe-{adapter.name}",
            )
            for adapter in adapters
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
