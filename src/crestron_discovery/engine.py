"""
Crestron discovery engine.

Owns everything that outlives a single discovery call: the
single-flight gate, the event channels and the configuration.
Construct one per process (or one per test).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from ._types import ActivitySnapshot, AdapterDescriptor, DeviceRecord
from .adapters import list_ipv4_adapters
from .config import DiscoveryConfig
from .events import EventChannel
from .remote import RemoteDiscoveryClient
from .session import DiscoverySession
from .state import SessionState

logger = logging.getLogger(__name__)


class CrestronDiscovery:
    """
    Discover Crestron devices by broadcast or through a remote console.

    Usage:
        engine = CrestronDiscovery()
        engine.device_events.subscribe(print)
        devices = await engine.discover_all_local_adapters()
    """

    def __init__(self, config: Optional[DiscoveryConfig] = None):
        self.config = config or DiscoveryConfig()
        self.device_events: EventChannel[DeviceRecord] = EventChannel("device_discovered")
        self.activity_events: EventChannel[ActivitySnapshot] = EventChannel("activity")
        self._gate = asyncio.Lock()
        self._state: Optional[SessionState] = None

    @property
    def is_discovering(self) -> bool:
        return self._state is not None and self._state.is_running

    @property
    def discovered_count(self) -> int:
        """Devices found by the current (or most recent) call."""
        return self._state.discovered_count if self._state else 0

    @property
    def last_error(self) -> Optional[str]:
        return self._state.last_error if self._state else None

    def _track(self, state: SessionState) -> None:
        self._state = state

    async def discover_on_adapters(self, adapters: Iterable[AdapterDescriptor]) -> list[DeviceRecord]:
        """Broadcast discovery on the given adapters."""
        session = DiscoverySession(
            self.config,
            self._gate,
            self.device_events,
            self.activity_events,
            track=self._track,
        )
        return await session.run_on(adapters)

    async def discover_on_adapter(self, adapter: AdapterDescriptor) -> list[DeviceRecord]:
        """Broadcast discovery on a single adapter."""
        return await self.discover_on_adapters([adapter])

    async def discover_all_local_adapters(self) -> list[DeviceRecord]:
        """Broadcast discovery on every active IPv4 adapter."""
        adapters = list_ipv4_adapters(self.config.adapter_names or None)
        if not adapters:
            logger.warning("No active IPv4 adapters found")
        return await self.discover_on_adapters(adapters)

    async def discover_remote(self, host: str, username: str, password: str) -> list[DeviceRecord]:
        """Ask the control processor at ``host`` to discover for us."""
        client = RemoteDiscoveryClient(
            self.config,
            self._gate,
            self.device_events,
            self.activity_events,
            track=self._track,
        )
        return await client.discover_remote(host, username, password)
