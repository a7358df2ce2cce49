"""
Per-call registry of discovered devices.

Shared by every probe worker (or the remote client) taking part in
one discovery call, and discarded when the call returns.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ._types import DeviceRecord

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """
    Insertion-ordered map of identity key to DeviceRecord.

    First write wins: a second record with an existing key is dropped.
    Every insertion made through ``register()`` happens under the
    dispatch lock together with its discovered-device notification, so
    notifications never overlap no matter how many workers are active.
    """

    def __init__(
        self,
        notify: Optional[Callable[[DeviceRecord], Awaitable[None]]] = None,
    ):
        """
        Initialize registry.

        Args:
            notify: Coroutine called once for every newly added record
        """
        self._devices: dict[str, DeviceRecord] = {}
        self._notify = notify
        self._dispatch_lock = asyncio.Lock()
        self._closed = False

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, key: str) -> bool:
        return key in self._devices

    def try_add(self, key: str, record: DeviceRecord) -> bool:
        """Insert a record unless the key is already present."""
        if key in self._devices:
            return False
        self._devices[key] = record
        return True

    async def register(self, record: DeviceRecord, key: Optional[str] = None) -> bool:
        """
        Add a record and notify subscribers if it is new.

        Returns True if the record was inserted.
        """
        key = key if key is not None else record.key
        async with self._dispatch_lock:
            if self._closed:
                logger.debug(f"Registry closed, late record for {key} dropped")
                return False
            if not self.try_add(key, record):
                logger.debug(f"Duplicate reply from {key} ignored")
                return False
            if self._notify:
                await self._notify(record)
        return True

    def close(self) -> None:
        """Refuse any further registrations."""
        self._closed = True

    def devices(self) -> list[DeviceRecord]:
        """Records in the order they were first seen."""
        return list(self._devices.values())
