"""
Type definitions for Crestron device discovery.

These dataclasses define the domain model shared by the broadcast
and remote discovery paths.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def now_utc() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


class DiscoverySource(str, Enum):
    """How the device was discovered."""
    BROADCAST = "broadcast"  # UDP reply on a local adapter
    REMOTE = "remote"        # Line of a remote "autodiscovery query"
    REMOTE_SELF = "remote_self"  # The remote console itself


@dataclass(frozen=True)
class DeviceRecord:
    """
    A discovered Crestron device.

    Records are immutable once built. Deduplication keys on
    ``ip_address`` for both discovery paths.
    """
    ip_address: str
    hostname: str = ""
    description: str = ""
    device_id: str = ""
    discovery_source: DiscoverySource = field(
        default=DiscoverySource.BROADCAST, compare=False
    )

    @property
    def key(self) -> str:
        """Identity used by the registry."""
        return self.ip_address

    def to_dict(self) -> dict[str, str]:
        return {
            "ip_address": self.ip_address,
            "hostname": self.hostname,
            "description": self.description,
            "device_id": self.device_id,
            "discovery_source": self.discovery_source.value,
        }


@dataclass(frozen=True)
class AdapterDescriptor:
    """An active IPv4 network adapter on this machine."""
    id: str
    name: str
    local_address: str
    broadcast_address: str = "255.255.255.255"


@dataclass(frozen=True)
class ActivitySnapshot:
    """Status of a discovery call, emitted once per second while it runs."""
    devices_discovered: int
    elapsed_time: float
    total_time: float
    is_running: bool
    last_error: Optional[str] = None
    emitted_at: datetime = field(default_factory=now_utc, compare=False)
