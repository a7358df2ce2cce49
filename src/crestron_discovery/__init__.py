"""
Crestron Device Discovery - locate Crestron control processors and
touch panels on the network.

Two discovery paths share one engine:
    Broadcast - UDP autodiscovery probe on each local IPv4 adapter
    Remote    - SSH into a processor and run its "autodiscovery query"

Only one discovery call (of either kind) runs at a time per engine.
"""

__version__ = "0.1.0"

from ._types import (
    ActivitySnapshot,
    AdapterDescriptor,
    DeviceRecord,
    DiscoverySource,
)
from .adapters import list_ipv4_adapters
from .config import DiscoveryConfig
from .engine import CrestronDiscovery
from .exceptions import (
    AuthenticationFailure,
    ConnectionFailure,
    DiscoveryError,
    RemoteCommandFailure,
    TransportError,
)

__all__ = [
    "__version__",
    "ActivitySnapshot",
    "AdapterDescriptor",
    "DeviceRecord",
    "DiscoverySource",
    "CrestronDiscovery",
    "DiscoveryConfig",
    "list_ipv4_adapters",
    "DiscoveryError",
    "TransportError",
    "AuthenticationFailure",
    "ConnectionFailure",
    "RemoteCommandFailure",
]
