"""
Local IPv4 adapter enumeration.

Lists the interfaces broadcast discovery can run on: up, not
loopback, with an IPv4 address.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
from typing import Optional

import psutil

from ._types import AdapterDescriptor

logger = logging.getLogger(__name__)

GLOBAL_BROADCAST = "255.255.255.255"


def broadcast_address_for(address: str, netmask: Optional[str]) -> str:
    """Directed broadcast address of ``address``/``netmask``."""
    if not netmask:
        return GLOBAL_BROADCAST
    try:
        network = ipaddress.IPv4Network(f"{address}/{netmask}", strict=False)
    except ValueError:
        logger.debug(f"Invalid netmask {netmask} for {address}")
        return GLOBAL_BROADCAST
    return str(network.broadcast_address)


def list_ipv4_adapters(names: Optional[list[str]] = None) -> list[AdapterDescriptor]:
    """
    Enumerate active IPv4 adapters.

    Args:
        names: Only return adapters with these interface names

    Returns:
        One descriptor per adapter, using its first IPv4 address
    """
    stats = psutil.net_if_stats()
    adapters = []

    for index, (iface, addrs) in enumerate(psutil.net_if_addrs().items()):
        if names and iface not in names:
            continue

        iface_stats = stats.get(iface)
        if iface_stats is not None and not iface_stats.isup:
            continue

        ipv4 = next((a for a in addrs if a.family == socket.AF_INET), None)
        if ipv4 is None:
            continue

        try:
            if ipaddress.IPv4Address(ipv4.address).is_loopback:
                continue
        except ValueError:
            continue

        adapters.append(AdapterDescriptor(
            id=f"{index}:{iface}",
            name=iface,
            local_address=ipv4.address,
            broadcast_address=ipv4.broadcast or broadcast_address_for(ipv4.address, ipv4.netmask),
        ))

    logger.debug(f"Found {len(adapters)} active IPv4 adapters")
    return adapters
