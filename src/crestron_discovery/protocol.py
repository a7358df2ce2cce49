"""
Crestron autodiscovery wire format.

Outbound probe (266 bytes, UDP broadcast to port 41794):

    14 00 00 00 01 04 00 03 00 00 | ascii hostname | NUL padding

Inbound reply:

    15 00 00 00 | <hostname> NUL... <description ending in ']'> [ @<device id>]
"""

from __future__ import annotations

import re
import socket
from dataclasses import dataclass
from typing import Optional

DISCOVERY_PORT = 41794
PACKET_SIZE = 266

PROBE_HEADER = bytes([0x14, 0x00, 0x00, 0x00, 0x01, 0x04, 0x00, 0x03, 0x00, 0x00])
RESPONSE_MAGIC = bytes([0x15, 0x00, 0x00, 0x00])

_HIGH_BYTES_TO_QUESTION = bytes(range(0x80)) + b"?" * 0x80

REPLY_PATTERN = re.compile(
    r"(?P<hostname>[\w-]*)\x00+(?P<description>[\x20-\x7E]*\])(\s*@(?P<devid>[\x20-\x7E]*))?"
)


@dataclass(frozen=True)
class DiscoveryReply:
    """Fields parsed out of a reply payload."""
    hostname: str
    description: str
    device_id: str = ""


def build_discovery_packet(hostname: Optional[str] = None) -> bytes:
    """
    Build the broadcast probe for this machine.

    Hostnames longer than the 256 byte payload are truncated so the
    datagram is always exactly PACKET_SIZE bytes.
    """
    if hostname is None:
        hostname = socket.gethostname()
    name = hostname.encode("ascii", errors="replace")[:PACKET_SIZE - len(PROBE_HEADER)]
    packet = PROBE_HEADER + name
    return packet + bytes(PACKET_SIZE - len(packet))


def parse_discovery_reply(data: bytes) -> Optional[DiscoveryReply]:
    """
    Parse a datagram received on the discovery socket.

    Returns None for anything that is not a well-formed reply; a
    mismatch is not an error.
    """
    if not data or not data.startswith(RESPONSE_MAGIC):
        return None

    # Bytes above 0x7F decode as "?"
    message = data[len(RESPONSE_MAGIC):].translate(_HIGH_BYTES_TO_QUESTION).decode("ascii")
    match = REPLY_PATTERN.search(message)
    if not match:
        return None

    return DiscoveryReply(
        hostname=match.group("hostname"),
        description=match.group("description"),
        device_id=match.group("devid") or "",
    )
