"""Shared fixtures for Crestron discovery tests."""

import asyncio
import time

import pytest

from crestron_discovery import AdapterDescriptor, DiscoveryConfig
from crestron_discovery.protocol import PROBE_HEADER, RESPONSE_MAGIC


def make_reply(hostname: str, description: str, device_id: str = "") -> bytes:
    """Build a reply datagram the way a processor sends it."""
    payload = hostname.encode() + b"\x00" * 6 + description.encode()
    if device_id:
        payload += b" @" + device_id.encode()
    return RESPONSE_MAGIC + payload + b"\x00" * 4


class FakeDevice(asyncio.DatagramProtocol):
    """
    A Crestron device on the loopback interface.

    Answers every probe it receives with ``reply``, ``repeat`` times,
    and records when each probe arrived.
    """

    def __init__(self, reply: bytes, repeat: int = 1):
        self.reply = reply
        self.repeat = repeat
        self.probe_times: list[float] = []
        self.transport = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        if not data.startswith(PROBE_HEADER):
            return
        self.probe_times.append(time.monotonic())
        for _ in range(self.repeat):
            self.transport.sendto(self.reply, addr)

    @property
    def port(self) -> int:
        return self.transport.get_extra_info("sockname")[1]

    @classmethod
    async def start(cls, reply: bytes, repeat: int = 1) -> "FakeDevice":
        loop = asyncio.get_running_loop()
        _, device = await loop.create_datagram_endpoint(
            lambda: cls(reply, repeat),
            local_addr=("127.0.0.1", 0),
        )
        return device

    def close(self):
        self.transport.close()


@pytest.fixture
def fake_device_class():
    return FakeDevice


@pytest.fixture
def reply_factory():
    return make_reply


@pytest.fixture
def loopback_adapter():
    return AdapterDescriptor(
        id="0:lo",
        name="lo",
        local_address="127.0.0.1",
        broadcast_address="127.0.0.1",
    )


@pytest.fixture
def fast_config():
    """Short windows so tests finish quickly."""
    return DiscoveryConfig(
        discovery_timeout=0.5,
        window_extension=0.1,
        probe_interval=0.05,
        bind_port=0,
        activity_interval=0.1,
        remote_timeout=1.0,
    )
