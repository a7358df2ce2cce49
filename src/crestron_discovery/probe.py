"""
Broadcast discovery on a single network adapter.

A ProbeWorker binds one UDP socket to the adapter address, broadcasts
the discovery probe a few times and collects replies until its
listening window closes. Every new device extends the window so late
bursts of replies are not cut off.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import time
from typing import Optional

from ._types import AdapterDescriptor, DeviceRecord, DiscoverySource
from .config import DiscoveryConfig
from .exceptions import TransportError
from .protocol import build_discovery_packet, parse_discovery_reply
from .registry import DeviceRegistry
from .state import SessionState

logger = logging.getLogger(__name__)


class _ReplyProtocol(asyncio.DatagramProtocol):
    """Queue every datagram for the worker's receive loop."""

    def __init__(self, queue: asyncio.Queue, adapter: AdapterDescriptor):
        self.queue = queue
        self.adapter = adapter

    def datagram_received(self, data: bytes, addr: tuple) -> None:
        self.queue.put_nowait((data, addr))

    def error_received(self, exc: Exception) -> None:
        # Receive errors are not fatal; the window keeps running
        logger.warning(f"Socket error on {self.adapter.local_address}: {exc}")


class ProbeWorker:
    """
    Discover devices reachable from one local adapter.

    Usage:
        worker = ProbeWorker(adapter, registry, state, config)
        devices = await worker.run()
    """

    def __init__(
        self,
        adapter: AdapterDescriptor,
        registry: DeviceRegistry,
        state: SessionState,
        config: Optional[DiscoveryConfig] = None,
    ):
        """
        Initialize worker.

        Args:
            adapter: Adapter to bind to and broadcast from
            registry: Registry shared by all workers of this call
            state: Session state, used to publish window extensions
            config: Discovery configuration
        """
        self.adapter = adapter
        self.registry = registry
        self.state = state
        self.config = config or DiscoveryConfig()
        self.packet = build_discovery_packet(self.config.local_hostname)
        self.deadline = 0.0
        self.discovered: list[DeviceRecord] = []
        self._queue: asyncio.Queue = asyncio.Queue()

    async def run(self) -> list[DeviceRecord]:
        """
        Probe and listen until the window closes.

        Returns the devices this worker added to the registry.
        """
        logger.debug(
            f"Starting discovery on {self.adapter.local_address} "
            f"for {self.config.discovery_timeout} seconds"
        )

        try:
            transport = await self._open_endpoint()
        except TransportError as e:
            logger.error(f"Cannot open discovery socket: {e}")
            self.state.last_error = str(e)
            return self.discovered

        sender = asyncio.create_task(self._send_probes(transport))
        try:
            await self._receive_until_deadline()
        finally:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            transport.close()

        logger.debug(
            f"Ending discovery on {self.adapter.local_address}. "
            f"Found {len(self.discovered)} devices"
        )
        return self.discovered

    async def _open_endpoint(self) -> asyncio.DatagramTransport:
        """Bind a broadcast-capable UDP socket to the adapter address."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, self.config.receive_buffer_size)
            sock.bind((self.adapter.local_address, self.config.bind_port))
            sock.setblocking(False)

            loop = asyncio.get_running_loop()
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _ReplyProtocol(self._queue, self.adapter),
                sock=sock,
            )
        except OSError as e:
            sock.close()
            raise TransportError(f"bind to {self.adapter.local_address}:{self.config.bind_port} failed: {e}") from e
        return transport

    async def _send_probes(self, transport: asyncio.DatagramTransport) -> None:
        target = (self.adapter.broadcast_address, self.config.discovery_port)
        for i in range(self.config.probe_count):
            try:
                logger.debug(f"Sending discovery message no {i + 1} to {target[0]}")
                transport.sendto(self.packet, target)
            except OSError as e:
                logger.warning(f"Failed to send discovery message to {target[0]}: {e}")
            await asyncio.sleep(self.config.probe_interval)

    async def _receive_until_deadline(self) -> None:
        self.deadline = time.monotonic() + self.config.discovery_timeout
        self.state.extend_until(self.deadline)

        while True:
            remaining = self.deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                data, addr = await asyncio.wait_for(self._queue.get(), timeout=remaining)
            except asyncio.TimeoutError:
                continue
            await self.handle_datagram(data, addr)

    async def handle_datagram(self, data: bytes, addr: tuple) -> Optional[DeviceRecord]:
        """
        Register the sender if the datagram is a discovery reply.

        Returns the record if it was new.
        """
        reply = parse_discovery_reply(data)
        if reply is None:
            return None

        record = DeviceRecord(
            ip_address=addr[0],
            hostname=reply.hostname,
            description=reply.description,
            device_id=reply.device_id,
            discovery_source=DiscoverySource.BROADCAST,
        )
        if not await self.registry.register(record):
            return None

        self.discovered.append(record)
        self.deadline += self.config.window_extension
        self.state.extend_until(self.deadline)
        logger.debug(f"Discovered {record.hostname} ({record.ip_address}) via {self.adapter.local_address}")
        return record
