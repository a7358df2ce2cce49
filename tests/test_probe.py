"""Tests for the single-adapter probe worker."""

import time

import pytest

from crestron_discovery import AdapterDescriptor, DiscoveryConfig, DiscoverySource
from crestron_discovery.probe import ProbeWorker
from crestron_discovery.protocol import PACKET_SIZE, RESPONSE_MAGIC
from crestron_discovery.registry import DeviceRegistry
from crestron_discovery.state import SessionState


def make_worker(adapter, config, notify=None):
    registry = DeviceRegistry(notify=notify)
    state = SessionState(registry=registry, total_timeout=config.discovery_timeout)
    return ProbeWorker(adapter, registry, state, config)


class TestHandleDatagram:
    """Tests for reply handling without a socket."""

    @pytest.mark.asyncio
    async def test_reply_registers_device(self, loopback_adapter, fast_config, reply_factory):
        """A reply becomes a record keyed on the sender address."""
        worker = make_worker(loopback_adapter, fast_config)

        record = await worker.handle_datagram(
            reply_factory("CP4-MAIN", "CP4 Cntrl Eng [v2.8000]", "E-00107fe3c1d2"),
            ("10.0.0.50", 41794),
        )

        assert record.ip_address == "10.0.0.50"
        assert record.hostname == "CP4-MAIN"
        assert record.description == "CP4 Cntrl Eng [v2.8000]"
        assert record.device_id == "E-00107fe3c1d2"
        assert record.discovery_source == DiscoverySource.BROADCAST
        assert worker.discovered == [record]

    @pytest.mark.asyncio
    async def test_duplicate_reply_ignored(self, loopback_adapter, fast_config, reply_factory):
        worker = make_worker(loopback_adapter, fast_config)
        data = reply_factory("CP4-MAIN", "CP4 [v2]")

        assert await worker.handle_datagram(data, ("10.0.0.50", 41794)) is not None
        assert await worker.handle_datagram(data, ("10.0.0.50", 41794)) is None
        assert len(worker.registry) == 1

    @pytest.mark.asyncio
    async def test_non_reply_ignored(self, loopback_adapter, fast_config):
        """Our own looped-back probe and garbage are skipped."""
        worker = make_worker(loopback_adapter, fast_config)

        assert await worker.handle_datagram(worker.packet, ("10.0.0.2", 41794)) is None
        assert await worker.handle_datagram(b"\x00\x01", ("10.0.0.2", 41794)) is None
        assert await worker.handle_datagram(RESPONSE_MAGIC + b"junk", ("10.0.0.2", 41794)) is None
        assert len(worker.registry) == 0

    @pytest.mark.asyncio
    async def test_new_device_extends_window(self, loopback_adapter, fast_config, reply_factory):
        """Each new device pushes the deadline out by window_extension."""
        worker = make_worker(loopback_adapter, fast_config)
        worker.deadline = time.monotonic() + 1.0
        start_deadline = worker.deadline

        await worker.handle_datagram(reply_factory("A", "A [1]"), ("10.0.0.1", 41794))
        await worker.handle_datagram(reply_factory("B", "B [1]"), ("10.0.0.2", 41794))
        await worker.handle_datagram(reply_factory("B", "B [1]"), ("10.0.0.2", 41794))

        assert worker.deadline == pytest.approx(start_deadline + 2 * fast_config.window_extension)
        assert worker.state.total_timeout >= worker.deadline - worker.state.started_at - 1e-6


class TestProbeWorkerRun:
    """Tests against a fake device on the loopback interface."""

    @pytest.mark.asyncio
    async def test_discovers_fake_device(
        self, loopback_adapter, fast_config, fake_device_class, reply_factory
    ):
        device = await fake_device_class.start(reply_factory("CP4-MAIN", "CP4 [v2.8000]", "E-1"))
        fast_config.discovery_port = device.port
        fast_config.local_hostname = "TEST-HOST"
        try:
            worker = make_worker(loopback_adapter, fast_config)
            started = time.monotonic()
            devices = await worker.run()
            elapsed = time.monotonic() - started
        finally:
            device.close()

        assert [d.ip_address for d in devices] == ["127.0.0.1"]
        assert devices[0].hostname == "CP4-MAIN"
        assert devices[0].device_id == "E-1"
        assert len(device.probe_times) == fast_config.probe_count
        # Window was extended once for the single device
        assert elapsed >= fast_config.discovery_timeout + fast_config.window_extension - 0.05

    def test_probe_packet_contents(self, loopback_adapter, fast_config):
        """Probe carries the configured local hostname."""
        fast_config.local_hostname = "TEST-HOST"
        worker = make_worker(loopback_adapter, fast_config)

        assert len(worker.packet) == PACKET_SIZE
        assert worker.packet[10:19] == b"TEST-HOST"

    @pytest.mark.asyncio
    async def test_silent_network_returns_empty(self, loopback_adapter, fast_config):
        """No replies: the worker returns after the base window."""
        fast_config.discovery_port = 9  # discard
        worker = make_worker(loopback_adapter, fast_config)

        started = time.monotonic()
        devices = await worker.run()

        assert devices == []
        assert time.monotonic() - started >= fast_config.discovery_timeout - 0.05

    @pytest.mark.asyncio
    async def test_bind_failure_returns_empty(self, fast_config):
        """An address we cannot bind to is reported, not raised."""
        adapter = AdapterDescriptor(
            id="0:bogus",
            name="bogus",
            local_address="192.0.2.123",
            broadcast_address="192.0.2.255",
        )
        worker = make_worker(adapter, fast_config)

        devices = await worker.run()

        assert devices == []
        assert "192.0.2.123" in worker.state.last_error

    def test_default_config(self, loopback_adapter):
        registry = DeviceRegistry()
        state = SessionState(registry=registry, total_timeout=8.0)
        worker = ProbeWorker(loopback_adapter, registry, state)

        assert worker.config == DiscoveryConfig()
