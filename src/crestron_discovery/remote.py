"""
Remote console discovery over SSH.

Logs into a Crestron control processor, identifies it with a few
console commands and asks it to run its own "autodiscovery query",
then parses the textual result.

Console output formats:

    ipconfig            ... IP Address ........ : 10.0.0.50 ...
    hostname            Host Name: CP4-MAIN
    ver                 CP4 Cntrl Eng [v2.8000.00031 (Jan 10 2023), #7F2A0B11] @E-00107fe3c1d2
    autodiscovery query 10.0.0.61 : 00.10.7f.aa.bb.cc : TSW-1070-LOBBY : TSW-1070 [v3.002.1061 ...] @E-00107faabbcc
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Callable, Optional

import asyncssh

from ._types import ActivitySnapshot, DeviceRecord, DiscoverySource
from .activity import ActivityReporter
from .config import DiscoveryConfig
from .events import EventChannel
from .exceptions import (
    AuthenticationFailure,
    ConnectionFailure,
    RemoteCommandFailure,
    RemoteDiscoveryError,
)
from .registry import DeviceRegistry
from .state import SessionState

logger = logging.getLogger(__name__)

IP_COMMAND = "ipconfig"
HOSTNAME_COMMAND = "hostname"
VERSION_COMMAND = "ver"
QUERY_COMMAND = "autodiscovery query"

SELF_IP_PATTERN = re.compile(r"IP Address ........ : ([0-9\.]*)")
SELF_HOSTNAME_PATTERN = re.compile(r"Host Name: (.*)")
SELF_VERSION_PATTERN = re.compile(r"(?P<Description>.*) @(?P<DeviceId>.*)")
QUERY_LINE_PATTERN = re.compile(
    r"^(?P<IpAddress>[0-9\.]*)( :.*? : )(?P<Hostname>.*)( :.*? )(?P<Description>.*)( @)(?P<DeviceId>.*)$",
    re.MULTILINE,
)

CONTROL_ENGINE_PREFIX = "Cntrl Eng "


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def parse_self_ip(output: str) -> str:
    match = SELF_IP_PATTERN.search(output)
    return match.group(1).strip() if match else ""


def parse_self_hostname(output: str) -> str:
    match = SELF_HOSTNAME_PATTERN.search(_normalize_newlines(output))
    return match.group(1).strip() if match else ""


def parse_version(output: str) -> tuple[str, str]:
    """Split ``ver`` output into (description, device id)."""
    match = SELF_VERSION_PATTERN.search(_normalize_newlines(output))
    if not match:
        return "", ""
    description = match.group("Description").replace(CONTROL_ENGINE_PREFIX, "").strip()
    return description, match.group("DeviceId").strip()


def parse_autodiscovery_output(output: str) -> list[DeviceRecord]:
    """Parse "autodiscovery query" output, one device per matching line."""
    return [
        DeviceRecord(
            ip_address=match.group("IpAddress"),
            hostname=match.group("Hostname"),
            description=match.group("Description"),
            device_id=match.group("DeviceId"),
            discovery_source=DiscoverySource.REMOTE,
        )
        for match in QUERY_LINE_PATTERN.finditer(_normalize_newlines(output))
    ]


class _ConsoleClient(asyncssh.SSHClient):
    """
    Answer password and keyboard-interactive authentication.

    Each method is tried once; any keyboard-interactive prompt that
    mentions "password" gets the password.
    """

    def __init__(self, password: str):
        self._password = password
        self._password_sent = False
        self._kbdint_answered = False

    def password_auth_requested(self) -> Optional[str]:
        if self._password_sent:
            return None
        self._password_sent = True
        return self._password

    def kbdint_auth_requested(self) -> Optional[str]:
        return None if self._kbdint_answered else ""

    def kbdint_challenge_received(self, name, instructions, lang, prompts):
        if not prompts:
            return []
        if self._kbdint_answered:
            return None
        self._kbdint_answered = True
        return [
            self._password if "password" in prompt.lower() else ""
            for prompt, _echo in prompts
        ]


def _discard_late_result(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Late remote discovery failure discarded: {exc}")
    else:
        logger.debug("Late remote discovery result discarded")


class RemoteDiscoveryClient:
    """
    Discover devices by asking a remote control processor.

    Shares the single-flight gate with broadcast discovery. A hard
    deadline (``remote_timeout``) bounds how long the gate is held,
    whatever the remote console is doing.
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
        Initialize client.

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

    async def discover_remote(self, host: str, username: str, password: str) -> list[DeviceRecord]:
        """
        Run discovery on ``host`` and return what it found.

        Never raises for connection, authentication or command
        failures; those return an empty list and are recorded as the
        session's last error.
        """
        async with self.gate:
            registry = DeviceRegistry(notify=self.device_events.publish)
            state = SessionState(registry=registry, total_timeout=self.config.remote_timeout)
            state.is_running = True
            self.state = state
            if self.track:
                self.track(state)

            reporter = ActivityReporter(state, self.activity_events, self.config.activity_interval)
            reporter.start()
            await reporter.tick()

            task = asyncio.create_task(self._run(host, username, password, registry))
            devices: Optional[list[DeviceRecord]] = None
            try:
                done, _ = await asyncio.wait({task}, timeout=self.config.remote_timeout)
                if task in done:
                    devices = task.result()
                else:
                    self._abandon(task, registry)
                    state.last_error = (
                        f"{host}: no answer within {self.config.remote_timeout:g} seconds"
                    )
                    logger.warning(f"Remote discovery on {host} timed out")
                    devices = registry.devices()
            except RemoteDiscoveryError as e:
                logger.error(f"Remote discovery on {host} failed: {e}")
                state.last_error = str(e)
                devices = []
            except asyncio.CancelledError:
                self._abandon(task, registry)
                logger.info(f"Remote discovery on {host} cancelled")
                raise
            finally:
                await reporter.stop()
                state.finish(len(devices) if devices is not None else None)
                await reporter.tick()

        logger.debug(f"Ending discovery for host {host}. Found {len(devices)} devices")
        return devices

    @staticmethod
    def _abandon(task: asyncio.Task, registry: DeviceRegistry) -> None:
        """Stop waiting for ``task``; anything it still finds is dropped."""
        if not task.done():
            task.cancel()
            task.add_done_callback(_discard_late_result)
        registry.close()

    async def _connect(self, host: str, username: str, password: str) -> asyncssh.SSHClientConnection:
        logger.debug(f"Connecting to {host}:{self.config.ssh_port}")
        try:
            conn, _ = await asyncssh.create_connection(
                lambda: _ConsoleClient(password),
                host,
                port=self.config.ssh_port,
                username=username,
                known_hosts=None,  # Processors ship self-generated host keys
                client_keys=None,
                agent_path=None,
                preferred_auth=("keyboard-interactive", "password"),
                connect_timeout=self.config.ssh_connect_timeout,
            )
        except asyncssh.PermissionDenied as e:
            raise AuthenticationFailure(host, f"authentication failed: {e.reason}") from e
        except (asyncssh.Error, OSError, asyncio.TimeoutError) as e:
            raise ConnectionFailure(host, f"cannot connect: {e}") from e
        return conn

    async def _run_command(
        self,
        conn: asyncssh.SSHClientConnection,
        host: str,
        command: str,
        check: bool = False,
    ) -> str:
        try:
            result = await conn.run(command, encoding=self.config.remote_encoding)
        except (asyncssh.Error, OSError) as e:
            raise ConnectionFailure(host, f"{command!r} failed: {e}") from e
        if check and result.stderr:
            raise RemoteCommandFailure(host, command, str(result.stderr))
        return str(result.stdout or "")

    async def identify(self, conn: asyncssh.SSHClientConnection, host: str) -> DeviceRecord:
        """Build the record describing the remote console itself."""
        ip_output = await self._run_command(conn, host, IP_COMMAND)
        hostname_output = await self._run_command(conn, host, HOSTNAME_COMMAND)
        version_output = await self._run_command(conn, host, VERSION_COMMAND)
        description, device_id = parse_version(version_output)
        return DeviceRecord(
            ip_address=parse_self_ip(ip_output),
            hostname=parse_self_hostname(hostname_output),
            description=description,
            device_id=device_id,
            discovery_source=DiscoverySource.REMOTE_SELF,
        )

    async def _run(
        self,
        host: str,
        username: str,
        password: str,
        registry: DeviceRegistry,
    ) -> list[DeviceRecord]:
        conn = await self._connect(host, username, password)
        try:
            self_record = await self.identify(conn, host)
            await registry.register(self_record)
            output = await self._run_command(conn, host, QUERY_COMMAND, check=True)
        finally:
            conn.close()

        records = parse_autodiscovery_output(output)
        logger.debug(f"Autodiscovery query on {host} listed {len(records)} devices")
        if not records:
            return []

        for record in records:
            await registry.register(record)
        return registry.devices()
