"""
Discovery configuration.

Remote console credentials may be kept in a separate YAML file
(``credentials_path``) so the main configuration can be shared.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .protocol import DISCOVERY_PORT

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryConfig:
    """Crestron discovery configuration."""

    # Broadcast discovery
    discovery_timeout: float = 8.0  # Listening window per adapter
    window_extension: float = 1.0  # Added to a window for every new device
    probe_count: int = 3
    probe_interval: float = 0.5
    discovery_port: int = DISCOVERY_PORT
    bind_port: int = DISCOVERY_PORT  # Local port each worker binds to
    receive_buffer_size: int = 65535
    local_hostname: Optional[str] = None  # None = socket.gethostname()
    adapter_names: list[str] = field(default_factory=list)  # Empty = all adapters

    # Activity reporting
    activity_interval: float = 1.0

    # Remote console discovery
    remote_timeout: float = 8.0  # Hard deadline for the whole remote call
    ssh_port: int = 22
    ssh_connect_timeout: float = 5.0  # Must be shorter than remote_timeout to ever fire
    remote_encoding: str = "iso-8859-1"
    remote_host: Optional[str] = None
    remote_username: Optional[str] = None
    remote_password: Optional[str] = None
    credentials_path: Optional[Path] = None

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "DiscoveryConfig":
        """Load configuration from environment variables."""
        config = cls()

        config.discovery_timeout = float(os.getenv("CRESTRON_DISCOVERY_TIMEOUT", "8"))
        config.window_extension = float(os.getenv("CRESTRON_WINDOW_EXTENSION", "1"))
        config.bind_port = int(os.getenv("CRESTRON_BIND_PORT", str(DISCOVERY_PORT)))
        config.local_hostname = os.getenv("CRESTRON_LOCAL_HOSTNAME")

        # Adapter allow-list (comma-separated names)
        adapters = os.getenv("CRESTRON_ADAPTERS", "")
        if adapters:
            config.adapter_names = [a.strip() for a in adapters.split(",") if a.strip()]

        # Remote console
        config.remote_timeout = float(os.getenv("CRESTRON_REMOTE_TIMEOUT", "8"))
        config.ssh_port = int(os.getenv("CRESTRON_SSH_PORT", "22"))
        config.remote_host = os.getenv("CRESTRON_REMOTE_HOST")
        config.remote_username = os.getenv("CRESTRON_REMOTE_USERNAME")
        config.remote_password = os.getenv("CRESTRON_REMOTE_PASSWORD")
        if creds_path := os.getenv("CRESTRON_CREDENTIALS_PATH"):
            config.credentials_path = Path(creds_path)

        config.log_level = os.getenv("LOG_LEVEL", "INFO")

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "DiscoveryConfig":
        """Load configuration from YAML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        config = cls()

        if "broadcast" in data:
            b = data["broadcast"]
            config.discovery_timeout = float(b.get("timeout", config.discovery_timeout))
            config.window_extension = float(b.get("window_extension", config.window_extension))
            config.probe_count = int(b.get("probe_count", config.probe_count))
            config.probe_interval = float(b.get("probe_interval", config.probe_interval))
            config.discovery_port = int(b.get("port", config.discovery_port))
            config.bind_port = int(b.get("bind_port", config.bind_port))
            config.local_hostname = b.get("hostname", config.local_hostname)
            config.adapter_names = list(b.get("adapters", []))

        if "remote" in data:
            r = data["remote"]
            config.remote_timeout = float(r.get("timeout", config.remote_timeout))
            config.ssh_port = int(r.get("port", config.ssh_port))
            config.ssh_connect_timeout = float(r.get("connect_timeout", config.ssh_connect_timeout))
            config.remote_encoding = r.get("encoding", config.remote_encoding)
            config.remote_host = r.get("host")
            config.remote_username = r.get("username")
            if "credentials" in r:
                config.credentials_path = Path(r["credentials"])

        config.activity_interval = float(data.get("activity_interval", config.activity_interval))
        config.log_level = data.get("log_level", "INFO")

        return config

    def load_credentials(self) -> bool:
        """Load remote console credentials from the credentials file."""
        if self.credentials_path is None:
            return False

        if not self.credentials_path.exists():
            logger.warning(f"Credentials file not found: {self.credentials_path}")
            return False

        try:
            with open(self.credentials_path) as f:
                creds = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load credentials: {e}")
            return False

        remote = creds.get("remote", {})
        self.remote_username = remote.get("username", self.remote_username)
        self.remote_password = remote.get("password", self.remote_password)
        logger.info("Remote console credentials loaded")
        return True

    def validate(self) -> list[str]:
        """Validate configuration, returning list of errors."""
        errors = []

        if self.discovery_timeout <= 0:
            errors.append(f"Invalid discovery timeout: {self.discovery_timeout}")

        if self.window_extension < 0:
            errors.append(f"Invalid window extension: {self.window_extension}")

        if self.probe_count < 1:
            errors.append(f"Invalid probe count: {self.probe_count}")

        if self.activity_interval <= 0:
            errors.append(f"Invalid activity interval: {self.activity_interval}")

        if self.remote_timeout <= 0:
            errors.append(f"Invalid remote timeout: {self.remote_timeout}")

        if self.ssh_connect_timeout <= 0:
            errors.append(f"Invalid SSH connect timeout: {self.ssh_connect_timeout}")
        elif self.ssh_connect_timeout >= self.remote_timeout:
            logger.warning(
                f"SSH connect timeout ({self.ssh_connect_timeout}s) is not shorter than "
                f"remote timeout ({self.remote_timeout}s), it will never fire"
            )

        for name, port in (
            ("discovery", self.discovery_port),
            ("bind", self.bind_port),
            ("ssh", self.ssh_port),
        ):
            if port < 0 or port > 65535:
                errors.append(f"Invalid {name} port: {port}")

        return errors


# Example crestron_discovery.yaml:
"""
broadcast:
  timeout: 8
  window_extension: 1
  adapters:
    - "eth0"

remote:
  host: "10.0.0.50"
  username: "admin"
  timeout: 8
  credentials: "/etc/crestron-discovery/creds.yaml"

activity_interval: 1
log_level: "INFO"
"""

# Example creds.yaml:
"""
remote:
  username: "admin"
  password: "password-here"
"""
