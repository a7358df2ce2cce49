"""
Discovery error taxonomy.

None of these escape a discovery call: they are caught at the call
boundary, logged, and recorded as the session's last error.
"""


class DiscoveryError(Exception):
    """Base exception for discovery errors."""
    pass


class TransportError(DiscoveryError):
    """Socket bind, send or receive failed."""
    pass


class RemoteDiscoveryError(DiscoveryError):
    """Base exception for the remote console path."""

    def __init__(self, host: str, message: str):
        self.host = host
        super().__init__(f"{host}: {message}")


class ConnectionFailure(RemoteDiscoveryError):
    """Could not reach the remote console."""
    pass


class AuthenticationFailure(RemoteDiscoveryError):
    """The remote console rejected the credentials."""
    pass


class RemoteCommandFailure(RemoteDiscoveryError):
    """A console command wrote to its error stream."""

    def __init__(self, host: str, command: str, stderr: str):
        self.command = command
        self.stderr = stderr
        super().__init__(host, f"command {command!r} failed: {stderr.strip()}")
