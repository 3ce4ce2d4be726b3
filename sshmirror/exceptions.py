"""
Error taxonomy for connection lifecycle and remote operations
"""


class SSHClientError(Exception):
    """Base class; keeps the underlying error as ``internal_error``."""

    def __init__(self, error: BaseException):
        super().__init__(str(error))
        self.internal_error = error


class ConnectError(SSHClientError):
    """The initial handshake (or provisioning right after it) failed."""


class ReconnectError(SSHClientError):
    """A single reconnect attempt failed."""

    def __init__(self, error: BaseException, attempt: int = 0):
        super().__init__(error)
        self.attempt = attempt


class RetriesExhaustedError(SSHClientError):
    """Every reconnect attempt failed; the connection is gone for good."""

    def __init__(self, error: BaseException, attempts: int = 0):
        super().__init__(error)
        self.attempts = attempts


MaxRetriesExceededError = RetriesExhaustedError


class ChannelClosedError(SSHClientError):
    """An operation needed a live connection but it was closed."""

    def __init__(self, message: str = "connection is closed"):
        super().__init__(ConnectionError(message))


class RemoteCommandError(OSError):
    """A remote command exited non-zero and wrote to stderr."""

    def __init__(self, command: str, exit_status: int, stderr: str):
        super().__init__(f"remote command exited {exit_status}: {command!r}\nstderr: {stderr.strip()}")
        self.command = command
        self.exit_status = exit_status
        self.stderr = stderr
