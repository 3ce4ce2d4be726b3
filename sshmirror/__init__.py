"""sshmirror - resilient SSH file mirroring with differential chunk sync"""
from .config import ConnectOptions
from .core.ssh_manager import SSHManager
from .events import EventBus, EventKind, TransferStatus
from .exceptions import (ChannelClosedError, ConnectError, MaxRetriesExceededError,
                         ReconnectError, RemoteCommandError, RetriesExhaustedError,
                         SSHClientError)

__version__ = "0.1.0"

__all__ = [
    "ConnectOptions", "SSHManager",
    "EventBus", "EventKind", "TransferStatus",
    "SSHClientError", "ConnectError", "ReconnectError", "RetriesExhaustedError",
    "MaxRetriesExceededError", "ChannelClosedError", "RemoteCommandError",
]
