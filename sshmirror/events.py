"""
Observer surface for connection lifecycle and transfer progress.

Publishers call ``EventBus.emit``; subscribers register with ``on``. A
subscriber that raises is reported with ``warn`` and the remaining
subscribers still run, so emission never changes an operation's outcome.
"""
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from .utils.logging import warn


class EventKind(str, Enum):
    OPEN = "open"
    CLOSE = "close"
    ERROR = "error"
    RECONNECT = "reconnect"
    PROGRESS = "progress"


class TransferStatus(str, Enum):
    STARTED = "started"
    IN_PROGRESS = "in-progress"
    SUCCESS = "success"
    FAILURE = "failure"
    PARTIAL_FAILURE = "partial-failure"


@dataclass
class ConnectionEvent:
    kind: EventKind
    host: str = ""
    port: int = 0
    user_closed: bool = False
    attempt: Optional[int] = None
    error: Optional[BaseException] = None


@dataclass
class TransferEvent:
    status: TransferStatus
    client_path: str
    server_path: str
    current: Optional[int] = None
    total: Optional[int] = None
    percentage: Optional[int] = None
    error: Optional[BaseException] = None
    successes: list = field(default_factory=list)
    failures: list = field(default_factory=list)


Handler = Callable[[Any], None]


class EventBus:
    """Fixed-kind publish/subscribe registry."""

    def __init__(self):
        self._handlers: dict[EventKind, list[Handler]] = {k: [] for k in EventKind}
        self._lock = threading.Lock()

    def on(self, kind: EventKind, handler: Handler) -> Handler:
        with self._lock:
            self._handlers[EventKind(kind)].append(handler)
        return handler

    def off(self, kind: EventKind, handler: Handler):
        with self._lock:
            try:
                self._handlers[EventKind(kind)].remove(handler)
            except ValueError:
                pass

    def emit(self, kind: EventKind, payload: Any):
        with self._lock:
            handlers = list(self._handlers[EventKind(kind)])
        for handler in handlers:
            try:
                handler(payload)
            except Exception as exc:
                warn(f"event handler for {EventKind(kind).value!r} failed: {exc}")
