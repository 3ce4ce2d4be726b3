"""
SSH connection manager: lifecycle, auto-reconnect and remote primitives
"""
import dataclasses
import json
import posixpath
import shlex
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from .. import config as _cfg
from ..config import ConnectOptions
from ..events import ConnectionEvent, EventBus, EventKind
from ..exceptions import (ChannelClosedError, ConnectError, ReconnectError,
                          RemoteCommandError, RetriesExhaustedError)
from ..utils.logging import log, vlog, warn
from ..utils.retry import backoff_delay, backoff_schedule
from .transport import ParamikoTransport

SHORT_SFTP = "SHORT_SFTP"
LONG_SFTP = "LONG_SFTP"


class SSHManager:
    """
    Owns one transport session and the SFTP sub-channels opened on it.
    Reconnects with exponential back-off when the transport drops without
    close() having been called. Lifecycle transitions are published on
    ``self.events``.
    """

    def __init__(self, transport_factory: Callable = ParamikoTransport,
                 events: Optional[EventBus] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self._transport_factory = transport_factory
        self._sleep = sleep
        self._transport = None
        self._channels: dict = {}
        self._channels_lock = threading.Lock()
        self._fatal: Optional[RetriesExhaustedError] = None
        self.events = events or EventBus()
        self.options: Optional[ConnectOptions] = None
        self.trashcan_path = _cfg.TRASHCAN_PATH
        self.cache_root: Optional[Path] = None
        self.log_path: Optional[Path] = None
        self.user_closed = True
        self.max_try_count = _cfg.MAX_TRY_COUNT
        self.try_count = 0

    @classmethod
    def open_connection(cls, options: ConnectOptions, **kw) -> "SSHManager":
        mgr = cls(**kw)
        mgr.connect(options)
        return mgr

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ── connection ─────────────────────────────────────────────────────────

    @property
    def connected(self) -> bool:
        return self._transport is not None and not self.user_closed

    def connect(self, options: Optional[ConnectOptions] = None) -> "SSHManager":
        options = options or self.options or _cfg.connect_options()
        transport = None
        try:
            log(f"[SSH] connecting to {options.username}@{options.host}:{options.port} …")
            transport = self._transport_factory()
            transport.connect(options)

            self._discard_transport()
            self._transport = transport
            self.user_closed = False
            self._fatal = None

            self.trashcan_path = options.trashcan_path or self.trashcan_path
            root = options.client_root()
            self.cache_root = root / options.host
            self.log_path = root / "logs" / options.host
            self.max_try_count = options.max_try_count
            self.ensure_path(self.trashcan_path)
            self.cache_root.mkdir(parents=True, exist_ok=True)
            self.log_path.mkdir(parents=True, exist_ok=True)

            self.options = dataclasses.replace(options)
            self.try_count = 0
            transport.on_close(self._on_transport_closed)
        except Exception as exc:
            if transport is not None:
                if transport is self._transport:
                    self._clear_channels()
                    self._transport = None
                self._close_quietly(transport)
            error = ConnectError(exc)
            self.events.emit(EventKind.ERROR, self._event(EventKind.ERROR, error=error, options=options))
            raise error from exc

        self.events.emit(EventKind.OPEN, self._event(EventKind.OPEN))
        return self

    def _on_transport_closed(self):
        self.events.emit(EventKind.CLOSE, self._event(EventKind.CLOSE, user_closed=self.user_closed))
        if self.user_closed or not (self.options and self.options.auto_reconnect):
            return
        try:
            self.reconnect()
        except RetriesExhaustedError as exc:
            self._fatal = exc
            self._discard_transport()
            warn(f"[SSH] giving up on {self.options.host}: {exc}")

    def reconnect(self) -> "SSHManager":
        self._clear_channels()
        vlog(f"[SSH] reconnect back-off: {backoff_schedule(self.max_try_count)}")
        for attempt in range(1, self.max_try_count + 1):
            self.try_count = attempt
            self.events.emit(EventKind.RECONNECT, self._event(EventKind.RECONNECT, attempt=attempt))
            try:
                return self.connect(self.options)
            except ConnectError as exc:
                cause = exc.internal_error
                error = ReconnectError(cause, attempt)
                self.events.emit(EventKind.ERROR, self._event(EventKind.ERROR, attempt=attempt, error=error))
                if attempt == self.max_try_count:
                    final = RetriesExhaustedError(cause, attempt)
                    self.events.emit(EventKind.ERROR,
                                     self._event(EventKind.ERROR, attempt=attempt, error=final))
                    raise final from exc
                delay = backoff_delay(attempt)
                log(f"  retrying in {delay:.0f}s …")
                self._sleep(delay)

    def close(self):
        self.user_closed = True
        self._discard_transport()
        self.events.emit(EventKind.CLOSE, self._event(EventKind.CLOSE, user_closed=True))

    def ensure_connected(self):
        """Raise if there is no live transport to run an operation on."""
        if self._fatal is not None:
            raise self._fatal
        if self._transport is None or self.user_closed:
            raise ChannelClosedError()

    def _discard_transport(self):
        self._clear_channels()
        if self._transport is not None:
            self._close_quietly(self._transport)
            self._transport = None

    @staticmethod
    def _close_quietly(closeable):
        try:
            closeable.close()
        except Exception as exc:
            vlog(f"[SSH] close failed: {exc}")

    def _clear_channels(self):
        with self._channels_lock:
            channels = list(self._channels.values())
            self._channels.clear()
        for channel in channels:
            self._close_quietly(channel)

    def _event(self, kind: EventKind, options: Optional[ConnectOptions] = None, **kw) -> ConnectionEvent:
        options = options or self.options
        return ConnectionEvent(kind=kind,
                               host=options.host if options else "",
                               port=options.port if options else 0,
                               **kw)

    # ── sub-channels ────────────────────────────────────────────────────────

    def sftp(self, tag: str = SHORT_SFTP):
        """Return the SFTP channel memoized under *tag*, opening it if needed."""
        self.ensure_connected()
        with self._channels_lock:
            channel = self._channels.get(tag)
            if channel is None:
                channel = self._transport.open_sftp()
                self._channels[tag] = channel
            return channel

    # ── raw exec ────────────────────────────────────────────────────────────

    def execute(self, command: str, timeout: Optional[float] = None) -> str:
        """Run a command and return stdout. Raises if it failed with stderr output."""
        self.ensure_connected()
        rc, out, err = self._transport.exec_command(command, timeout=timeout)
        if rc == 0 or not err.strip():
            return out
        raise RemoteCommandError(command, rc, err)

    def ensure_path(self, path: str):
        self.execute(f"mkdir -p {shlex.quote(path)}")

    def copy(self, source: str, target: str):
        self.execute(f"cp -r -n {shlex.quote(source)} {shlex.quote(target)}")

    def move(self, source: str, target: str):
        self.execute(f"mv {shlex.quote(source)} {shlex.quote(target)}")

    def remove(self, path: str):
        self.execute(f"rm -rf {shlex.quote(path)}")

    # ── sftp ops ────────────────────────────────────────────────────────────

    def stat(self, path: str):
        return self.sftp().stat(path)

    def exists(self, path: str) -> bool:
        try:
            self.stat(path)
            return True
        except FileNotFoundError:
            return False

    def listdir_attr(self, path: str) -> list:
        return self.sftp().listdir_attr(path)

    def realpath(self, path: str) -> str:
        return self.sftp().normalize(path)

    def open(self, path: str, mode: str = "r"):
        return self.sftp().open(path, mode)

    def truncate(self, path: str, length: int):
        self.sftp().truncate(path, length)

    def utime(self, path: str, atime: int, mtime: int):
        self.sftp().utime(path, (int(atime), int(mtime)))

    def read_file(self, path: str) -> bytes:
        with self.open(path, "r") as f:
            return f.read()

    def read_text(self, path: str) -> str:
        return self.read_file(path).decode("utf-8")

    def read_json(self, path: str):
        return json.loads(self.read_text(path))

    def write_file(self, path: str, data: bytes):
        self.ensure_path(posixpath.dirname(path) or "/")
        with self.open(path, "w") as f:
            f.write(data)

    def write_json(self, path: str, data):
        self.write_file(path, json.dumps(data, separators=(",", ":")).encode("utf-8"))
