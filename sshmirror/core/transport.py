"""
Narrow transport capability used by SSHManager, plus the paramiko implementation.

SSHManager never touches paramiko.SSHClient directly; it only needs
connect / close / exec_command / open_sftp / close notifications.
"""
import threading
from typing import Callable, Optional

import paramiko

from ..config import ConnectOptions
from ..utils.logging import vlog


class ParamikoTransport:
    """
    Wraps one paramiko SSHClient.
    A daemon watcher thread checks the transport every keep-alive interval
    and notifies close listeners once when it goes inactive.
    """

    def __init__(self):
        self._client: Optional[paramiko.SSHClient] = None
        self._listeners: list[Callable[[], None]] = []
        self._stop = threading.Event()
        self._watcher: Optional[threading.Thread] = None
        self._interval = 30

    # ── connection ─────────────────────────────────────────────────────────

    def connect(self, options: ConnectOptions):
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        kw: dict = dict(hostname=options.host, port=options.port, username=options.username,
                        timeout=options.timeout, banner_timeout=30, auth_timeout=30)
        if options.key_filename:
            kw["key_filename"] = options.key_filename
        if options.password:
            kw["password"] = options.password

        client.connect(**kw)

        # Keep-alive: send a NOP every interval
        client.get_transport().set_keepalive(options.keepalive)

        self._client = client
        self._interval = max(1, options.keepalive)
        self._stop.clear()
        self._watcher = threading.Thread(target=self._watch, name=f"ssh-watch-{options.host}",
                                         daemon=True)
        self._watcher.start()

    def is_active(self) -> bool:
        if self._client is None:
            return False
        transport = self._client.get_transport()
        return transport is not None and transport.is_active()

    def on_close(self, callback: Callable[[], None]):
        self._listeners.append(callback)

    def _watch(self):
        while not self._stop.wait(self._interval):
            if not self.is_active():
                vlog("[SSH] transport inactive")
                self._stop.set()
                for callback in list(self._listeners):
                    callback()
                return

    def close(self):
        self._stop.set()
        self._listeners.clear()
        if self._client is not None:
            self._client.close()
            self._client = None

    # ── channels ────────────────────────────────────────────────────────────

    def exec_command(self, command: str, timeout: Optional[float] = None) -> tuple[int, str, str]:
        """Run a command; return (exit_status, stdout, stderr)."""
        _, stdout, stderr = self._client.exec_command(command, timeout=timeout)
        out = stdout.read().decode("utf-8", errors="replace")
        err = stderr.read().decode("utf-8", errors="replace")
        rc = stdout.channel.recv_exit_status()
        return rc, out, err

    def open_sftp(self) -> paramiko.SFTPClient:
        return self._client.open_sftp()
