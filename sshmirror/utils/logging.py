"""
Logging utilities for sshmirror
"""
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

_verbose = False
_log_file: Optional[Path] = None
_write_lock = threading.Lock()


def set_verbose(verbose: bool):
    """Set the verbose flag"""
    global _verbose
    _verbose = verbose


def set_log_file(path: Optional[Path]):
    """Also append every logged line to *path* (None stops it)."""
    global _log_file
    if path is not None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
    _log_file = path


def log(msg: str):
    """Log a message with timestamp"""
    ts = datetime.now().strftime("%H:%M:%S")
    line = f"[{ts}] {msg}"
    print(line, flush=True)
    if _log_file is not None:
        with _write_lock, _log_file.open("a", encoding="utf-8") as f:
            f.write(f"{datetime.now():%Y-%m-%d} {line}\n")


def vlog(msg: str):
    """Log a verbose message (only if verbose mode is enabled)"""
    if _verbose:
        log(msg)


def warn(msg: str):
    """Log a warning message"""
    log(f"⚠  {msg}")


def attach_event_logging(bus):
    """Subscribe console logging to every connection lifecycle event on *bus*."""
    from ..events import EventKind

    def _open(ev):
        log(f"[SSH] connected to {ev.host}:{ev.port} ✓")

    def _close(ev):
        if ev.user_closed:
            log(f"[SSH] disconnected from {ev.host}.")
        else:
            warn(f"[SSH] connection to {ev.host} dropped")

    def _reconnect(ev):
        log(f"[SSH] reconnecting to {ev.host} (attempt {ev.attempt}) …")

    def _error(ev):
        suffix = f" (attempt {ev.attempt})" if ev.attempt else ""
        warn(f"[SSH] {type(ev.error).__name__}{suffix}: {ev.error}")

    bus.on(EventKind.OPEN, _open)
    bus.on(EventKind.CLOSE, _close)
    bus.on(EventKind.RECONNECT, _reconnect)
    bus.on(EventKind.ERROR, _error)
