"""
File transfer operations (upload / download) with progress reporting
"""
import math
import os
import posixpath
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from ..core.ssh_manager import LONG_SFTP, SSHManager
from ..events import EventKind, TransferEvent, TransferStatus
from ..utils.logging import log, vlog, warn

ProgressCallback = Optional[Callable[[TransferEvent], None]]


@dataclass
class TransferReport:
    client_path: str
    server_path: str
    successes: list = field(default_factory=list)  # [(client_file, server_file)]
    failures: list = field(default_factory=list)   # [(client_file, server_file, error)]

    @property
    def status(self) -> TransferStatus:
        if not self.failures:
            return TransferStatus.SUCCESS
        if self.successes:
            return TransferStatus.PARTIAL_FAILURE
        return TransferStatus.FAILURE


def percentage(current: int, total: int) -> int:
    if total <= 0:
        return 100
    return math.ceil(current * 100 / total)


def _emit(mgr: SSHManager, on_progress: ProgressCallback, event: TransferEvent):
    if on_progress is not None:
        try:
            on_progress(event)
        except Exception as exc:
            warn(f"progress callback failed: {exc}")
    mgr.events.emit(EventKind.PROGRESS, event)


def _step(mgr: SSHManager, on_progress: ProgressCallback, client_file: str, server_file: str):
    def callback(current: int, total: int):
        _emit(mgr, on_progress, TransferEvent(
            TransferStatus.IN_PROGRESS, client_file, server_file,
            current=current, total=total, percentage=percentage(current, total)))
    return callback


def _finish(mgr: SSHManager, on_progress: ProgressCallback, report: TransferReport) -> TransferReport:
    status = report.status
    event = TransferEvent(status, report.client_path, report.server_path,
                          successes=list(report.successes))
    if status is not TransferStatus.SUCCESS:
        event.failures = list(report.failures)
        warn(f"  [{status.value}] {report.server_path}: {len(report.failures)} file(s) failed")
    if status is TransferStatus.FAILURE:
        event.successes = []
    _emit(mgr, on_progress, event)
    return report


# ── single files ─────────────────────────────────────────────────────────────

def upload_file(mgr: SSHManager, client_file: Path, server_file: str,
                on_progress: ProgressCallback = None):
    """Upload one file. Emits started → in-progress* → success|failure; re-raises on failure."""
    client_file = str(client_file)
    _emit(mgr, on_progress, TransferEvent(TransferStatus.STARTED, client_file, server_file))
    try:
        mgr.sftp().put(client_file, server_file,
                       callback=_step(mgr, on_progress, client_file, server_file))
    except Exception as exc:
        _emit(mgr, on_progress, TransferEvent(TransferStatus.FAILURE, client_file, server_file, error=exc))
        raise
    _emit(mgr, on_progress, TransferEvent(TransferStatus.SUCCESS, client_file, server_file))
    vlog(f"  [UPLOAD ✓] {client_file} → {server_file}")


def download_file(mgr: SSHManager, client_file: Path, server_file: str,
                  on_progress: ProgressCallback = None):
    """Download one file. Emits started → in-progress* → success|failure; re-raises on failure."""
    Path(client_file).parent.mkdir(parents=True, exist_ok=True)
    client_file = str(client_file)
    _emit(mgr, on_progress, TransferEvent(TransferStatus.STARTED, client_file, server_file))
    try:
        mgr.sftp(LONG_SFTP).get(server_file, client_file,
                                callback=_step(mgr, on_progress, client_file, server_file))
    except Exception as exc:
        _emit(mgr, on_progress, TransferEvent(TransferStatus.FAILURE, client_file, server_file, error=exc))
        raise
    _emit(mgr, on_progress, TransferEvent(TransferStatus.SUCCESS, client_file, server_file))
    vlog(f"  [DOWNLOAD ✓] {server_file} → {client_file}")


# ── folders ──────────────────────────────────────────────────────────────────

def _tick(mgr, on_progress, report: TransferReport, client_file: str, server_file: str,
          error: Optional[BaseException] = None):
    if error is None:
        report.successes.append((client_file, server_file))
    else:
        report.failures.append((client_file, server_file, error))
        vlog(f"  [FAIL] {server_file}: {error}")
    _emit(mgr, on_progress, TransferEvent(TransferStatus.IN_PROGRESS, client_file, server_file, error=error))


def upload_folder(mgr: SSHManager, client_path: Path, server_path: str,
                  on_progress: ProgressCallback = None) -> TransferReport:
    """
    Recursively upload a directory. Child failures are collected, never raised:
    the final event is success, partial-failure or failure. A missing local
    source directory raises FileNotFoundError before anything is sent.
    """
    client_path = Path(client_path)
    if not client_path.is_dir():
        raise FileNotFoundError(f"no such local directory: {client_path}")
    report = TransferReport(str(client_path), server_path)
    _emit(mgr, on_progress, TransferEvent(TransferStatus.STARTED, report.client_path, server_path))
    sftp = mgr.sftp()

    for dirpath, dirnames, filenames in os.walk(client_path):
        dirnames.sort()
        rel = Path(dirpath).relative_to(client_path).as_posix()
        remote_dir = server_path if rel == "." else posixpath.join(server_path, rel)
        try:
            mgr.ensure_path(remote_dir)
        except OSError as exc:
            for name in sorted(filenames):
                _tick(mgr, on_progress, report, os.path.join(dirpath, name),
                      posixpath.join(remote_dir, name), exc)
            dirnames.clear()
            continue
        for name in sorted(filenames):
            local_file = os.path.join(dirpath, name)
            remote_file = posixpath.join(remote_dir, name)
            try:
                sftp.put(local_file, remote_file)
            except (OSError, EOFError) as exc:
                _tick(mgr, on_progress, report, local_file, remote_file, exc)
            else:
                _tick(mgr, on_progress, report, local_file, remote_file)

    log(f"  [UPLOAD] {client_path} → {server_path}: "
        f"{len(report.successes)} ok, {len(report.failures)} failed")
    return _finish(mgr, on_progress, report)


def download_folder(mgr: SSHManager, client_path: Path, server_path: str,
                    on_progress: ProgressCallback = None) -> TransferReport:
    """Recursively download a directory; same reporting rules as upload_folder."""
    client_path = Path(client_path)
    client_path.mkdir(parents=True, exist_ok=True)
    report = TransferReport(str(client_path), server_path)
    _emit(mgr, on_progress, TransferEvent(TransferStatus.STARTED, report.client_path, server_path))
    sftp = mgr.sftp()

    queue = [(server_path, client_path)]
    while queue:
        remote_dir, local_dir = queue.pop(0)
        local_dir.mkdir(parents=True, exist_ok=True)
        try:
            listing = sftp.listdir_attr(remote_dir)
        except (OSError, EOFError) as exc:
            _tick(mgr, on_progress, report, str(local_dir), remote_dir, exc)
            continue
        for attr in sorted(listing, key=lambda a: a.filename):
            remote_file = posixpath.join(remote_dir, attr.filename)
            local_file = local_dir / attr.filename
            if stat.S_ISDIR(attr.st_mode or 0):
                queue.append((remote_file, local_file))
                continue
            try:
                sftp.get(remote_file, str(local_file))
                if attr.st_mtime is not None:
                    os.utime(local_file, (attr.st_atime or attr.st_mtime, attr.st_mtime))
            except (OSError, EOFError) as exc:
                _tick(mgr, on_progress, report, str(local_file), remote_file, exc)
            else:
                _tick(mgr, on_progress, report, str(local_file), remote_file)

    log(f"  [DOWNLOAD] {server_path} → {client_path}: "
        f"{len(report.successes)} ok, {len(report.failures)} failed")
    return _finish(mgr, on_progress, report)


def upload(mgr: SSHManager, client: Path, server_dir: str,
           on_progress: ProgressCallback = None):
    """Upload a file or a directory into server_dir, keeping its base name."""
    client = Path(client)
    target = posixpath.join(server_dir, client.name)
    if client.is_dir():
        return upload_folder(mgr, client, target, on_progress)
    return upload_file(mgr, client, target, on_progress)
