"""
Differential file sync - writes only the chunks whose fingerprints differ
"""
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .. import config as _cfg
from ..utils.file_utils import attach_suffix_to_file_path, unix_second_format
from ..utils.logging import log, vlog
from .chunks import diff_chunks, local_digest, remote_digest
from .ssh_manager import SSHManager

BACKUP_SUFFIX = "-sync-backup-"


@dataclass
class SyncReport:
    direction: str
    chunks: list = field(default_factory=list)  # indices written
    bytes_written: int = 0
    truncated: bool = False
    backup: Optional[str] = None


def backup_name(path: str, mtime: float) -> str:
    """'<name>-sync-backup-<yyyyMMddHHmmss>.<ext>' next to *path*."""
    return attach_suffix_to_file_path(path, BACKUP_SUFFIX + unix_second_format(mtime, "%Y%m%d%H%M%S"))


def client_sync_to_server(mgr: SSHManager, client_file: Path, server_file: str,
                          chunk_size: Optional[int] = None, backup: bool = True) -> SyncReport:
    """
    Make server_file byte-identical to client_file, sending only the chunks
    that differ. Any failure propagates; re-running starts from scratch.
    """
    chunk_size = chunk_size or _cfg.CHUNK_SIZE
    report = SyncReport(direction="push")

    if not mgr.exists(server_file):
        mgr.write_file(server_file, b"")
    elif backup:
        st = mgr.stat(server_file)
        report.backup = backup_name(server_file, st.st_mtime)
        mgr.copy(server_file, report.backup)
        vlog(f"  [backup] {server_file} → {report.backup}")

    client = local_digest(client_file, chunk_size)
    server = remote_digest(mgr, server_file, chunk_size)
    chunks = diff_chunks(client.chunks, server.chunks)

    if chunks:
        with open(client_file, "rb") as src, mgr.open(server_file, "r+") as dst:
            for chunk in chunks:
                src.seek(chunk.start)
                data = src.read(chunk.size)
                dst.seek(chunk.start)
                dst.write(data)
                report.chunks.append(chunk.index)
                report.bytes_written += len(data)

    if server.size > client.size:
        mgr.truncate(server_file, client.size)
        report.truncated = True

    mgr.utime(server_file, client.atime, client.mtime)
    log(f"  [PUSH ✓] {server_file}: {len(report.chunks)}/{len(client.chunks)} chunk(s), "
        f"{report.bytes_written} byte(s)")
    return report


def server_sync_to_client(mgr: SSHManager, client_file: Path, server_file: str,
                          chunk_size: Optional[int] = None, backup: bool = True) -> SyncReport:
    """Mirror of client_sync_to_server: make client_file match server_file."""
    chunk_size = chunk_size or _cfg.CHUNK_SIZE
    client_file = Path(client_file)
    report = SyncReport(direction="pull")

    if not client_file.exists():
        client_file.parent.mkdir(parents=True, exist_ok=True)
        client_file.touch()
    elif backup:
        st = client_file.stat()
        report.backup = backup_name(str(client_file), st.st_mtime)
        shutil.copy2(client_file, report.backup)
        vlog(f"  [backup] {client_file} → {report.backup}")

    client = local_digest(client_file, chunk_size)
    server = remote_digest(mgr, server_file, chunk_size)
    chunks = diff_chunks(server.chunks, client.chunks)

    if chunks:
        with mgr.open(server_file, "r") as src, open(client_file, "r+b") as dst:
            for chunk in chunks:
                src.seek(chunk.start)
                data = src.read(chunk.size)
                dst.seek(chunk.start)
                dst.write(data)
                report.chunks.append(chunk.index)
                report.bytes_written += len(data)

    if client.size > server.size:
        os.truncate(client_file, server.size)
        report.truncated = True

    os.utime(client_file, (server.atime, server.mtime))
    log(f"  [PULL ✓] {client_file}: {len(report.chunks)}/{len(server.chunks)} chunk(s), "
        f"{report.bytes_written} byte(s)")
    return report
