"""
Local mirror of remote files, with staleness decided by remote mtime
"""
import os
import shutil
import stat
from pathlib import Path

from ..core.ssh_manager import SSHManager
from ..state.sidecar import load_descriptor, save_descriptor, source_path
from ..utils.logging import log, vlog
from .transfer import ProgressCallback, download_file, download_folder


def client_cache_path(mgr: SSHManager, server_path: str) -> Path:
    """Where server_path is mirrored: <cache_root>/<server_path>."""
    return mgr.cache_root / server_path.lstrip("/")


def client_source_path(mgr: SSHManager, server_path: str) -> Path:
    return source_path(client_cache_path(mgr, server_path))


def has_file_cache(mgr: SSHManager, server_file: str) -> bool:
    """True iff the mirror and its sidecar exist and the sidecar mtime matches the live remote one."""
    cached = client_cache_path(mgr, server_file)
    if not cached.exists():
        return False
    descriptor = load_descriptor(cached)
    if descriptor is None:
        return False
    st = mgr.stat(server_file)
    return descriptor.get("mtime") == st.st_mtime


def check_or_update_file_cache(mgr: SSHManager, server_file: str,
                               on_progress: ProgressCallback = None) -> Path:
    """Download server_file into the cache unless the cached copy is fresh."""
    cached = client_cache_path(mgr, server_file)
    if has_file_cache(mgr, server_file):
        vlog(f"  [cache] fresh: {server_file}")
        return cached

    # sidecar and times describe the remote as it was before the transfer
    st = mgr.stat(server_file)
    log(f"  [cache] refreshing {server_file} …")
    download_file(mgr, cached, server_file, on_progress)
    os.utime(cached, (st.st_atime, st.st_mtime))
    save_descriptor(cached, server_file, mgr.options.host, st.st_mtime, st.st_size)
    return cached


def check_update_local_cache(mgr: SSHManager, server_path: str,
                             on_progress: ProgressCallback = None) -> bool:
    """
    Bring the mirror of a remote file or directory up to date.
    A local copy of the wrong type is deleted; a missing or stale copy is
    downloaded and its times set to the remote's.
    Returns True when server_path is a directory.
    """
    server_stat = mgr.stat(server_path)
    is_dir = stat.S_ISDIR(server_stat.st_mode)
    client_path = client_cache_path(mgr, server_path)

    if client_path.exists():
        client_stat = client_path.stat()
        same_type = client_path.is_dir() == is_dir
        if same_type and int(client_stat.st_mtime) == server_stat.st_mtime:
            vlog(f"  [cache] fresh: {server_path}")
            return is_dir
        if not same_type:
            vlog(f"  [cache] type changed, dropping {client_path}")
            if client_path.is_dir():
                shutil.rmtree(client_path)
            else:
                client_path.unlink()

    if is_dir:
        download_folder(mgr, client_path, server_path, on_progress)
    else:
        download_file(mgr, client_path, server_path, on_progress)
    os.utime(client_path, (server_stat.st_atime, server_stat.st_mtime))
    return is_dir
