"""
File utilities (path suffixes, timestamps, change detection)
"""
import enum
import os
import posixpath
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.ssh_manager import SSHManager


class ChangeFlag(enum.IntFlag):
    MTIME = 1 << 0
    SIZE = 1 << 1


def unix_second_format(unix_second: float, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    """Format an epoch timestamp in local time."""
    return datetime.fromtimestamp(unix_second).strftime(fmt)


def attach_suffix_to_file_path(file_path: str, suffix: str) -> str:
    """'/a/b/report.txt' + '-x' → '/a/b/report-x.txt' (separators preserved)."""
    mod = posixpath if "/" in file_path and "\\" not in file_path else os.path
    parent, name = mod.split(file_path)
    stem, ext = mod.splitext(name)
    return mod.join(parent, stem + suffix + ext)


def is_file_changed(mgr: "SSHManager", client_file: Path, server_file: str,
                    compare: ChangeFlag = ChangeFlag.MTIME | ChangeFlag.SIZE) -> bool:
    """True if the local and remote copies differ on any compared attribute."""
    server_stat = mgr.stat(server_file)
    client_stat = Path(client_file).stat()
    if ChangeFlag.MTIME in compare and int(client_stat.st_mtime) != server_stat.st_mtime:
        return True
    if ChangeFlag.SIZE in compare and client_stat.st_size != server_stat.st_size:
        return True
    return False
