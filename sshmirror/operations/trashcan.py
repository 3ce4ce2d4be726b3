"""
Recoverable delete: move remote paths into the trashcan with recoverable provenance
"""
import base64
import json
import posixpath
import re
import time
from dataclasses import dataclass
from typing import Optional

import brotli

from .. import config as _cfg
from ..core.ssh_manager import SSHManager
from ..utils.logging import log, vlog

METADATA_SUFFIX = ".metedata"
_TIMESTAMP_NAME = re.compile(r"^[0-9]+-")


@dataclass
class TrashEntry:
    path: str
    source: str
    deleted_at: int  # epoch milliseconds


def encode_token(metadata: dict) -> str:
    """JSON → brotli → unpadded base64url, usable as one path segment."""
    raw = json.dumps(metadata, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(brotli.compress(raw)).rstrip(b"=").decode("ascii")


def decode_token(token: str) -> dict:
    padded = token + "=" * (-len(token) % 4)
    return json.loads(brotli.decompress(base64.urlsafe_b64decode(padded)).decode("utf-8"))


def ensure_trashcan(mgr: SSHManager, path: Optional[str] = None) -> str:
    mgr.trashcan_path = path or mgr.trashcan_path
    mgr.ensure_path(mgr.trashcan_path)
    return mgr.trashcan_path


def remove_to_trashcan(mgr: SSHManager, path: str, now_ms: Optional[int] = None) -> str:
    """
    Move *path* into the trashcan and return the entry path.

    The entry is named by an encoded token of {"s": path, "d": millis} when
    that fits in one path segment; otherwise it is '<millis>-<name>' with the
    same metadata written to '<entry>.metedata'. A token that happens to look
    like '<digits>-…' also takes the second form so names stay unambiguous.
    """
    deleted_at = int(time.time() * 1000) if now_ms is None else int(now_ms)
    metadata = {"s": path, "d": deleted_at}
    token = encode_token(metadata)

    if len(token.encode("utf-8")) < _cfg.MAX_PATH and not _TIMESTAMP_NAME.match(token):
        target = posixpath.join(mgr.trashcan_path, token)
        mgr.move(path, target)
    else:
        target = posixpath.join(mgr.trashcan_path, f"{deleted_at}-{posixpath.basename(path)}")
        mgr.move(path, target)
        mgr.write_json(target + METADATA_SUFFIX, metadata)
    log(f"  [TRASH ✓] {path} → {target}")
    return target


def parse_metadata(mgr: SSHManager, entry: str) -> dict:
    """Recover {"s": original path, "d": deleted-at millis} for a trashcan entry."""
    name = posixpath.basename(entry)
    if _TIMESTAMP_NAME.match(name):
        return mgr.read_json(entry + METADATA_SUFFIX)
    return decode_token(name)


def list_trashcan(mgr: SSHManager) -> list[TrashEntry]:
    """Every entry in the trashcan with its recovered metadata, oldest first."""
    entries = []
    for attr in mgr.listdir_attr(mgr.trashcan_path):
        if attr.filename.endswith(METADATA_SUFFIX):
            continue
        entry = posixpath.join(mgr.trashcan_path, attr.filename)
        try:
            metadata = parse_metadata(mgr, entry)
        except (OSError, ValueError, brotli.error) as exc:
            vlog(f"  [trash] skipping unrecognised entry {entry}: {exc}")
            continue
        entries.append(TrashEntry(path=entry, source=metadata["s"], deleted_at=int(metadata["d"])))
    entries.sort(key=lambda e: e.deleted_at)
    return entries


def restore_from_trashcan(mgr: SSHManager, entry: str) -> str:
    """Move a trashcan entry back to where it came from; returns that path."""
    metadata = parse_metadata(mgr, entry)
    source = metadata["s"]
    if mgr.exists(source):
        raise FileExistsError(f"cannot restore {entry}: {source} already exists")
    mgr.ensure_path(posixpath.dirname(source) or "/")
    mgr.move(entry, source)
    if _TIMESTAMP_NAME.match(posixpath.basename(entry)):
        mgr.remove(entry + METADATA_SUFFIX)
    log(f"  [RESTORE ✓] {entry} → {source}")
    return source
