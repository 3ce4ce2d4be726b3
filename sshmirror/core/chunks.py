"""
Fixed-size chunking, per-chunk SHA-256 fingerprints and the positional diff
"""
import hashlib
import math
import posixpath
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..utils.logging import vlog

if TYPE_CHECKING:
    from .ssh_manager import SSHManager

CHUNK_PREFIX = "chunk_"

# Remote side of the fingerprint protocol; existing deployments parse its
# `<hex>  <path>` output. {file} and {prefix} arrive shell-quoted.
REMOTE_FINGERPRINT_COMMAND = 'split -b {chunk_size} {file} {prefix} && for f in {prefix}*; do sha256sum "$f"; done'

# Scratch directory for the split pieces; dot-prefixed and suffixed so it
# cannot be mistaken for a user file that happens to be named <name>_<size>.
CHUNK_DIR_SUFFIX = ".chunks"


@dataclass
class Chunk:
    start: int
    end: int
    index: int
    fingerprint: Optional[str] = None
    path: Optional[str] = None

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass
class FileDigest:
    size: int
    mtime: int
    atime: int
    chunks: list = field(default_factory=list)


def to_chunk(total: int, chunk_size: int) -> list[Chunk]:
    """Split [0, total) into ceil(total / chunk_size) contiguous ranges."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if total < 0:
        raise ValueError(f"total must not be negative, got {total}")
    chunks = []
    for index in range(math.ceil(total / chunk_size)):
        start = index * chunk_size
        chunks.append(Chunk(start=start, end=min(total, start + chunk_size), index=index))
    return chunks


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def local_digest(path: Path, chunk_size: int) -> FileDigest:
    """Fingerprint every chunk of a local file by reading its exact byte span."""
    st = Path(path).stat()
    chunks = to_chunk(st.st_size, chunk_size)
    with open(path, "rb") as f:
        for chunk in chunks:
            f.seek(chunk.start)
            chunk.fingerprint = sha256_hex(f.read(chunk.size))
    return FileDigest(size=st.st_size, mtime=int(st.st_mtime), atime=int(st.st_atime), chunks=chunks)


def remote_chunk_dir(server_file: str, chunk_size: int) -> str:
    parent, name = posixpath.split(server_file)
    return posixpath.join(parent, f".{name}_{chunk_size}{CHUNK_DIR_SUFFIX}")


def parse_fingerprint_output(text: str) -> list[tuple[str, str]]:
    """Parse `<hex digest>  <path>` lines into (fingerprint, path) pairs, in order."""
    result = []
    for line in text.splitlines():
        if not line.strip():
            continue
        fingerprint, _, path = line.partition("  ")
        result.append((fingerprint.strip(), path))
    return result


def remote_digest(mgr: "SSHManager", server_file: str, chunk_size: int) -> FileDigest:
    """
    Fingerprint a remote file without transferring it: `split` it into
    physical chunk files next to it, `sha256sum` each, parse the output.
    The chunk directory is removed before and after.
    """
    st = mgr.stat(server_file)
    digest = FileDigest(size=st.st_size, mtime=st.st_mtime, atime=st.st_atime)
    if st.st_size == 0:
        return digest

    chunk_dir = remote_chunk_dir(server_file, chunk_size)
    prefix = posixpath.join(chunk_dir, CHUNK_PREFIX)
    mgr.remove(chunk_dir)
    mgr.ensure_path(chunk_dir)
    try:
        command = REMOTE_FINGERPRINT_COMMAND.format(chunk_size=chunk_size, file=shlex.quote(server_file),
                                                    prefix=shlex.quote(prefix))
        output = mgr.execute(command)
    finally:
        mgr.remove(chunk_dir)

    for index, (fingerprint, path) in enumerate(parse_fingerprint_output(output)):
        start = index * chunk_size
        digest.chunks.append(Chunk(start=start, end=min(st.st_size, start + chunk_size), index=index,
                                   fingerprint=fingerprint, path=path))
    vlog(f"  [digest] {server_file}: {len(digest.chunks)} remote chunk(s)")
    return digest


def diff_chunks(source: list[Chunk], target: list[Chunk]) -> list[Chunk]:
    """
    Source chunks that must be written to the target. Comparison is by
    position only: chunk i is skipped when the target has an equal
    fingerprint at index i.
    """
    mismatched = []
    for i, chunk in enumerate(source):
        if i < len(target) and chunk.fingerprint == target[i].fingerprint:
            continue
        mismatched.append(chunk)
    return mismatched
