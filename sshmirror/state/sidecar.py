"""
Cache descriptor sidecar files (<cachedFile>.source)
"""
import json
from pathlib import Path
from typing import Optional

from ..utils.logging import vlog

SOURCE_SUFFIX = ".source"


def source_path(cached_file: Path) -> Path:
    cached_file = Path(cached_file)
    return cached_file.with_name(cached_file.name + SOURCE_SUFFIX)


def load_descriptor(cached_file: Path) -> Optional[dict]:
    """
    Format: {"serverPath": str, "host": str, "mtime": int, "size": int}
    Returns None when the sidecar is missing or unreadable.
    """
    path = source_path(cached_file)
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text("utf-8"))
    except (OSError, ValueError) as exc:
        vlog(f"  [cache] ignoring unreadable sidecar {path}: {exc}")
        return None
    return data if isinstance(data, dict) else None


def save_descriptor(cached_file: Path, server_path: str, host: str, mtime: int, size: int):
    """Write the sidecar next to cached_file."""
    path = source_path(cached_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({
        "serverPath": server_path,
        "host": host,
        "mtime": mtime,
        "size": size,
    }), "utf-8")
