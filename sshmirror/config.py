"""
Configuration constants for sshmirror
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# ══════════════════════════════════════════════════════════════════════════════
#  DEFAULTS  ── overridden by YAML config or apply_profile()
# ══════════════════════════════════════════════════════════════════════════════

SSH_HOST = "example.com"
SSH_PORT = 22
SSH_USER = "root"
# Path to your private key, or None to use ssh-agent / ~/.ssh/id_*
SSH_KEY_PATH: Optional[str] = None
SSH_PASSWORD: Optional[str] = None  # only if you use password auth

# Remote directory that receives removed files
TRASHCAN_PATH = "/trashcan"

# Local root for mirrored files (<root>/<host>) and logs (<root>/logs/<host>)
CLIENT_ROOT = Path.home() / ".ssh-server"

# Reconnect settings
AUTO_RECONNECT = True
MAX_TRY_COUNT = 3
RECONNECT_BASE_DELAY = 5.0  # seconds; delay after attempt n is 2**n * base

# Seconds between keep-alive packets / liveness checks
KEEPALIVE_INTERVAL = 30

CONNECT_TIMEOUT = 20

# Differential sync chunk size (bytes)
CHUNK_SIZE = 5 * 1024 * 1024

# Longest single path segment accepted on the remote
MAX_PATH = 255

PROJECT_FILE = ".sshmirror"


@dataclass
class ConnectOptions:
    """Snapshot of everything a connection needs; copied on every connect."""
    host: str
    port: int = 22
    username: str = "root"
    password: Optional[str] = None
    key_filename: Optional[str] = None
    trashcan_path: str = TRASHCAN_PATH
    root: Optional[Path] = None
    auto_reconnect: bool = True
    max_try_count: int = MAX_TRY_COUNT
    timeout: int = CONNECT_TIMEOUT
    keepalive: int = KEEPALIVE_INTERVAL

    def client_root(self) -> Path:
        return Path(self.root).expanduser() if self.root else CLIENT_ROOT


def connect_options() -> ConnectOptions:
    """Build ConnectOptions from the current module-level settings."""
    return ConnectOptions(
        host=SSH_HOST,
        port=SSH_PORT,
        username=SSH_USER,
        password=SSH_PASSWORD,
        key_filename=SSH_KEY_PATH,
        trashcan_path=TRASHCAN_PATH,
        root=CLIENT_ROOT,
        auto_reconnect=AUTO_RECONNECT,
        max_try_count=MAX_TRY_COUNT,
        keepalive=KEEPALIVE_INTERVAL,
    )


# ══════════════════════════════════════════════════════════════════════════════
#  GLOBAL CONFIG FILE  ── $XDG_CONFIG_HOME/sshmirror/config.yaml
# ══════════════════════════════════════════════════════════════════════════════

def get_global_config_dir() -> Path:
    """$XDG_CONFIG_HOME/sshmirror, %APPDATA%\\sshmirror on Windows, else ~/.config/sshmirror."""
    base = os.environ.get("XDG_CONFIG_HOME") or (os.name == "nt" and os.environ.get("APPDATA"))
    return Path(base) / "sshmirror" if base else Path.home() / ".config" / "sshmirror"


def load_global_config() -> dict:
    """Contents of the global config.yaml; {} when it is absent or unreadable."""
    import yaml

    cfg_path = get_global_config_dir() / "config.yaml"
    if not cfg_path.is_file():
        return {}
    try:
        return yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError):
        return {}


# ══════════════════════════════════════════════════════════════════════════════
#  PROJECT CONFIG FILE  ── .sshmirror (searched upward)
# ══════════════════════════════════════════════════════════════════════════════

def find_project_file(start: Optional[Path] = None) -> Optional[Path]:
    """Nearest .sshmirror file at or above *start* (default: cwd), or None."""
    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / PROJECT_FILE
        if candidate.is_file():
            return candidate
    return None


def load_project_file(path: Path) -> dict:
    import yaml

    return yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}


def get_profile(data: dict, profile_name: str = "default") -> dict:
    """
    Pick *profile_name* out of a parsed .sshmirror / config.yaml, layered
    over the file's top-level ``defaults``. An unknown name selects the
    first profile; a file without profiles yields just the defaults.
    """
    merged = dict(data.get("defaults") or {})
    profiles = data.get("profiles") or []
    if profiles:
        chosen = next((p for p in profiles if p.get("name") == profile_name), profiles[0])
        merged.update(chosen)
    return merged


# ══════════════════════════════════════════════════════════════════════════════
#  APPLY PROFILE  ── rebinds the module-level settings above
# ══════════════════════════════════════════════════════════════════════════════

def _optional_str(value) -> Optional[str]:
    return str(value) if value else None


def _client_root(value) -> Path:
    return Path(value).expanduser().resolve()


# profile key → (setting name, converter)
_PROFILE_KEYS = {
    "server": ("SSH_HOST", str),
    "port": ("SSH_PORT", int),
    "username": ("SSH_USER", str),
    "user": ("SSH_USER", str),
    "ssh_key": ("SSH_KEY_PATH", _optional_str),
    "ssh_password": ("SSH_PASSWORD", _optional_str),
    "trashcan": ("TRASHCAN_PATH", str),
    "client_root": ("CLIENT_ROOT", _client_root),
    "auto_reconnect": ("AUTO_RECONNECT", bool),
    "max_try_count": ("MAX_TRY_COUNT", int),
    "chunk_size": ("CHUNK_SIZE", int),
    "keepalive": ("KEEPALIVE_INTERVAL", int),
}


def apply_profile(profile: dict):
    """
    Copy the recognised keys of *profile* onto this module's settings.
    Unknown keys are ignored; ``user`` wins over ``username``.
    """
    settings = globals()
    for key, (name, convert) in _PROFILE_KEYS.items():
        if key in profile:
            settings[name] = convert(profile[key])
