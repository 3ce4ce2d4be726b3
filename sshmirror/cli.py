#!/usr/bin/env python3
"""
sshmirror - Resilient SSH file mirroring with differential chunk sync
====================================================================

Subcommands:
  init      Create a .sshmirror config file in the current directory.
  push      Sync a local file onto a remote file, sending only changed chunks.
  pull      Sync a remote file onto a local file, fetching only changed chunks.
  cache     Mirror a remote file or directory into the local cache.
  upload    Upload a file or directory.
  download  Download a file or directory.
  trash     Move remote paths to the trashcan, list or restore them.

Run 'sshmirror <subcommand> --help' for more details.
"""
import argparse
import sys
import traceback
from pathlib import Path


# ── helpers ──────────────────────────────────────────────────────────────────

def _load_profile(args):
    """Apply the nearest .sshmirror profile, falling back to the global config."""
    from sshmirror import config as _cfg

    path = _cfg.find_project_file()
    if path is not None:
        if args.verbose:
            print(f"[config] Using {path}")
        data = _cfg.load_project_file(path)
    else:
        data = _cfg.load_global_config()
        if not data:
            print("error: no .sshmirror file found in this directory or any parent.", file=sys.stderr)
            print("Run 'sshmirror init' to create one.", file=sys.stderr)
            sys.exit(1)
    profile = _cfg.get_profile(data, args.profile or "default")
    _cfg.apply_profile(profile)
    return profile


def _connect(args):
    from sshmirror import config as _cfg
    from sshmirror.core.ssh_manager import SSHManager
    from sshmirror.utils.logging import attach_event_logging, set_log_file, set_verbose

    set_verbose(args.verbose)
    _load_profile(args)
    mgr = SSHManager()
    attach_event_logging(mgr.events)
    mgr.connect(_cfg.connect_options())
    set_log_file(mgr.log_path / "sshmirror.log")
    return mgr


def _print_progress(event):
    from sshmirror.events import TransferStatus

    if event.status is TransferStatus.IN_PROGRESS and event.percentage is not None:
        print(f"\r  {event.percentage:3d}%  {event.current}/{event.total} bytes", end="", flush=True)
    elif event.status is not TransferStatus.IN_PROGRESS and event.status is not TransferStatus.STARTED:
        print(f"\r  [{event.status.value}] {event.server_path}")


def _run(args, action):
    """Connect, run action(mgr), always disconnect; exit 1 on failure."""
    from sshmirror.exceptions import SSHClientError
    from sshmirror.utils.logging import warn

    mgr = None
    try:
        mgr = _connect(args)
        return action(mgr)
    except (SSHClientError, OSError) as exc:
        warn(f"{args.command} failed: {exc}")
        if args.verbose:
            traceback.print_exc()
        sys.exit(1)
    finally:
        if mgr is not None:
            mgr.close()


# ── init ─────────────────────────────────────────────────────────────────────

def cmd_init(args):
    """Create a .sshmirror profile file in the current directory."""
    from sshmirror import config as _cfg

    target = Path.cwd() / _cfg.PROJECT_FILE

    if target.exists() and not args.force:
        print(f"error: {_cfg.PROJECT_FILE} already exists in {Path.cwd()}", file=sys.stderr)
        print("Use --force to overwrite.", file=sys.stderr)
        sys.exit(1)

    g_defaults = _cfg.load_global_config().get("defaults", {})

    server = args.server or g_defaults.get("server", "example.com")
    if not args.server and sys.stdin.isatty():
        val = input(f"Server hostname [{server}]: ").strip()
        if val:
            server = val

    user = args.user or g_defaults.get("user", "root")
    if not args.user and sys.stdin.isatty():
        val = input(f"SSH user [{user}]: ").strip()
        if val:
            user = val

    port = args.port or int(g_defaults.get("port", 22))
    trashcan = args.trashcan or g_defaults.get("trashcan", _cfg.TRASHCAN_PATH)
    client_root = args.client_root or g_defaults.get("client_root", str(_cfg.CLIENT_ROOT))

    def _yq(value: str) -> str:
        """Wrap a string in YAML single quotes, escaping embedded single quotes."""
        return "'" + value.replace("'", "''") + "'"

    lines = [
        "# .sshmirror: sshmirror project configuration",
        "#",
        "# profiles: list of connection profiles for this project.",
        "# Each profile has: name, server, port, user, trashcan, client_root.",
        "profiles:",
        f"  - name: {args.profile or 'default'}",
        f"    server: {_yq(server)}",
        f"    port: {port}",
        f"    user: {_yq(user)}",
        f"    trashcan: {_yq(trashcan)}",
        f"    client_root: {_yq(str(client_root).replace(chr(92), '/'))}",
        f"    auto_reconnect: true",
        f"    max_try_count: {_cfg.MAX_TRY_COUNT}",
        f"    chunk_size: {_cfg.CHUNK_SIZE}",
    ]
    content = "\n".join(lines) + "\n"

    if args.dry_run:
        print(f"[dry-run] Would write {target}:")
        print(content)
        return

    target.write_text(content, encoding="utf-8")
    print(f"Created {target}")
    if args.verbose:
        print(content)


# ── sync ─────────────────────────────────────────────────────────────────────

def _unchanged(mgr, args) -> bool:
    from sshmirror.utils.file_utils import is_file_changed
    from sshmirror.utils.logging import log

    if not args.if_changed:
        return False
    if not Path(args.client).exists() or not mgr.exists(args.server_file):
        return False
    if is_file_changed(mgr, Path(args.client), args.server_file):
        return False
    log(f"  [SKIP] {args.client} and {args.server_file} match on mtime and size")
    return True


def cmd_push(args):
    """Differential sync local → remote."""
    from sshmirror.core.sync_engine import client_sync_to_server

    def action(mgr):
        if _unchanged(mgr, args):
            return None
        return client_sync_to_server(mgr, Path(args.client), args.server_file,
                                     chunk_size=args.chunk_size, backup=not args.no_backup)

    return _run(args, action)


def cmd_pull(args):
    """Differential sync remote → local."""
    from sshmirror.core.sync_engine import server_sync_to_client

    def action(mgr):
        if _unchanged(mgr, args):
            return None
        return server_sync_to_client(mgr, Path(args.client), args.server_file,
                                     chunk_size=args.chunk_size, backup=not args.no_backup)

    return _run(args, action)


# ── cache / transfer ─────────────────────────────────────────────────────────

def cmd_cache(args):
    """Bring the local mirror of a remote path up to date."""
    from sshmirror.operations.cache import check_or_update_file_cache, check_update_local_cache, client_cache_path

    def action(mgr):
        if args.sidecar:
            cached = check_or_update_file_cache(mgr, args.server_path, _print_progress)
        else:
            check_update_local_cache(mgr, args.server_path, _print_progress)
            cached = client_cache_path(mgr, args.server_path)
        print(cached)

    return _run(args, action)


def cmd_upload(args):
    from sshmirror.operations.transfer import upload

    return _run(args, lambda mgr: upload(mgr, Path(args.client), args.server_dir, _print_progress))


def cmd_download(args):
    import stat
    from sshmirror.operations.transfer import download_file, download_folder

    def action(mgr):
        if stat.S_ISDIR(mgr.stat(args.server).st_mode):
            return download_folder(mgr, Path(args.client), args.server, _print_progress)
        return download_file(mgr, Path(args.client), args.server, _print_progress)

    return _run(args, action)


# ── trash ────────────────────────────────────────────────────────────────────

def cmd_trash(args):
    """Dispatch trash sub-subcommands."""
    from datetime import datetime
    from sshmirror.operations import trashcan

    sub = getattr(args, "trash_sub", None)
    if sub == "rm":
        return _run(args, lambda mgr: [trashcan.remove_to_trashcan(mgr, p) for p in args.paths])
    if sub == "ls":
        def action(mgr):
            entries = trashcan.list_trashcan(mgr)
            for e in entries:
                when = datetime.fromtimestamp(e.deleted_at / 1000).strftime("%Y-%m-%d %H:%M:%S")
                print(f"{when}  {e.source}\n    {e.path}")
            if not entries:
                print("Trashcan is empty.")
        return _run(args, action)
    if sub == "restore":
        return _run(args, lambda mgr: trashcan.restore_from_trashcan(mgr, args.entry))

    print("error: a subcommand is required (rm, ls, restore).", file=sys.stderr)
    print("Run 'sshmirror trash --help' for usage.", file=sys.stderr)
    sys.exit(1)


# ── main ──────────────────────────────────────────────────────────────────────

def _common(p):
    p.add_argument("--profile", metavar="NAME", default="default",
                   help="Profile to use (default: default)")
    p.add_argument("-v", "--verbose", action="store_true",
                   help="Show extra output")


def main():
    """CLI entry point for sshmirror"""
    parser = argparse.ArgumentParser(
        prog="sshmirror",
        description="Resilient SSH file mirroring with differential chunk sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # ── init ──────────────────────────────────────────────────────────────────
    init_p = subparsers.add_parser(
        "init",
        help="Create a .sshmirror config file in the current directory",
        description="Create a .sshmirror YAML config file for this project.",
    )
    init_p.add_argument("--server", metavar="HOST", help="Remote server hostname or IP")
    init_p.add_argument("--user", metavar="NAME", help="SSH username (default: root)")
    init_p.add_argument("--port", type=int, metavar="N", help="SSH port (default: 22)")
    init_p.add_argument("--trashcan", metavar="PATH", help="Remote trashcan directory")
    init_p.add_argument("--client-root", metavar="PATH", help="Local cache/log root")
    init_p.add_argument("--force", action="store_true", help="Overwrite existing .sshmirror")
    init_p.add_argument("-n", "--dry-run", action="store_true", help="Preview without writing files")
    _common(init_p)

    # ── push / pull ───────────────────────────────────────────────────────────
    for name, help_text in (("push", "Sync a local file onto a remote file"),
                            ("pull", "Sync a remote file onto a local file")):
        p = subparsers.add_parser(name, help=help_text, description=help_text + ", chunk by chunk.")
        p.add_argument("client", metavar="LOCAL_FILE")
        p.add_argument("server_file", metavar="REMOTE_FILE")
        p.add_argument("--chunk-size", type=int, metavar="BYTES", default=None,
                       help="Chunk size in bytes (default: from config, 5 MiB)")
        p.add_argument("--no-backup", action="store_true",
                       help="Do not copy the destination to a -sync-backup- sibling first")
        p.add_argument("--if-changed", action="store_true",
                       help="Skip when both sides already match on mtime and size")
        _common(p)

    # ── cache ─────────────────────────────────────────────────────────────────
    cache_p = subparsers.add_parser("cache", help="Mirror a remote path into the local cache")
    cache_p.add_argument("server_path", metavar="REMOTE_PATH")
    cache_p.add_argument("--sidecar", action="store_true",
                         help="Track freshness with a .source sidecar (files only)")
    _common(cache_p)

    # ── upload / download ─────────────────────────────────────────────────────
    up_p = subparsers.add_parser("upload", help="Upload a file or directory into a remote directory")
    up_p.add_argument("client", metavar="LOCAL_PATH")
    up_p.add_argument("server_dir", metavar="REMOTE_DIR")
    _common(up_p)

    down_p = subparsers.add_parser("download", help="Download a remote file or directory")
    down_p.add_argument("server", metavar="REMOTE_PATH")
    down_p.add_argument("client", metavar="LOCAL_PATH")
    _common(down_p)

    # ── trash ─────────────────────────────────────────────────────────────────
    trash_p = subparsers.add_parser("trash", help="Recoverable delete on the remote")
    _common(trash_p)
    trash_sub = trash_p.add_subparsers(dest="trash_sub", metavar="ACTION")
    rm_p = trash_sub.add_parser("rm", help="Move remote paths into the trashcan")
    rm_p.add_argument("paths", nargs="+", metavar="REMOTE_PATH")
    trash_sub.add_parser("ls", help="List trashcan entries with their original paths")
    restore_p = trash_sub.add_parser("restore", help="Move a trashcan entry back")
    restore_p.add_argument("entry", metavar="ENTRY")

    args = parser.parse_args()

    if args.command == "init":
        cmd_init(args)
    elif args.command == "push":
        cmd_push(args)
    elif args.command == "pull":
        cmd_pull(args)
    elif args.command == "cache":
        cmd_cache(args)
    elif args.command == "upload":
        cmd_upload(args)
    elif args.command == "download":
        cmd_download(args)
    elif args.command == "trash":
        cmd_trash(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
