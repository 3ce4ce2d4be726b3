"""Core functionality"""
from .ssh_manager import SSHManager, SHORT_SFTP, LONG_SFTP
from .chunks import Chunk, FileDigest, to_chunk, local_digest, remote_digest, diff_chunks
from .sync_engine import SyncReport, client_sync_to_server, server_sync_to_client

__all__ = [
    "SSHManager", "SHORT_SFTP", "LONG_SFTP",
    "Chunk", "FileDigest", "to_chunk", "local_digest", "remote_digest", "diff_chunks",
    "SyncReport", "client_sync_to_server", "server_sync_to_client",
]
