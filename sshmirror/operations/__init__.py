"""Operations (cache, transfer, trashcan)"""
from .transfer import TransferReport, upload, upload_file, upload_folder, download_file, download_folder
from .cache import has_file_cache, check_or_update_file_cache, check_update_local_cache
from .trashcan import remove_to_trashcan, parse_metadata, list_trashcan, restore_from_trashcan

__all__ = [
    "TransferReport", "upload", "upload_file", "upload_folder", "download_file", "download_folder",
    "has_file_cache", "check_or_update_file_cache", "check_update_local_cache",
    "remove_to_trashcan", "parse_metadata", "list_trashcan", "restore_from_trashcan",
]
