"""Utilities (logging, retry back-off, file utilities)"""
from .logging import log, vlog, warn, set_verbose, set_log_file, attach_event_logging
from .retry import backoff_delay, backoff_schedule
from .file_utils import ChangeFlag, attach_suffix_to_file_path, is_file_changed, unix_second_format

__all__ = [
    "log", "vlog", "warn", "set_verbose", "set_log_file", "attach_event_logging",
    "backoff_delay", "backoff_schedule",
    "ChangeFlag", "attach_suffix_to_file_path", "is_file_changed", "unix_second_format",
]
