"""
Back-off schedule for reconnect attempts
"""
from .. import config as _cfg


def backoff_delay(attempt: int, base: float = None) -> float:
    """Seconds to wait after failed attempt *attempt* (1-based): 2**attempt * base."""
    if base is None:
        base = _cfg.RECONNECT_BASE_DELAY
    return (2 ** attempt) * base


def backoff_schedule(max_tries: int, base: float = None) -> list[float]:
    """Every delay a full run of *max_tries* failing attempts sleeps through."""
    return [backoff_delay(attempt, base) for attempt in range(1, max_tries)]
