"""
Thread-safe rate-limited logging.

Polling loops report the same condition over and over; this module lets
them emit a message once per key and interval instead of on every poll.
"""
import logging
import threading
from typing import Dict, Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 60
MAX_TRACKED_KEYS = 256

# One TTL cache per interval so keys with different intervals expire independently
_caches: Dict[int, TTLCache] = {}
_caches_lock = threading.RLock()


def _cache_for(interval: int) -> TTLCache:
    cache = _caches.get(interval)
    if cache is None:
        cache = TTLCache(maxsize=MAX_TRACKED_KEYS, ttl=interval)
        _caches[interval] = cache
    return cache


def rate_limited_log(
    message: str,
    level: str = "info",
    interval: int = DEFAULT_INTERVAL,
    key: Optional[str] = None,
    logger_instance: Optional[logging.Logger] = None,
) -> bool:
    """
    Log ``message`` unless the same key was logged within ``interval`` seconds.

    Args:
        message: Message to log
        level: Log level name (debug, info, warning, error, critical)
        interval: Minimum interval between two messages with the same key
        key: Deduplication key (defaults to level and message)
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        True if the message was emitted
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.info)
    cache_key = key or f"{level}:{message}"

    with _caches_lock:
        cache = _cache_for(interval)
        if cache_key in cache:
            return False
        cache[cache_key] = True

    log_method(message)
    return True


def reset_rate_limits() -> None:
    """Forget every logged key"""
    with _caches_lock:
        _caches.clear()
