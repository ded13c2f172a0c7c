from __future__ import annotations

import hashlib
import time
import typing as tp
from pathlib import Path

KEY_ENCODING = "utf-8"

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR


class BaseClock:
    def now(self) -> float:
        raise NotImplementedError()


class Clock(BaseClock):
    def now(self) -> float:
        return time.time()


def generate_key(uri: str) -> str:
    """
    Derive the cache key for a URI.

    The key is the hex-encoded SHA-1 digest of the URI string, which keeps
    keys stable with caches written by earlier versions of the tool.
    """
    return hashlib.sha1(uri.encode(KEY_ENCODING)).hexdigest()


def format_age(seconds: tp.Union[int, float]) -> str:
    """
    Render an age as a short human readable string.

    Each unit is used until twice its size is reached, so 90 seconds stays
    "90 seconds" and 3 hours becomes "3 hours".

    Examples:
        >>> format_age(42)
        '42 seconds'
        >>> format_age(300)
        '5 minutes'
        >>> format_age(3 * 3600)
        '3 hours'
        >>> format_age(10 * 86400)
        '10 days'
    """
    sec = max(0, int(seconds))
    if sec < 2 * MINUTE:
        return f"{sec} seconds"
    elif sec < 2 * HOUR:
        return f"{sec // MINUTE} minutes"
    elif sec < 2 * DAY:
        return f"{sec // HOUR} hours"
    return f"{sec // DAY} days"


def ensure_cache_dir(base_path: Path) -> Path:
    _gitignore_file = base_path / ".gitignore"

    base_path.mkdir(parents=True, exist_ok=True)

    if not _gitignore_file.is_file():
        with open(_gitignore_file, "w", encoding="utf-8") as f:
            f.write("# Automatically created by refcache\n*")
    return base_path
