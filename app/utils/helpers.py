"""
Helper utilities for Trigger Mail.

Common functions used across domains.
"""

import os
import time
from datetime import datetime
from pathlib import Path
from typing import Union

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def now_string() -> str:
    """
    Get a detailed local timestamp, e.g. ``Tue Mar 05 14:02:09.123456789 2024``.

    Names are fixed English abbreviations so log lines do not depend on locale.
    """
    ns = time.time_ns()
    t = datetime.fromtimestamp(ns // 1_000_000_000)
    return (
        f"{_WEEKDAYS[t.weekday()]} {_MONTHS[t.month - 1]} {t.day:02d} "
        f"{t.hour:02d}:{t.minute:02d}:{t.second:02d}.{ns % 1_000_000_000:09d} {t.year}"
    )


def absolute_path(path: Union[str, Path]) -> str:
    """Return ``path`` as an absolute string without resolving symlinks."""
    return os.path.abspath(os.path.expanduser(os.fsdecode(path)))


def join_event_path(base: str, name: str) -> str:
    """
    Join an event name onto a watched base path.

    Names that are already absolute (as most event sources report them)
    are returned unchanged.
    """
    return os.path.join(base, name)
