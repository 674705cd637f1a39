"""Filesystem change kinds a trigger can react to."""

from enum import Flag, auto
from typing import Iterable

from loguru import logger


class Mode(Flag):
    """Kinds of change carried by a filesystem event."""

    CREATE = auto()
    WRITE = auto()
    REMOVE = auto()
    RENAME = auto()
    CHMOD = auto()


NONE = Mode(0)

# Names accepted in trigger definitions. RENAME is reported but not selectable.
MODE_NAMES = {
    "create": Mode.CREATE,
    "write": Mode.WRITE,
    "remove": Mode.REMOVE,
    "chmod": Mode.CHMOD,
}

_ORDER = (Mode.CREATE, Mode.WRITE, Mode.REMOVE, Mode.RENAME, Mode.CHMOD)


def parse_modes(names: Iterable[str]) -> Mode:
    """Combine configured mode names into one flag set, ignoring unknown names."""
    modes = NONE
    for name in names:
        mode = MODE_NAMES.get(name)
        if mode is None:
            logger.debug(f"Ignoring unknown mode: {name!r}")
            continue
        modes |= mode
    return modes


def describe(kind: Mode) -> str:
    """Render a flag set as e.g. ``CREATE|WRITE``."""
    return "|".join(m.name for m in _ORDER if m & kind)
