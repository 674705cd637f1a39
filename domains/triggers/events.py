"""
Filesystem event source for triggers.

Translates watchdog callbacks into FileEvent values carrying a Mode flag set.
"""

import os
from dataclasses import dataclass
from typing import Callable, Dict, NamedTuple, Optional

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler

from domains.triggers.modes import NONE, Mode


@dataclass(frozen=True)
class FileEvent:
    """A single change reported for a watched path."""

    name: str
    kind: Mode


class StatSnapshot(NamedTuple):
    """The parts of a stat result used to tell writes from attribute changes."""

    mode: int
    uid: int
    gid: int
    size: int
    mtime_ns: int
    ctime_ns: int

    @classmethod
    def from_stat(cls, st: os.stat_result) -> "StatSnapshot":
        return cls(st.st_mode, st.st_uid, st.st_gid, st.st_size, st.st_mtime_ns, st.st_ctime_ns)


def classify_change(previous: StatSnapshot, current: StatSnapshot) -> Mode:
    """
    Decide whether a "modified" report was a content write or an attribute change.

    A write updates mtime and ctime to the same instant; chmod, chown and
    utime touch ctime alone or set mtime to some other value. Touching a
    file to the current time looks like an empty write and is reported as one.
    """
    if (previous.mode, previous.uid, previous.gid) != (current.mode, current.uid, current.gid):
        return Mode.CHMOD
    if previous.size != current.size:
        return Mode.WRITE
    if previous.mtime_ns != current.mtime_ns and current.mtime_ns == current.ctime_ns:
        return Mode.WRITE
    if previous.ctime_ns != current.ctime_ns:
        return Mode.CHMOD
    # Nothing visible changed: a repeat report for a write already seen.
    return Mode.WRITE


class TriggerEventHandler(FileSystemEventHandler):
    """Watchdog handler feeding one trigger."""

    def __init__(self, root: str, sink: Callable[[FileEvent], None]):
        """
        Initialize event handler.

        Args:
            root: Absolute watched path
            sink: Called with every translated event
        """
        super().__init__()
        self.root = root
        self.sink = sink
        # Last seen stat per path; watchdog folds attribute changes into
        # "modified", so chmod is told apart by comparing these.
        self._stats: Dict[str, StatSnapshot] = {}

    def seed(self) -> None:
        """Record stats of the watched path and its direct children."""
        self._remember(self.root)
        if not os.path.isdir(self.root):
            return
        try:
            with os.scandir(self.root) as entries:
                for entry in entries:
                    try:
                        self._stats[entry.path] = StatSnapshot.from_stat(
                            entry.stat(follow_symlinks=False)
                        )
                    except OSError:
                        continue
        except OSError as e:
            logger.warning(f"Could not scan {self.root}: {e}")

    def on_created(self, event: FileSystemEvent) -> None:
        path = os.fsdecode(event.src_path)
        self._remember(path)
        self._emit(path, Mode.CREATE)

    def on_deleted(self, event: FileSystemEvent) -> None:
        path = os.fsdecode(event.src_path)
        self._stats.pop(path, None)
        self._emit(path, Mode.REMOVE)

    def on_moved(self, event: FileSystemEvent) -> None:
        src = os.fsdecode(event.src_path)
        self._stats.pop(src, None)
        self._emit(src, Mode.RENAME)

        dest = getattr(event, "dest_path", None)
        if dest:
            dest = os.fsdecode(dest)
            if os.path.dirname(dest) == self.root:
                self._remember(dest)
                self._emit(dest, Mode.CREATE)

    def on_modified(self, event: FileSystemEvent) -> None:
        path = os.fsdecode(event.src_path)
        is_root = path == self.root and event.is_directory

        previous = self._stats.get(path)
        current = self._remember(path)
        if previous is None or current is None:
            kind = Mode.WRITE
        else:
            kind = classify_change(previous, current)

        # The watched directory itself is reported whenever a child changes.
        if is_root and kind != Mode.CHMOD:
            return
        self._emit(path, kind)

    def _remember(self, path: str) -> Optional[StatSnapshot]:
        try:
            snapshot = StatSnapshot.from_stat(os.stat(path, follow_symlinks=False))
        except OSError:
            self._stats.pop(path, None)
            return None
        self._stats[path] = snapshot
        return snapshot

    def _emit(self, path: str, kind: Mode) -> None:
        if kind == NONE:
            return
        self.sink(FileEvent(name=path, kind=kind))
