"""
Trigger: one watched path, its event log and its flushes.

A trigger buffers filesystem events on an internal queue and handles them
in order on a single consumer thread. Matching events become log lines;
the log is flushed into a Message on a fixed interval and once more when
the trigger stops.
"""

import os
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from loguru import logger
from watchdog.observers import Observer

from app.models.schemas import Message, TriggerDefinition
from app.utils.helpers import absolute_path, join_event_path, now_string
from domains.triggers.events import FileEvent, TriggerEventHandler
from domains.triggers.loader import WatchAttachError
from domains.triggers.modes import describe, parse_modes

DEFAULT_FLUSH_INTERVAL = 300.0
DEFAULT_ENQUEUE_TIMEOUT = 30.0

_QUIT = object()


class TriggerState(str, Enum):
    """Lifecycle of a trigger."""

    CREATED = "created"
    WATCHING = "watching"
    STOPPED = "stopped"


@dataclass
class TriggerStats:
    """Counters reported when a trigger stops."""

    events_seen: int = 0
    lines_logged: int = 0
    flushes: int = 0


class Trigger:
    """Watches one path and mails what happened there."""

    def __init__(
        self,
        definition: TriggerDefinition,
        outbox: "queue.Queue[Message]",
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        enqueue_timeout: float = DEFAULT_ENQUEUE_TIMEOUT,
    ):
        self.name = definition.name
        self.subject = definition.subject
        self.path = absolute_path(definition.path)
        self.modes = parse_modes(definition.modes)
        self.watchers = list(definition.watchers)

        self.flush_interval = flush_interval
        self.enqueue_timeout = enqueue_timeout
        self.stats = TriggerStats()

        self._outbox = outbox
        self._log: List[str] = []
        self._log_lock = threading.Lock()
        self._events: "queue.Queue[object]" = queue.Queue()
        self._observer: Optional[Observer] = None
        self._worker: Optional[threading.Thread] = None
        self._state = TriggerState.CREATED
        self._state_lock = threading.Lock()

    @property
    def state(self) -> TriggerState:
        return self._state

    @property
    def pending(self) -> int:
        """Number of log lines waiting for the next flush."""
        with self._log_lock:
            return len(self._log)

    def attach(self, observer_factory: Callable[[], Observer] = Observer) -> None:
        """
        Start receiving filesystem events for the trigger's path.

        Events are buffered until start() is called.

        Raises:
            WatchAttachError: If the path does not exist or cannot be watched
        """
        if self._observer is not None:
            return

        if not os.path.exists(self.path):
            raise WatchAttachError(f"cannot watch {self.path}: no such file or directory")

        handler = TriggerEventHandler(self.path, self.submit)
        handler.seed()

        observer = observer_factory()
        observer.daemon = True
        try:
            observer.schedule(handler, self.path, recursive=False)
            observer.start()
        except OSError as e:
            observer.stop()
            raise WatchAttachError(f"cannot watch {self.path}: {e}") from e

        self._observer = observer
        logger.debug(f"Trigger '{self.name}' attached to {self.path}")

    def start(self) -> None:
        """Begin handling events and flushing on the interval."""
        with self._state_lock:
            if self._state is not TriggerState.CREATED:
                return
            self._worker = threading.Thread(
                target=self._run, name=f"trigger-{self.name}", daemon=True
            )
            self._worker.start()
            self._state = TriggerState.WATCHING

        logger.info(f"Trigger '{self.name}' watching {self.path}")

    def stop(self) -> None:
        """
        Stop watching and flush whatever is left.

        Blocks until the event source and the consumer thread have finished,
        so the final flush sees every line. Calling it again does nothing.
        """
        with self._state_lock:
            if self._state is TriggerState.STOPPED:
                return
            self._state = TriggerState.STOPPED

        if self._observer is not None:
            self._observer.stop()
            self._observer.join()

        if self._worker is not None:
            self._events.put(_QUIT)
            self._worker.join()
        else:
            # Never started: handle anything the observer buffered.
            self._drain()

        self.flush()
        logger.info(
            f"Trigger '{self.name}' stopped "
            f"(events={self.stats.events_seen}, lines={self.stats.lines_logged}, "
            f"flushes={self.stats.flushes})"
        )

    def submit(self, event: FileEvent) -> None:
        """Queue an event for the consumer thread. Safe from any thread."""
        self._events.put(event)

    def handle_event(self, event: FileEvent) -> bool:
        """
        Append a log line if the event matches the trigger's modes.

        Returns:
            True if a line was logged
        """
        self.stats.events_seen += 1
        if not event.kind & self.modes:
            logger.debug(f"Trigger '{self.name}' ignored {describe(event.kind)} {event.name}")
            return False

        line = f"{now_string()}: {describe(event.kind)} {join_event_path(self.path, event.name)}\n"
        with self._log_lock:
            self._log.append(line)
        self.stats.lines_logged += 1
        return True

    def flush(self) -> Optional[Message]:
        """
        Move the accumulated log into a Message on the outbound queue.

        Returns:
            The queued message, or None if there was nothing to send
        """
        with self._log_lock:
            if not self._log:
                return None
            body = "".join(self._log)
            lines = len(self._log)
            self._log = []

        msg = Message(recipients=tuple(self.watchers), subject=self.subject, body=body)
        try:
            self._outbox.put(msg, timeout=self.enqueue_timeout)
        except queue.Full:
            logger.error(
                f"Trigger '{self.name}': mail queue full, dropped message with {lines} line(s)"
            )
            return None

        self.stats.flushes += 1
        logger.info(f"Trigger '{self.name}' queued {lines} line(s) for {len(self.watchers)} watcher(s)")
        return msg

    def _run(self) -> None:
        next_flush = time.monotonic() + self.flush_interval
        while True:
            timeout = max(next_flush - time.monotonic(), 0.0)
            try:
                item = self._events.get(timeout=timeout)
            except queue.Empty:
                item = None

            if item is _QUIT:
                return
            if item is not None:
                self.handle_event(item)

            # A steady stream of events must not hold back the timer.
            now = time.monotonic()
            if now >= next_flush:
                self.flush()
                while next_flush <= now:
                    next_flush += self.flush_interval

    def _drain(self) -> None:
        while True:
            try:
                item = self._events.get_nowait()
            except queue.Empty:
                return
            if item is not _QUIT:
                self.handle_event(item)
