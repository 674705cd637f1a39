"""
Server: owns the triggers, the outbound mail queue and the dispatch worker.

Startup:
- Parse the mail host string (failure is logged, mail stays unconfigured)
- Load every definition in the triggers directory
- Start triggers, then the dispatch worker

Shutdown stops triggers before the dispatcher so final flushes are delivered.
"""

import queue
import threading
from pathlib import Path
from typing import Dict, Optional

from loguru import logger

from app.models.schemas import Message
from app.utils.config import Settings
from app.utils.mailer import MailConfig, MailConfigError, MailTransport, SMTPTransport, parse_mail_host
from domains.mail.dispatcher import MailDispatcher
from domains.triggers.loader import TriggerLoadError, load_trigger_definition
from domains.triggers.trigger import Trigger


class TriggerDirectoryError(Exception):
    """Raised when the trigger definitions directory cannot be read."""


class Server:
    """Trigger registry plus mail delivery, started and stopped as one unit."""

    def __init__(self, settings: Settings, transport: Optional[MailTransport] = None):
        """
        Initialize server.

        Args:
            settings: Application settings
            transport: Mail backend, SMTP by default
        """
        self.settings = settings
        self.trigger_path = settings.get_triggers_path()
        self.triggers: Dict[str, Trigger] = {}
        self.mail_queue: "queue.Queue[Message]" = queue.Queue(maxsize=settings.mail_queue_size)
        self.mail: Optional[MailConfig] = None

        try:
            self.mail = parse_mail_host(settings.mailhost)
        except MailConfigError as e:
            logger.error(f"Error: {e}")

        self.dispatcher = MailDispatcher(
            self.mail_queue,
            self.mail,
            transport or SMTPTransport(timeout=settings.smtp_timeout),
        )

        self._lock = threading.Lock()
        self._started = False
        self._stopped = False

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[MailTransport] = None) -> "Server":
        """
        Build a server and load all trigger definitions.

        Raises:
            TriggerDirectoryError: If the definitions directory cannot be read
        """
        srv = cls(settings, transport)
        srv.load_triggers()
        return srv

    def load_triggers(self) -> int:
        """
        Load every definition file in the triggers directory.

        Individual failures are logged and skipped.

        Returns:
            Number of triggers registered
        """
        try:
            entries = sorted(self.trigger_path.iterdir())
        except OSError as e:
            raise TriggerDirectoryError(f"cannot read triggers directory {self.trigger_path}: {e}") from e

        loaded = 0
        for entry in entries:
            if not entry.is_file():
                logger.warning(f"Skipping non-file entry in triggers directory: {entry}")
                continue
            try:
                self.load_trigger(entry)
                loaded += 1
            except TriggerLoadError as e:
                logger.error(f"Error loading trigger: {e}")

        logger.info(f"Loaded {loaded} trigger(s) from {self.trigger_path}")
        return loaded

    def load_trigger(self, path: Path) -> Trigger:
        """
        Decode one definition, attach its watch and register it.

        Raises:
            TriggerLoadError: On decode failure, duplicate name or attach failure
        """
        definition = load_trigger_definition(path)
        if definition.name in self.triggers:
            logger.warning(f"Duplicate trigger name '{definition.name}' in {path}")
            raise TriggerLoadError(f"trigger '{definition.name}' is already registered")

        trigger = Trigger(
            definition,
            self.mail_queue,
            flush_interval=self.settings.flush_interval,
            enqueue_timeout=self.settings.mail_enqueue_timeout,
        )
        trigger.attach()
        self.triggers[trigger.name] = trigger
        logger.info(f"Loaded trigger '{trigger.name}' for {trigger.path}")
        return trigger

    def start(self) -> None:
        """Start every trigger and the mail dispatcher."""
        with self._lock:
            if self._started or self._stopped:
                return
            self._started = True

        for trigger in self.triggers.values():
            trigger.start()
        self.dispatcher.start()
        logger.success(f"Started {len(self.triggers)} trigger(s)")

    def stop(self) -> None:
        """Stop triggers (with their final flush), then drain the dispatcher."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True

        # Final flushes need a consumer even if start() was never called.
        self.dispatcher.start()
        for trigger in self.triggers.values():
            trigger.stop()
        self.dispatcher.stop()
        logger.success("Stopped triggers")
