"""
Mail dispatch worker.

Drains the shared outbound queue on one thread and delivers each Message
through a MailTransport. Failures are logged and the message discarded.
"""

import queue
import threading
from typing import Optional

from loguru import logger

from app.models.schemas import Message
from app.utils.mailer import MailConfig, MailNotConfiguredError, MailTransport, build_payload

_QUIT = object()


class MailDispatcher:
    """Single consumer of the outbound message queue."""

    def __init__(
        self,
        outbox: "queue.Queue[Message]",
        mail: Optional[MailConfig],
        transport: MailTransport,
    ):
        """
        Initialize dispatcher.

        Args:
            outbox: Queue shared with every trigger
            mail: Mail configuration, None if it could not be parsed
            transport: Delivery backend
        """
        self.outbox = outbox
        self.mail = mail
        self.transport = transport
        self.delivered = 0
        self.failed = 0

        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._stopped = False

    def start(self) -> None:
        """Start the worker thread."""
        with self._lock:
            if self._thread is not None or self._stopped:
                return
            self._thread = threading.Thread(target=self._run, name="mail-dispatch", daemon=True)
            self._thread.start()

    def stop(self) -> None:
        """Deliver everything already queued, then stop the worker."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            thread = self._thread

        if thread is None:
            return
        self.outbox.put(_QUIT)
        thread.join()
        logger.info(f"Mail dispatcher stopped (delivered={self.delivered}, failed={self.failed})")

    def deliver(self, msg: Message) -> bool:
        """
        Send one message.

        Returns:
            True on success, False if delivery failed
        """
        try:
            if self.mail is None:
                raise MailNotConfiguredError("mail is not configured")

            payload = build_payload(self.mail.sender, msg.subject, msg.body)
            self.transport.send_mail(
                self.mail.server,
                self.mail.auth,
                self.mail.sender,
                list(msg.recipients),
                payload,
            )

        except Exception as e:
            self.failed += 1
            logger.error(f"Error sending mail '{msg.subject}': {e}")
            return False

        self.delivered += 1
        logger.info(f"Mail '{msg.subject}' sent to {len(msg.recipients)} recipient(s)")
        return True

    def _run(self) -> None:
        while True:
            item = self.outbox.get()
            try:
                if item is _QUIT:
                    return
                self.deliver(item)
            finally:
                self.outbox.task_done()
