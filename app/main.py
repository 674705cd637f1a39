"""
Trigger Mail - Main Entry Point

Watches configured directories and mails a digest of what changed:
- Trigger definitions are JSON files in TRIGGERS_PATH
- Matching events are collected per trigger
- Collected events are mailed every flush interval and on shutdown
"""

import signal
import sys
import threading

from loguru import logger

from app.server import Server, TriggerDirectoryError
from app.utils.config import get_settings


def configure_logging(level: str) -> None:
    """Install the stdout sink."""
    logger.remove()
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=level.upper()
    )


def main() -> int:
    """Run until SIGINT or SIGTERM."""
    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        srv = Server.from_settings(settings)
    except TriggerDirectoryError as e:
        logger.error(f"Error starting server: {e}")
        return 2

    stop_event = threading.Event()

    def _signal_handler(signum, frame):  # noqa: D401
        logger.info(f"Received signal {signum}, shutting down.")
        stop_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    srv.start()
    try:
        stop_event.wait()
    finally:
        srv.stop()

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI bridge
    sys.exit(main())
