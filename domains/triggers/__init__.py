"""
Triggers Domain

Watches filesystem paths and turns matching changes into mail:
- Event source → watchdog observer per trigger, translated to Mode flags
- Trigger → filters events, accumulates log lines, flushes them as Messages
- Loader → decodes JSON trigger definitions
"""

__all__ = ["events", "loader", "modes", "trigger"]
