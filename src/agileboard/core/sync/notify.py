"""
User-facing notifications from the synchronization layer.

Failures that the user has to know about (a rejected insert, a schema that
needs the setup script, a denied upload) are reported through a Notifier.
Presentation code installs its own; the default one only logs.
"""

import logging
from collections import deque
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

DEFAULT_MAX_ALERTS = 100


@runtime_checkable
class Notifier(Protocol):
    """Receiver of messages meant for the person using the dashboard."""

    def alert(self, message: str) -> None:
        """Show a blocking, user-visible message."""
        ...


class LoggingNotifier:
    """Notifier that writes every alert to the log at WARNING."""

    def alert(self, message: str) -> None:
        logger.warning("%s", message)


class RecordingNotifier:
    """
    Notifier that keeps the most recent alerts, newest last.

    Only the last ``max_messages`` alerts are kept, so a long-running
    server does not grow without bound.
    """

    def __init__(self, max_messages: int = DEFAULT_MAX_ALERTS) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.messages: deque[str] = deque(maxlen=max_messages)

    def alert(self, message: str) -> None:
        logger.debug("Alert: %s", message)
        self.messages.append(message)
