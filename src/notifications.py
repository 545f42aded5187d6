"""
User-facing notifications raised when the client falls back to sample sermons.

A notifier is anything with a ``notify(notification)`` method. The console
notifier prints in the same emoji style as the CLI; the logging notifier is
for embedding the client where there is no terminal.
"""

import logging
import sys
from dataclasses import dataclass

from khutba_models import ErrorKind

logger = logging.getLogger(__name__)

ERROR = 'error'
WARNING = 'warning'


@dataclass(frozen=True)
class Notification:
    """A toast-style message for the user."""
    severity: str
    title: str
    description: str
    duration_ms: int = 8000


FALLBACK_NOTICE = Notification(
    severity=WARNING,
    title='Using sample sermon data as fallback',
    description='Real sermon generation is unavailable at the moment.',
    duration_ms=5000,
)


def failure_notification(kind: ErrorKind, detail: str = '') -> Notification:
    """Build the error notification shown for a given failure kind.

    Args:
        kind: Classified reason for the failure
        detail: Error message, shown only for unclassified failures

    Returns:
        Notification with copy tailored to ``kind``
    """
    if kind is ErrorKind.NETWORK:
        return Notification(
            ERROR,
            'Network Connection Error',
            'Unable to connect to sermon server. Please check your internet connection.',
        )
    if kind is ErrorKind.SERVER:
        return Notification(
            ERROR,
            'Server Error',
            'The sermon server is experiencing issues. Please try again later.',
        )
    if kind is ErrorKind.AUTH:
        return Notification(
            ERROR,
            'Authentication Error',
            'The sermon server requires authentication. Using sample sermons instead.',
        )
    return Notification(
        ERROR,
        'Failed to generate sermon',
        detail or 'Unknown error occurred',
    )


class Notifier:
    """Base class for notification sinks."""

    def notify(self, notification: Notification) -> None:
        raise NotImplementedError


class ConsoleNotifier(Notifier):
    """Print notifications to stderr, keeping stdout for command output."""

    def notify(self, notification: Notification) -> None:
        icon = "❌" if notification.severity == ERROR else "⚠️ "
        print(f"{icon} {notification.title}", file=sys.stderr)
        if notification.description:
            print(f"   {notification.description}", file=sys.stderr)


class LoggingNotifier(Notifier):
    """Route notifications to the logging module."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    def notify(self, notification: Notification) -> None:
        level = logging.ERROR if notification.severity == ERROR else logging.WARNING
        self.log.log(level, f"{notification.title}: {notification.description}")


class NullNotifier(Notifier):
    def notify(self, notification: Notification) -> None:
        pass
