"""Desktop notifications using the notify-send tool (libnotify).

Requires 'notify-send' to be installed and available in the system PATH.
Without it, notifications are logged and skipped.
"""

import logging
import shutil
import subprocess
from typing import Protocol

logger = logging.getLogger(__name__)

APP_NAME = "Task Timer"


class Notifier(Protocol):
    def notify(self, title: str, body: str) -> bool:
        ...


def _get_notify_send_path() -> str | None:
    """Find notify-send in system PATH."""
    return shutil.which("notify-send")


def is_available() -> bool:
    """Check if notify-send is installed and available."""
    return _get_notify_send_path() is not None


class DesktopNotifier:
    """Show a notification bubble. Failures never raise."""

    def __init__(self, timeout: float = 10):
        self.timeout = timeout

    def notify(self, title: str, body: str) -> bool:
        """Show a notification.

        Returns:
            True if the notification was delivered, False otherwise.
        """
        cmd = _get_notify_send_path()
        if not cmd:
            logger.warning("notify-send not found, skipping notification: %s", body)
            return False

        try:
            result = subprocess.run(
                [cmd, "--app-name", APP_NAME, title, body],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("Notification failed: %s", e)
            return False

        if result.returncode != 0:
            logger.warning("notify-send failed (exit code %d): %s", result.returncode, result.stderr.strip())
            return False

        logger.debug("Notified: %s: %s", title, body)
        return True
