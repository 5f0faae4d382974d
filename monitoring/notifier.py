"""Desktop notifications for security alerts.

macOS uses AppleScript `display notification`, Linux uses `notify-send`.
Other platforms only log. A failed notification never raises.
"""

import platform
import subprocess
import logging

logger = logging.getLogger(__name__)


def _applescript_quote(text: str) -> str:
    return text.replace('\\', '\\\\').replace('"', '\\"')


def send_notification(title: str, message: str) -> bool:
    """Show a desktop notification.

    Args:
        title: Notification title
        message: Body text

    Returns:
        True if the OS accepted the notification
    """
    system = platform.system()

    if system == 'Darwin':
        script = (f'display notification "{_applescript_quote(message)}" '
                  f'with title "{_applescript_quote(title)}"')
        cmd = ['osascript', '-e', script]
    elif system == 'Linux':
        cmd = ['notify-send', title, message]
    else:
        logger.info(f"{title}: {message}")
        return False

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"Notification failed: {e}")
        return False

    if result.returncode != 0:
        logger.debug(f"Notification command exited {result.returncode}: {result.stderr.strip()}")
        return False
    return True
