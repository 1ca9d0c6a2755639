"""
Native notification support for Work Tracker.

notifications_available() is an advisory check: callers must still treat
every notify() as fallible, since backends can fail at runtime even when
the check says yes.
"""

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Any, Mapping, Optional

import config
from storage.errors import WorkTrackerError

logger = logging.getLogger(__name__)

# Any of these means a desktop session we can notify into
_SESSION_ENV_VARS = ("DISPLAY", "WAYLAND_DISPLAY", "XDG_RUNTIME_DIR", "DBUS_SESSION_BUS_ADDRESS")

# Compatibility layers without a notification daemon
_UNSUPPORTED_KERNEL_MARKERS = ("microsoft", "wsl")

_PROC_VERSION = Path("/proc/version")


class NotificationError(WorkTrackerError):
    """A notification backend failed to display a notification."""


def notifications_available(
    environ: Optional[Mapping[str, str]] = None,
    platform: Optional[str] = None,
    proc_version: Path = _PROC_VERSION,
) -> bool:
    """
    Guess whether native notifications can be shown on this host.

    Args:
        environ: Environment to inspect (default: os.environ).
        platform: Platform string (default: sys.platform).
        proc_version: Kernel version file, read on Linux to detect WSL.

    Returns:
        False if disabled via WORK_TRACKER_DISABLE_NOTIFICATIONS, if a Linux
        session has no display or session bus, or if running under WSL.
        True otherwise.
    """
    environ = os.environ if environ is None else environ
    platform = sys.platform if platform is None else platform

    if environ.get(config.DISABLE_NOTIFICATIONS_ENV, "").strip().lower() in ("1", "true", "yes"):
        return False

    if not platform.startswith("linux"):
        return True

    if not any(environ.get(var) for var in _SESSION_ENV_VARS):
        return False

    try:
        version = Path(proc_version).read_text(encoding='utf-8', errors='ignore').lower()
    except OSError:
        return True
    return not any(marker in version for marker in _UNSUPPORTED_KERNEL_MARKERS)


class TrayNotifier:
    """Shows notifications through the pystray tray icon (Windows/Linux)."""

    def __init__(self, icon: Any):
        """
        Args:
            icon: A running pystray.Icon.
        """
        self.icon = icon

    def notify(self, title: str, message: str) -> None:
        """Display a notification balloon. Raises NotificationError on failure."""
        if not getattr(self.icon, "HAS_NOTIFICATION", True):
            raise NotificationError("Tray backend does not support notifications")
        try:
            self.icon.notify(message, title)
        except Exception as e:
            raise NotificationError(f"Tray notification failed: {e}") from e


class OsascriptNotifier:
    """Shows notifications through AppleScript (macOS)."""

    def notify(self, title: str, message: str) -> None:
        """Display a notification. Raises NotificationError on failure."""
        script = 'display notification {} with title {}'.format(
            _applescript_string(message), _applescript_string(title)
        )
        try:
            subprocess.run(
                ["osascript", "-e", script],
                check=True, timeout=10,
                stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise NotificationError(f"osascript notification failed: {e}") from e


def _applescript_string(value: str) -> str:
    """Quote a Python string as an AppleScript string literal."""
    return '"' + value.replace('\\', '\\\\').replace('"', '\\"') + '"'


def create_notifier(tray_icon: Any = None) -> Optional[Any]:
    """
    Pick a notification backend for this platform.

    Args:
        tray_icon: Running pystray.Icon, if the tray is up.

    Returns:
        A notifier, or None when nothing can notify (prompts then go
        straight to the UI).
    """
    if sys.platform == "darwin":
        return OsascriptNotifier()
    if tray_icon is not None:
        return TrayNotifier(tray_icon)
    logger.debug("No notification backend available")
    return None
