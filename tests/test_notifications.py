"""Unit tests for the notification availability check and backends."""

import subprocess
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.notifications import (
    NotificationError,
    OsascriptNotifier,
    TrayNotifier,
    _applescript_string,
    create_notifier,
    notifications_available,
)


class TestNotificationsAvailable(unittest.TestCase):
    """Test the availability check."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.proc_version = Path(self._tmp.name) / "version"
        self.proc_version.write_text("Linux version 6.5.0-generic (gcc)", encoding="utf-8")

    def tearDown(self):
        self._tmp.cleanup()

    def available(self, environ, platform="linux"):
        return notifications_available(environ, platform, self.proc_version)

    def test_disabled_by_env(self):
        for value in ("1", "true", "YES"):
            self.assertFalse(self.available({"WORK_TRACKER_DISABLE_NOTIFICATIONS": value,
                                         "DISPLAY": ":0"}, platform="win32"))
        self.assertTrue(self.available({"WORK_TRACKER_DISABLE_NOTIFICATIONS": "0"}, platform="win32"))

    def test_other_platforms_available(self):
        self.assertTrue(self.available({}, platform="darwin"))
        self.assertTrue(self.available({}, platform="win32"))

    def test_linux_needs_session(self):
        self.assertFalse(self.available({}))
        self.assertTrue(self.available({"DISPLAY": ":0"}))
        self.assertTrue(self.available({"WAYLAND_DISPLAY": "wayland-0"}))
        self.assertTrue(self.available({"XDG_RUNTIME_DIR": "/run/user/1000"}))

    def test_wsl_unavailable(self):
        self.proc_version.write_text(
            "Linux version 5.15.90.1-microsoft-standard-WSL2", encoding="utf-8"
        )
        self.assertFalse(self.available({"DISPLAY": ":0"}))

    def test_unreadable_proc_version(self):
        missing = Path(self._tmp.name) / "missing"
        self.assertTrue(notifications_available({"DISPLAY": ":0"}, "linux", missing))


class TestBackends(unittest.TestCase):
    """Test notifier backends."""

    def test_tray_notifier(self):
        icon = MagicMock()
        icon.HAS_NOTIFICATION = True
        TrayNotifier(icon).notify("Title", "Body")
        icon.notify.assert_called_once_with("Body", "Title")

    def test_tray_notifier_wraps_errors(self):
        icon = MagicMock()
        icon.HAS_NOTIFICATION = True
        icon.notify.side_effect = RuntimeError("dbus")
        with self.assertRaises(NotificationError):
            TrayNotifier(icon).notify("Title", "Body")

    def test_tray_without_notification_support(self):
        icon = MagicMock()
        icon.HAS_NOTIFICATION = False
        with self.assertRaises(NotificationError):
            TrayNotifier(icon).notify("Title", "Body")
        icon.notify.assert_not_called()

    def test_osascript_command(self):
        with patch("core.notifications.subprocess.run") as run:
            OsascriptNotifier().notify('Say "hi"', "Body")
        args = run.call_args[0][0]
        self.assertEqual(args[:2], ["osascript", "-e"])
        self.assertEqual(args[2], 'display notification "Body" with title "Say \\"hi\\""')

    def test_osascript_failure(self):
        error = subprocess.CalledProcessError(1, "osascript")
        with patch("core.notifications.subprocess.run", side_effect=error):
            with self.assertRaises(NotificationError):
                OsascriptNotifier().notify("Title", "Body")

    def test_applescript_quoting(self):
        self.assertEqual(_applescript_string('a\\b"c'), '"a\\\\b\\"c"')

    def test_create_notifier(self):
        icon = MagicMock()
        with patch("core.notifications.sys.platform", "darwin"):
            self.assertIsInstance(create_notifier(icon), OsascriptNotifier)
        with patch("core.notifications.sys.platform", "linux"):
            self.assertIsInstance(create_notifier(icon), TrayNotifier)
            self.assertIsNone(create_notifier(None))


if __name__ == "__main__":
    unittest.main()
