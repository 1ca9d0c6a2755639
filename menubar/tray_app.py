"""
Work Tracker system tray icon using pystray.

Runs next to the Tk window on its own thread. Menu callbacks arrive on the
tray thread: store and backup calls run there directly, anything touching
widgets goes through gui.call_soon().
"""

import logging
import threading
from typing import Optional

import pystray
from PIL import Image, ImageDraw

import config

logger = logging.getLogger(__name__)

_ASSETS_DIR = config.BASE_DIR / "assets"
_ICON_PATH = _ASSETS_DIR / "tray_icon.png"


def _load_icon_image() -> Image.Image:
    """Load the tray icon image, or draw a simple clock face."""
    if _ICON_PATH.exists():
        return Image.open(str(_ICON_PATH))
    image = Image.new("RGBA", (64, 64), (0, 0, 0, 0))
    draw = ImageDraw.Draw(image)
    draw.ellipse((4, 4, 60, 60), fill=(44, 62, 80, 255))
    draw.line((32, 32, 32, 14), fill=(255, 255, 255, 255), width=5)
    draw.line((32, 32, 46, 38), fill=(255, 255, 255, 255), width=5)
    return image


class WorkTrackerTray:
    """System tray icon and menu for a running WorkTrackerGUI."""

    def __init__(self, gui) -> None:
        """
        Args:
            gui: The WorkTrackerGUI whose session the menu drives.
        """
        self.gui = gui
        self.session = gui.session
        self.icon = pystray.Icon(
            name="WorkTracker",
            icon=_load_icon_image(),
            title="Work Tracker",
            menu=self._build_menu(),
        )
        self._thread: Optional[threading.Thread] = None

    def _build_menu(self) -> pystray.Menu:
        return pystray.Menu(
            pystray.MenuItem("Open Work Tracker", self._open, default=True),
            pystray.MenuItem("Log Activity Now", self._log_now),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Skip Next Prompt", self._skip_next),
            pystray.MenuItem(
                "Ask Periodically",
                self._toggle_ask,
                checked=lambda item: self._ask_enabled(),
            ),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Backup Now", self._backup_now),
            pystray.MenuItem("Open Backup Folder", self._open_backup_folder),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Quit Work Tracker", self._quit_app),
        )

    def _ask_enabled(self) -> bool:
        return bool(self.session.get_config()["ask_enabled"])

    # ------------------------------------------------------------------
    # Menu actions (tray thread)
    # ------------------------------------------------------------------

    def _open(self, icon, item) -> None:
        self.gui.activate()

    def _log_now(self, icon, item) -> None:
        self.gui.activate()
        self.gui.open_prompt()

    def _skip_next(self, icon, item) -> None:
        try:
            self.session.skip_next()
            self.icon.notify("The next prompt will be skipped.", "Work Tracker")
        except Exception as e:
            logger.error(f"Skip from tray failed: {e}")
            self.icon.notify(str(e), "Work Tracker Error")

    def _toggle_ask(self, icon, item) -> None:
        enabled = not self._ask_enabled()
        self.gui.call_soon(lambda: self.gui.apply_settings({"ask_enabled": enabled}))

    def _backup_now(self, icon, item) -> None:
        result = self.session.create_backup()
        if result["success"]:
            self.icon.notify(f"Backup saved: {result['path'].name}", "Work Tracker")
            self.gui.call_soon(self.gui.refresh_backup_info)
        else:
            self.icon.notify(f"Backup failed: {result['error']}", "Work Tracker Error")

    def _open_backup_folder(self, icon, item) -> None:
        result = self.session.open_backup_folder()
        if not result["success"]:
            self.icon.notify(f"Could not open folder: {result['error']}", "Work Tracker Error")

    def _quit_app(self, icon, item) -> None:
        """Quit the whole application from the Tk thread."""
        self.gui.call_soon(self.gui.quit)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Run the icon loop on a daemon thread."""
        self._thread = threading.Thread(target=self.icon.run, name="tray", daemon=True)
        self._thread.start()
        logger.debug("Tray icon started")

    def stop(self) -> None:
        """Remove the icon. Safe to call more than once."""
        try:
            self.icon.stop()
        except Exception as e:
            logger.debug(f"Tray stop: {e}")
