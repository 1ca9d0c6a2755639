"""
System tray package for Work Tracker.

The tray runs beside the Tk main loop on Windows and Linux. On macOS the
status item must own the main thread, so the window and native
notifications are used instead.
"""

import sys
import logging

logger = logging.getLogger(__name__)


def start_tray(gui):
    """
    Start the tray icon for a GUI window.

    Returns:
        The running WorkTrackerTray, or None if there is no tray on this
        platform or it failed to start.
    """
    if sys.platform == "darwin":
        logger.info("Tray icon is not used on macOS")
        return None
    try:
        # pystray picks its backend at import time and fails without a display
        from menubar.tray_app import WorkTrackerTray
        tray = WorkTrackerTray(gui)
        tray.start()
    except Exception as e:
        logger.warning(f"System tray unavailable: {e}")
        return None
    return tray
