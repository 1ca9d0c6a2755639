"""
AppSession: the runtime context of one Work Tracker process.

Owns the store, the backup manager and the prompt scheduler, and holds the
state that would otherwise be module globals (attached UI, timer, write
counter, backup directory). UIs (GUI, tray, terminal) only talk to the
core through the boundary methods below.
"""

import logging
import os
import subprocess
import sys
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import config
from core.notifications import notifications_available
from core.scheduler import PromptScheduler
from storage.backups import BackupManager, select_backup_dir
from storage.errors import StorageError
from storage.store import EntryStore

logger = logging.getLogger(__name__)


class AppSession:
    """Explicit application context with start/shutdown and UI-facing operations."""

    def __init__(
        self,
        data_file: Path = config.DATA_FILE,
        config_file: Path = config.CONFIG_FILE,
        backup_dir: Optional[Path] = None,
        user_data_dir: Path = config.USER_DATA_DIR,
        ui: Any = None,
        notifier: Any = None,
        availability: Callable[[], bool] = notifications_available,
        timer_factory: Callable[..., Any] = threading.Timer,
    ):
        """
        Build the session. Nothing runs until start().

        Args:
            data_file: Entry log path.
            config_file: Settings path.
            backup_dir: Backup directory; selected via select_backup_dir() if None.
            user_data_dir: Directory reported by get_userdata_path().
            ui: UI collaborator for the scheduler.
            notifier: Notification backend.
            availability: Notification availability check.
            timer_factory: threading.Timer-compatible factory.
        """
        self.user_data_dir = Path(user_data_dir)
        self.store = EntryStore(data_file, config_file)
        self.backup_dir = Path(backup_dir) if backup_dir else select_backup_dir()
        self.backups = BackupManager(self.store, self.backup_dir)
        self.store.on_backup_due = self.backups.create_backup
        self.availability = availability
        self.scheduler = PromptScheduler(
            self.store,
            ui=ui,
            notifier=notifier,
            availability=availability,
            timer_factory=timer_factory,
        )
        self.started = False
        self._shutdown_done = False
        logger.debug(f"Backups go to {self.backup_dir}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach_ui(self, ui: Any) -> None:
        """Set the UI that prompts are surfaced in."""
        self.scheduler.attach_ui(ui)

    def attach_notifier(self, notifier: Any) -> None:
        """Set the native notification backend."""
        self.scheduler.attach_notifier(notifier)

    def start(self, prompt_now: bool = True) -> None:
        """Create missing files and start prompting."""
        try:
            self.store.ensure_files()
        except StorageError as e:
            # Reads fall back to defaults, so keep going
            logger.error(f"Could not initialise data files: {e}")
        self.scheduler.start(prompt_now=prompt_now)
        self.started = True
        self._shutdown_done = False

    def shutdown(self) -> None:
        """
        Stop prompting and take a final backup.

        Idempotent. A failing backup is logged, never retried.
        """
        if self._shutdown_done:
            return
        self._shutdown_done = True
        self.scheduler.stop()

        result = self.backups.create_backup()
        if not result["success"]:
            logger.error(f"Backup on quit failed: {result['error']}")
        self.started = False

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def read_entries(self, limit: Optional[int] = config.DEFAULT_READ_LIMIT) -> List[Dict[str, str]]:
        """Get entries, newest first."""
        return self.store.read_entries(limit)

    def search_entries(self, query: str, limit: Optional[int] = config.DEFAULT_READ_LIMIT) -> List[Dict[str, str]]:
        """Get entries whose text contains query (case-insensitive)."""
        return self.store.search_entries(query, limit)

    def save_entry(self, text: str) -> List[Dict[str, str]]:
        """
        Save an entry and return the refreshed list.

        Raises:
            ValidationError: If text is blank.
            StorageError: If the log couldn't be written.
        """
        self.store.save_entry(text)
        return self.read_entries()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_config(self) -> Dict[str, Any]:
        """Get the full settings."""
        return self.store.read_config()

    def set_config(self, partial: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge partial into the settings.

        Restarts the prompt timer when the interval changes.

        Raises:
            StorageError: If the settings couldn't be written.
        """
        old = self.store.read_config()
        cfg = self.store.write_config(partial)
        if cfg["ask_interval_minutes"] != old["ask_interval_minutes"]:
            self.scheduler.reconfigure(cfg["ask_interval_minutes"])
        self._notify_settings_saved(cfg)
        return cfg

    def reset_config(self) -> Dict[str, Any]:
        """Restore default settings (restarting the timer if needed)."""
        old = self.store.read_config()
        cfg = self.store.reset_config()
        if cfg["ask_interval_minutes"] != old["ask_interval_minutes"]:
            self.scheduler.reconfigure(cfg["ask_interval_minutes"])
        return cfg

    def _notify_settings_saved(self, cfg: Dict[str, Any]) -> None:
        notifier = self.scheduler.notifier
        if notifier is None or not cfg["notifications_enabled"]:
            return
        try:
            if not self.availability():
                return
            notifier.notify(
                config.SETTINGS_SAVED_TITLE,
                f"Next prompt in {cfg['ask_interval_minutes']} minute(s)",
            )
        except Exception as e:
            logger.debug(f"Settings notification failed: {e}")

    def skip_next(self) -> Dict[str, Any]:
        """Suppress the next scheduled prompt."""
        return self.scheduler.skip_next()

    def request_prompt(self) -> None:
        """Surface the prompt right now, outside the schedule."""
        self.scheduler.prompt_now()

    def get_next_prompt_info(self) -> Dict[str, Any]:
        """Get the countdown to the next prompt."""
        return self.scheduler.get_next_prompt_info()

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def create_backup(self) -> Dict[str, Any]:
        """Write today's backup now."""
        return self.backups.create_backup()

    def get_backup_path(self) -> Path:
        """Get the directory backups are written to."""
        return self.backup_dir

    def get_userdata_path(self) -> Path:
        """Get the user data directory."""
        return self.user_data_dir

    def open_backup_folder(self) -> Dict[str, Any]:
        """
        Open the backup directory in the platform file manager.

        Returns:
            {"success": True, "path": Path} or {"success": False, "error": str}
        """
        folder = self.backup_dir
        try:
            folder.mkdir(parents=True, exist_ok=True)
            if sys.platform == "win32":
                os.startfile(str(folder))
            elif sys.platform == "darwin":
                subprocess.Popen(["open", str(folder)])
            else:
                subprocess.Popen(["xdg-open", str(folder)],
                                 stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except (OSError, subprocess.SubprocessError) as e:
            logger.error(f"Failed to open backup folder {folder}: {e}")
            return {"success": False, "error": str(e)}
        return {"success": True, "path": folder}

    def restore_from_file(self, path: Path) -> Dict[str, Any]:
        """
        Replace the entry log with a backup file chosen by the user.

        Returns:
            {"success": True, "restored": int} or
            {"success": False, "error": str, "error_type": str}
        """
        return self.backups.restore_from_backup(path)
