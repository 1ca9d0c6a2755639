"""Configuration settings for Work Tracker."""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv

APP_NAME = "WorkTracker"


def is_bundled() -> bool:
    """
    Check if the application is running from a PyInstaller bundle.

    Returns:
        True if running from a bundled executable, False otherwise.
    """
    return getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS')


def get_base_dir() -> Path:
    """
    Get the directory the application lives in.

    For development: the directory containing this file.
    For bundled apps: the directory holding the executable, so backups
                      can sit alongside the app like in development.

    Returns:
        Path to the base directory.
    """
    if is_bundled():
        return Path(sys.executable).resolve().parent
    return Path(__file__).parent


def get_user_data_dir() -> Path:
    """
    Get the directory for user-writable data (entry log, settings, log file).

    WORK_TRACKER_DATA_DIR overrides the platform default, which is useful
    for tests and portable installs.

    Returns:
        Path to the user data directory.
    """
    override = os.getenv("WORK_TRACKER_DATA_DIR", "")
    if override:
        return Path(override).expanduser()

    if sys.platform == 'darwin':
        # macOS: ~/Library/Application Support/WorkTracker
        return Path.home() / "Library" / "Application Support" / APP_NAME
    elif sys.platform == 'win32':
        appdata = os.environ.get('APPDATA')
        if appdata:
            return Path(appdata) / APP_NAME
        return Path.home() / "AppData" / "Roaming" / APP_NAME
    else:
        # Linux: $XDG_DATA_HOME/WorkTracker or ~/.local/share/WorkTracker
        xdg = os.environ.get('XDG_DATA_HOME')
        base = Path(xdg) if xdg else Path.home() / ".local" / "share"
        return base / APP_NAME


# Load environment variables from .env file (only in development)
if not is_bundled():
    # Explicitly load from the project root so the working directory doesn't matter
    _env_path = Path(__file__).parent / ".env"
    load_dotenv(_env_path)


def _env_number(name: str, default, cast=int):
    """Read a number from the environment, falling back to default on junk."""
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


# Base directory (where the app itself lives)
BASE_DIR = get_base_dir()

# User data directory (entry log, settings, log file)
USER_DATA_DIR = get_user_data_dir()

# Persisted files
DATA_FILE = USER_DATA_DIR / "data.json"
CONFIG_FILE = USER_DATA_DIR / "config.json"
LOG_FILE = USER_DATA_DIR / "work-tracker.log"

# Backup locations, in order of preference (chosen once at startup)
APP_BACKUP_DIR = BASE_DIR / "backups"
USERDATA_BACKUP_DIR = USER_DATA_DIR / "backups"

# Backup file naming: one file per UTC calendar day
BACKUP_PREFIX = "data-"
BACKUP_SUFFIX = ".json"
BACKUP_FORMAT_VERSION = 1

# A backup is taken after this many saved entries (plus on shutdown)
BACKUP_EVERY_N_WRITES = 20

# Default number of entries returned to the UI
DEFAULT_READ_LIMIT = 200

# User settings (persisted in CONFIG_FILE). Stored values win over these.
DEFAULT_SETTINGS = {
    "ask_enabled": True,
    "skip_next": False,
    "ask_interval_minutes": 15,
    "notifications_enabled": True,
    "backup_keep_days": 10,
}

# Settings restored by "Reset settings" (skip_next is runtime state, not a preference)
RESETTABLE_SETTINGS = ("ask_enabled", "ask_interval_minutes",
                       "notifications_enabled", "backup_keep_days")

# Scheduler
MIN_INTERVAL_MINUTES = 1
FIRST_PROMPT_DELAY_SECONDS = 0.3  # Prompt shortly after launch

# Bringing the window to the front is flaky on some window managers,
# so activation is retried with exponential backoff
FOREGROUND_RETRIES = _env_number("WORK_TRACKER_FOREGROUND_RETRIES", 3)
FOREGROUND_BACKOFF_SECONDS = _env_number("WORK_TRACKER_FOREGROUND_BACKOFF", 0.5, float)
FOREGROUND_BACKOFF_FACTOR = 2.0

# Notifications
DISABLE_NOTIFICATIONS_ENV = "WORK_TRACKER_DISABLE_NOTIFICATIONS"
PROMPT_TITLE = "What are you working on?"
PROMPT_MESSAGE = "Log your activity in the Work Tracker window."
SETTINGS_SAVED_TITLE = "Work Tracker settings saved"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # Can override in .env: DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Ensure the user data directory exists
try:
    USER_DATA_DIR.mkdir(parents=True, exist_ok=True)
except Exception as e:
    import logging
    logging.getLogger(__name__).error(f"Failed to create data directory {USER_DATA_DIR}: {e}")
