"""
Entry log and settings store for Work Tracker.

The entry log is a JSON array of {"text", "ts"} records, newest first.
Settings are a flat JSON object merged over config.DEFAULT_SETTINGS.
Both files are rewritten whole, atomically, on every change.
"""

import logging
import math
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import config
from storage.atomic import read_json_safe, write_json_atomic
from storage.errors import ValidationError

logger = logging.getLogger(__name__)

Entry = Dict[str, str]

# Settings that must be integers >= 1
_POSITIVE_INT_SETTINGS = ("ask_interval_minutes", "backup_keep_days")
_BOOL_SETTINGS = ("ask_enabled", "skip_next", "notifications_enabled")


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """Format a UTC timestamp like 2024-01-01T12:00:00.000Z."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def is_entry(record: Any) -> bool:
    """Check that a record is a stored entry: non-blank text and an ISO timestamp."""
    if not isinstance(record, dict):
        return False
    text, ts = record.get("text"), record.get("ts")
    if not isinstance(text, str) or not text.strip() or not isinstance(ts, str):
        return False
    try:
        datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


def normalise_config(stored: Any) -> Dict[str, Any]:
    """
    Materialize a full settings dict from whatever was stored.

    Defaults fill missing keys, stored values win, unknown keys are kept.
    Values of the wrong type fall back to their default and numeric
    settings are clamped to at least 1.
    """
    cfg = dict(config.DEFAULT_SETTINGS)
    if isinstance(stored, dict):
        cfg.update(stored)
    elif stored is not None:
        logger.warning(f"Ignoring settings of unexpected type {type(stored).__name__}")

    for key in _BOOL_SETTINGS:
        if not isinstance(cfg[key], bool):
            logger.warning(f"Invalid value for {key}: {cfg[key]!r}. Using default.")
            cfg[key] = config.DEFAULT_SETTINGS[key]

    for key in _POSITIVE_INT_SETTINGS:
        value = cfg[key]
        if (isinstance(value, bool) or not isinstance(value, (int, float))
                or not math.isfinite(value)):
            logger.warning(f"Invalid value for {key}: {value!r}. Using default.")
            value = config.DEFAULT_SETTINGS[key]
        cfg[key] = max(1, int(value))

    return cfg


class EntryStore:
    """
    Reads and writes the entry log and the settings file.

    Keeps an in-memory count of entries saved since the last backup and
    calls on_backup_due when it reaches backup_threshold.
    """

    def __init__(
        self,
        data_file: Path = config.DATA_FILE,
        config_file: Path = config.CONFIG_FILE,
        backup_threshold: int = config.BACKUP_EVERY_N_WRITES,
        on_backup_due: Optional[Callable[[], Any]] = None,
    ):
        """
        Initialize the store.

        Args:
            data_file: Path to the entry log JSON file.
            config_file: Path to the settings JSON file.
            backup_threshold: Saved entries between automatic backups.
            on_backup_due: Called when the threshold is reached.
        """
        self.data_file = Path(data_file)
        self.config_file = Path(config_file)
        self.backup_threshold = max(1, backup_threshold)
        self.on_backup_due = on_backup_due
        self.unsaved_writes = 0
        # Serializes read-modify-write cycles across the Tk, tray and timer threads
        self._write_lock = threading.RLock()

    def ensure_files(self) -> None:
        """Create an empty log and default settings on first run."""
        with self._write_lock:
            if not self.data_file.exists():
                logger.info(f"Creating empty entry log at {self.data_file}")
                write_json_atomic(self.data_file, [])
            if not self.config_file.exists():
                logger.info(f"Creating default settings at {self.config_file}")
                write_json_atomic(self.config_file, dict(config.DEFAULT_SETTINGS))

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def _load_entries(self) -> List[Entry]:
        data = read_json_safe(self.data_file, [])
        if not isinstance(data, list):
            logger.warning(f"Entry log {self.data_file} is not a list. Treating as empty.")
            return []
        entries = []
        for index, record in enumerate(data):
            if is_entry(record):
                entries.append(record)
            else:
                logger.warning(f"Skipping malformed record {index} in {self.data_file}: {record!r}")
        return entries

    def read_entries(self, limit: Optional[int] = config.DEFAULT_READ_LIMIT) -> List[Entry]:
        """
        Get entries, newest first.

        Args:
            limit: Maximum number of entries, or None for all of them.

        Returns:
            List of entries. Empty if the log is missing or unreadable.
        """
        entries = self._load_entries()
        if limit is None:
            return entries
        return entries[:max(0, limit)]

    def search_entries(self, query: str, limit: Optional[int] = config.DEFAULT_READ_LIMIT) -> List[Entry]:
        """Case-insensitive substring search over entry text, newest first."""
        needle = (query or "").strip().lower()
        if not needle:
            return self.read_entries(limit)
        matches = [e for e in self._load_entries()
                   if needle in str(e.get("text", "")).lower()]
        return matches if limit is None else matches[:max(0, limit)]

    def save_entry(self, text: str) -> Entry:
        """
        Prepend a new entry and rewrite the log.

        Args:
            text: Free text; surrounding whitespace is trimmed.

        Returns:
            The stored entry.

        Raises:
            ValidationError: If text is empty after trimming.
            StorageError: If the log couldn't be written.
        """
        text = (text or "").strip()
        if not text:
            raise ValidationError("Entry text is empty")

        with self._write_lock:
            entry = {"text": text, "ts": utc_timestamp()}
            entries = self._load_entries()
            entries.insert(0, entry)
            write_json_atomic(self.data_file, entries)
            logger.debug(f"Saved entry ({len(entries)} total)")

            self.unsaved_writes += 1
            backup_due = self.unsaved_writes >= self.backup_threshold
            if backup_due:
                self.unsaved_writes = 0

        if backup_due:
            self._trigger_backup()

        return entry

    def _trigger_backup(self) -> None:
        if self.on_backup_due is None:
            return
        logger.info(f"{self.backup_threshold} entries since last backup, backing up")
        try:
            self.on_backup_due()
        except Exception as e:
            logger.error(f"Automatic backup failed: {e}")

    def replace_entries(self, entries: List[Entry]) -> None:
        """
        Overwrite the whole log.

        Raises:
            StorageError: If the log couldn't be written.
        """
        with self._write_lock:
            write_json_atomic(self.data_file, list(entries))
        logger.info(f"Entry log replaced ({len(entries)} entries)")

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def read_config(self) -> Dict[str, Any]:
        """Get the full settings dict (defaults merged with stored values)."""
        return normalise_config(read_json_safe(self.config_file, None))

    def write_config(self, partial: Dict[str, Any]) -> Dict[str, Any]:
        """
        Shallow-merge partial over the stored settings and persist the result.

        Returns:
            The full merged settings.

        Raises:
            StorageError: If the settings file couldn't be written.
        """
        with self._write_lock:
            cfg = self.read_config()
            cfg.update(partial or {})
            cfg = normalise_config(cfg)
            write_json_atomic(self.config_file, cfg)
        logger.debug(f"Settings saved: {cfg}")
        return cfg

    def reset_config(self) -> Dict[str, Any]:
        """Restore user-facing settings to their defaults."""
        return self.write_config(
            {key: config.DEFAULT_SETTINGS[key] for key in config.RESETTABLE_SETTINGS}
        )

    def take_skip_next(self) -> bool:
        """Read and clear the one-shot skip flag in a single step."""
        with self._write_lock:
            if not self.read_config()["skip_next"]:
                return False
            self.write_config({"skip_next": False})
        return True
