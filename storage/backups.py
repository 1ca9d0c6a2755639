"""
Daily backups of the entry log.

One file per UTC calendar day (data-YYYY-MM-DD.json), overwritten in place
whenever a backup is taken that day. Old files beyond the retention count
are pruned, newest kept.
"""

import logging
import re
import tempfile
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import config
from storage.atomic import load_json, write_json_atomic
from storage.errors import MalformedDataError, RestoreFormatError, StorageError
from storage.store import EntryStore, is_entry, utc_timestamp

logger = logging.getLogger(__name__)

BACKUP_NAME_PATTERN = re.compile(
    r"^" + re.escape(config.BACKUP_PREFIX) + r"\d{4}-\d{2}-\d{2}" + re.escape(config.BACKUP_SUFFIX) + r"$"
)


def _is_writable_dir(directory: Path) -> bool:
    """Create directory if needed and check a file can be written in it."""
    try:
        directory.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryFile(dir=directory):
            pass
        return True
    except (IOError, OSError) as e:
        logger.debug(f"Backup directory {directory} not writable: {e}")
        return False


def select_backup_dir(preferred: Path = config.APP_BACKUP_DIR,
                      fallback: Path = config.USERDATA_BACKUP_DIR) -> Path:
    """
    Pick where backups go for this session.

    Prefers the directory alongside the application and falls back to the
    user data directory when that one can't be written.
    """
    preferred = Path(preferred)
    fallback = Path(fallback)
    if _is_writable_dir(preferred):
        return preferred
    logger.info(f"Using fallback backup directory {fallback}")
    try:
        fallback.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Failed to create backup directory {fallback}: {e}")
    return fallback


def extract_entries(data: Any) -> List[Dict[str, str]]:
    """
    Pull the entries array out of parsed backup content.

    Accepts a raw array of entries or an envelope with an "entries" array.

    Raises:
        RestoreFormatError: If no entries array is found or a record
            isn't entry-shaped.
    """
    if isinstance(data, dict):
        data = data.get("entries")
    if not isinstance(data, list):
        raise RestoreFormatError("File does not contain an entries array")

    for index, record in enumerate(data):
        if not is_entry(record):
            raise RestoreFormatError(f"Record {index} is not a valid entry")
    return data


class BackupManager:
    """Creates, prunes and restores dated snapshots of the entry log."""

    def __init__(self, store: EntryStore, backup_dir: Path):
        """
        Initialize the backup manager.

        Args:
            store: Store holding the live entry log and settings.
            backup_dir: Directory backups are written to.
        """
        self.store = store
        self.backup_dir = Path(backup_dir)

    def backup_path_for(self, day: date) -> Path:
        """Get the backup file path for a calendar day."""
        return self.backup_dir / f"{config.BACKUP_PREFIX}{day.isoformat()}{config.BACKUP_SUFFIX}"

    def create_backup(self) -> Dict[str, Any]:
        """
        Write today's backup, replacing any earlier one from today, then prune.

        Returns:
            {"success": True, "path": Path} or {"success": False, "error": str}
        """
        today = datetime.now(timezone.utc).date()
        dest = self.backup_path_for(today)
        entries = self.store.read_entries(limit=None)
        payload = {
            "version": config.BACKUP_FORMAT_VERSION,
            "updated_at": utc_timestamp(),
            "entries": entries,
        }

        try:
            write_json_atomic(dest, payload)
        except StorageError as e:
            logger.error(f"Backup failed: {e}")
            return {"success": False, "error": str(e)}

        logger.info(f"Backup written: {dest} ({len(entries)} entries)")
        keep_days = self.store.read_config()["backup_keep_days"]
        self.prune_backups(keep_days)
        return {"success": True, "path": dest}

    def list_backups(self) -> List[Path]:
        """
        Get backup files, newest first (by mtime, then by name).

        Returns an empty list when the directory is missing or unreadable.
        """
        try:
            candidates = [p for p in self.backup_dir.iterdir()
                          if p.is_file() and BACKUP_NAME_PATTERN.match(p.name)]
        except (IOError, OSError) as e:
            logger.warning(f"Failed to list backups in {self.backup_dir}: {e}")
            return []

        stamped = []
        for path in candidates:
            try:
                stamped.append((path.stat().st_mtime, path.name, path))
            except OSError:
                # Deleted between listing and stat
                continue
        stamped.sort(reverse=True)
        return [path for _, _, path in stamped]

    def prune_backups(self, keep_days: int) -> List[Path]:
        """
        Delete every backup beyond the newest keep_days files.

        Best effort: a file that can't be deleted is logged and skipped.

        Returns:
            Paths that were deleted.
        """
        keep_days = max(1, int(keep_days))
        deleted = []
        for path in self.list_backups()[keep_days:]:
            try:
                path.unlink()
                deleted.append(path)
                logger.debug(f"Pruned backup {path.name}")
            except (IOError, OSError) as e:
                logger.warning(f"Failed to prune backup {path}: {e}")
        if deleted:
            logger.info(f"Pruned {len(deleted)} old backup(s)")
        return deleted

    def last_backup_time(self) -> Optional[datetime]:
        """Get the modification time of the newest backup, if any."""
        backups = self.list_backups()
        if not backups:
            return None
        try:
            return datetime.fromtimestamp(backups[0].stat().st_mtime)
        except OSError:
            return None

    def load_backup_entries(self, path: Path) -> List[Dict[str, str]]:
        """
        Read and validate the entries held in a backup file.

        Raises:
            RestoreFormatError: If the file is missing, unreadable, not JSON,
                or has no recognizable entries array.
        """
        path = Path(path)
        if not path.is_file():
            raise RestoreFormatError(f"Backup file not found: {path}")
        try:
            data = load_json(path)
        except MalformedDataError as e:
            raise RestoreFormatError(str(e)) from e
        except (IOError, OSError) as e:
            raise RestoreFormatError(f"Failed to read {path}: {e}") from e
        return extract_entries(data)

    def restore_from_backup(self, path: Path) -> Dict[str, Any]:
        """
        Replace the live entry log with the contents of a backup file.

        The live log is only touched once the backup has been validated.

        Returns:
            {"success": True, "restored": int} or
            {"success": False, "error": str, "error_type": "format" | "io"}
        """
        try:
            entries = self.load_backup_entries(path)
        except RestoreFormatError as e:
            logger.warning(f"Restore rejected: {e}")
            return {"success": False, "error": str(e), "error_type": "format"}

        try:
            self.store.replace_entries(entries)
        except StorageError as e:
            return {"success": False, "error": str(e), "error_type": "io"}

        logger.info(f"Restored {len(entries)} entries from {path}")
        return {"success": True, "restored": len(entries)}
