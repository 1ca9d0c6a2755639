"""
Persistence package for Work Tracker.

Atomic JSON files for the entry log and settings, plus daily backups.
"""

from storage.errors import (
    WorkTrackerError,
    ValidationError,
    StorageError,
    MalformedDataError,
    RestoreFormatError,
)
from storage.store import EntryStore
from storage.backups import BackupManager, select_backup_dir

__all__ = [
    "WorkTrackerError",
    "ValidationError",
    "StorageError",
    "MalformedDataError",
    "RestoreFormatError",
    "EntryStore",
    "BackupManager",
    "select_backup_dir",
]
