"""
Instance Lock - keeps a single Work Tracker process per user data directory.

There must be exactly one writer of the entry log, so a second launch
exits instead of racing the first one.

Uses OS file locks, released by the OS when the process dies:
- Unix (macOS/Linux): fcntl.flock()
- Windows: msvcrt.locking()
"""

import atexit
import logging
import os
import sys
from pathlib import Path
from typing import IO, Optional

import config

logger = logging.getLogger(__name__)

LOCK_FILE = config.USER_DATA_DIR / ".work_tracker.lock"

# Bytes locked on Windows (msvcrt needs a non-empty region)
_WIN_LOCK_BYTES = 32


class InstanceLock:
    """
    Cross-platform single-instance lock.

    Usage:
        lock = InstanceLock()
        if not lock.acquire():
            print("Another instance is already running")
            sys.exit(1)
        # ... run application ...
        lock.release()  # Optional - released automatically on exit
    """

    def __init__(self, lock_file: Optional[Path] = None):
        """
        Args:
            lock_file: Path to the lock file (default: LOCK_FILE).
        """
        self.lock_file = Path(lock_file) if lock_file else LOCK_FILE
        self._handle: Optional[IO] = None

    @property
    def acquired(self) -> bool:
        """True while this object holds the lock."""
        return self._handle is not None

    def _lock(self, handle: IO) -> None:
        """Take a non-blocking exclusive lock. Raises OSError if held elsewhere."""
        if sys.platform == 'win32':
            import msvcrt
            handle.seek(0)
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, _WIN_LOCK_BYTES)
        else:
            import fcntl
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)

    def acquire(self) -> bool:
        """
        Try to take the lock and record our PID in the lock file.

        Returns:
            True if acquired, False if another instance holds it or the
            lock file can't be used.
        """
        if self.acquired:
            return True

        try:
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
            # 'a+' so a running instance's PID isn't truncated before we lock
            handle = open(self.lock_file, 'a+')
        except OSError as e:
            logger.error(f"Cannot open lock file {self.lock_file}: {e}")
            return False

        try:
            self._lock(handle)
        except OSError:
            handle.close()
            logger.debug("Instance lock held by another process")
            return False

        try:
            handle.seek(0)
            handle.truncate()
            handle.write(str(os.getpid()).ljust(_WIN_LOCK_BYTES))
            handle.flush()
        except OSError as e:
            # Lock is still ours; the PID is only informational
            logger.debug(f"Could not write PID to lock file: {e}")

        self._handle = handle
        logger.debug(f"Instance lock acquired (PID: {os.getpid()})")
        return True

    def release(self) -> None:
        """Release the lock and remove the lock file. Safe to call twice."""
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            if sys.platform == 'win32':
                import msvcrt
                handle.seek(0)
                msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, _WIN_LOCK_BYTES)
        except OSError as e:
            logger.debug(f"Unlock failed: {e}")
        finally:
            handle.close()

        try:
            self.lock_file.unlink()
        except OSError:
            # Another instance may already have reopened it
            pass
        logger.debug("Instance lock released")

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


_instance_lock: Optional[InstanceLock] = None


def check_single_instance() -> bool:
    """
    Check that this is the only running Work Tracker.

    Call at startup; exit if it returns False. The lock is released
    automatically at exit.
    """
    global _instance_lock

    if _instance_lock is not None:
        return _instance_lock.acquired

    _instance_lock = InstanceLock()
    acquired = _instance_lock.acquire()
    if acquired:
        atexit.register(_instance_lock.release)
    return acquired


def get_existing_pid(lock_file: Optional[Path] = None) -> Optional[int]:
    """
    Read the PID of the running instance from the lock file.

    Returns:
        PID, or None if the file is missing or doesn't hold one.
    """
    try:
        content = Path(lock_file or LOCK_FILE).read_text().strip()
    except OSError:
        return None
    return int(content) if content.isdigit() else None
