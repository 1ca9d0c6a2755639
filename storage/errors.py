"""Error types raised by the Work Tracker storage layer."""


class WorkTrackerError(Exception):
    """Base class for all Work Tracker errors."""


class ValidationError(WorkTrackerError, ValueError):
    """Entry text is empty after trimming. Nothing was persisted."""


class StorageError(WorkTrackerError, OSError):
    """A file could not be written or renamed into place."""


class MalformedDataError(WorkTrackerError, ValueError):
    """A persisted file exists but does not hold valid JSON."""


class RestoreFormatError(WorkTrackerError, ValueError):
    """A backup file has no recognizable entries array."""
