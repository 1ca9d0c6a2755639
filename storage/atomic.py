"""
Whole-file JSON persistence helpers.

Writes go to a temp file in the target's directory and are then renamed
over the target, so readers never observe a half-written file. A crash
mid-write can leave an orphaned temp file behind, never a corrupt target.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from storage.errors import MalformedDataError, StorageError

logger = logging.getLogger(__name__)


def write_json_atomic(path: Path, data: Any) -> None:
    """
    Serialize data to path atomically (2-space indented, UTF-8).

    Args:
        path: Target file. Its parent directory is created if needed.
        data: JSON-serializable value.

    Raises:
        StorageError: If data isn't serializable or the temp file can't
            be written or renamed.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)

        temp_fd, temp_path = tempfile.mkstemp(
            suffix='.tmp',
            prefix=f'{path.stem}_',
            dir=path.parent
        )

        try:
            with os.fdopen(temp_fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())

            # os.replace is atomic on POSIX and overwrites on Windows
            os.replace(temp_path, path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    except (IOError, OSError, TypeError, ValueError) as e:
        # TypeError/ValueError: data is not JSON-serializable
        logger.error(f"Failed to write {path}: {e}")
        raise StorageError(f"Failed to write {path}: {e}") from e


def load_json(path: Path) -> Any:
    """
    Read and parse a JSON file.

    An empty file parses as None.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        MalformedDataError: If the content isn't valid UTF-8 JSON.
        OSError: If the file can't be read.
    """
    with open(path, 'r', encoding='utf-8') as f:
        try:
            raw = f.read()
        except UnicodeDecodeError as e:
            raise MalformedDataError(f"{path} is not valid UTF-8: {e}") from e

    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedDataError(f"{path} is not valid JSON: {e}") from e


def read_json_safe(path: Path, fallback: Any = None) -> Any:
    """
    Read a JSON file, substituting fallback for anything unusable.

    Missing, unreadable, empty or malformed files all yield fallback.
    Never raises.
    """
    path = Path(path)
    if not path.exists():
        return fallback

    try:
        data = load_json(path)
    except MalformedDataError as e:
        logger.warning(f"{e}. Using default value.")
        return fallback
    except (IOError, OSError) as e:
        logger.warning(f"Failed to read {path}: {e}. Using default value.")
        return fallback

    return fallback if data is None else data
