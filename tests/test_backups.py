"""Unit tests for daily backups, pruning and restore."""

import json
import os
import sys
import tempfile
import time
import unittest
from datetime import date, datetime, timezone
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from storage.backups import BackupManager, extract_entries, select_backup_dir
from storage.errors import RestoreFormatError
from storage.store import EntryStore


class BackupTestCase(unittest.TestCase):
    """Store plus backup manager over a temporary directory."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.store = EntryStore(self.tmp / "data.json", self.tmp / "config.json")
        self.backup_dir = self.tmp / "backups"
        self.manager = BackupManager(self.store, self.backup_dir)

    def tearDown(self):
        self._tmp.cleanup()

    def make_backup_file(self, day: str, age_seconds: float) -> Path:
        """Write a dated backup file with an mtime age_seconds in the past."""
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        path = self.backup_dir / f"data-{day}.json"
        path.write_text("[]", encoding="utf-8")
        stamp = time.time() - age_seconds
        os.utime(path, (stamp, stamp))
        return path


class TestCreateBackup(BackupTestCase):
    """Test today's backup file."""

    def test_name_is_utc_date(self):
        path = self.manager.backup_path_for(date(2024, 3, 9))
        self.assertEqual(path, self.backup_dir / "data-2024-03-09.json")

    def test_snapshot_of_whole_log(self):
        for text in ("one", "two"):
            self.store.save_entry(text)
        result = self.manager.create_backup()

        self.assertTrue(result["success"])
        today = datetime.now(timezone.utc).date().isoformat()
        self.assertEqual(result["path"].name, f"data-{today}.json")

        payload = json.loads(result["path"].read_text(encoding="utf-8"))
        self.assertEqual([e["text"] for e in payload["entries"]], ["two", "one"])
        self.assertIn("updated_at", payload)

    def test_same_day_overwrites(self):
        self.store.save_entry("one")
        first = self.manager.create_backup()["path"]
        self.store.save_entry("two")
        second = self.manager.create_backup()["path"]

        self.assertEqual(first, second)
        self.assertEqual(len(self.manager.list_backups()), 1)
        payload = json.loads(second.read_text(encoding="utf-8"))
        self.assertEqual(len(payload["entries"]), 2)

    def test_empty_log_backs_up(self):
        result = self.manager.create_backup()
        self.assertTrue(result["success"])
        self.assertEqual(json.loads(result["path"].read_text(encoding="utf-8"))["entries"], [])

    def test_write_failure_reported(self):
        with patch("storage.atomic.os.replace", side_effect=OSError("read-only")):
            result = self.manager.create_backup()
        self.assertFalse(result["success"])
        self.assertIn("read-only", result["error"])

    def test_create_prunes_to_retention(self):
        self.store.write_config({"backup_keep_days": 2})
        for i, day in enumerate(("2024-01-01", "2024-01-02", "2024-01-03")):
            self.make_backup_file(day, age_seconds=3600 * (10 - i))

        result = self.manager.create_backup()

        remaining = self.manager.list_backups()
        self.assertEqual(len(remaining), 2)
        self.assertEqual(remaining[0], result["path"])
        self.assertEqual(remaining[1].name, "data-2024-01-03.json")


class TestPrune(BackupTestCase):
    """Test retention pruning."""

    def test_keeps_newest_by_mtime(self):
        old = self.make_backup_file("2024-01-05", age_seconds=3000)
        newer = self.make_backup_file("2024-01-01", age_seconds=10)
        middle = self.make_backup_file("2024-01-03", age_seconds=500)

        deleted = self.manager.prune_backups(2)

        self.assertEqual(deleted, [old])
        self.assertEqual(self.manager.list_backups(), [newer, middle])

    def test_idempotent(self):
        for i in range(4):
            self.make_backup_file(f"2024-01-0{i + 1}", age_seconds=100 * (4 - i))
        self.manager.prune_backups(2)
        self.assertEqual(self.manager.prune_backups(2), [])
        self.assertEqual(len(self.manager.list_backups()), 2)

    def test_ignores_unrelated_files(self):
        self.make_backup_file("2024-01-01", age_seconds=100)
        self.make_backup_file("2024-01-02", age_seconds=50)
        notes = self.backup_dir / "notes.json"
        notes.write_text("{}", encoding="utf-8")

        self.manager.prune_backups(1)

        self.assertTrue(notes.exists())
        self.assertEqual(len(self.manager.list_backups()), 1)

    def test_delete_failure_does_not_abort(self):
        for i in range(4):
            self.make_backup_file(f"2024-01-0{i + 1}", age_seconds=100 * (4 - i))

        real_unlink = Path.unlink
        calls = []

        def flaky_unlink(path, *args, **kwargs):
            calls.append(path)
            if len(calls) == 1:
                raise PermissionError("locked")
            return real_unlink(path, *args, **kwargs)

        with patch.object(Path, "unlink", flaky_unlink):
            deleted = self.manager.prune_backups(1)

        self.assertEqual(len(calls), 3)
        self.assertEqual(len(deleted), 2)
        self.assertEqual(len(self.manager.list_backups()), 2)

    def test_missing_directory(self):
        self.assertEqual(self.manager.prune_backups(3), [])
        self.assertIsNone(self.manager.last_backup_time())


class TestRestore(BackupTestCase):
    """Test restoring the log from a backup file."""

    def write(self, name: str, content: str) -> Path:
        path = self.tmp / name
        path.write_text(content, encoding="utf-8")
        return path

    def test_restore_envelope(self):
        self.store.save_entry("current")
        path = self.write("backup.json",
                          '{"entries": [{"text": "a", "ts": "2024-01-01T00:00:00Z"}]}')

        result = self.manager.restore_from_backup(path)

        self.assertEqual(result, {"success": True, "restored": 1})
        self.assertEqual(self.store.read_entries(),
                         [{"text": "a", "ts": "2024-01-01T00:00:00Z"}])

    def test_restore_raw_array(self):
        entries = [{"text": "b", "ts": "2024-01-02T00:00:00Z"},
                   {"text": "a", "ts": "2024-01-01T00:00:00Z"}]
        path = self.write("backup.json", json.dumps(entries))
        result = self.manager.restore_from_backup(path)
        self.assertEqual(result["restored"], 2)
        self.assertEqual(self.store.read_entries(), entries)

    def test_restore_own_backup(self):
        self.store.save_entry("one")
        self.store.save_entry("two")
        backup = self.manager.create_backup()["path"]
        self.store.replace_entries([])

        result = self.manager.restore_from_backup(backup)

        self.assertTrue(result["success"])
        self.assertEqual([e["text"] for e in self.store.read_entries()], ["two", "one"])

    def test_restore_empty_array(self):
        self.store.save_entry("current")
        result = self.manager.restore_from_backup(self.write("empty.json", "[]"))
        self.assertEqual(result, {"success": True, "restored": 0})
        self.assertEqual(self.store.read_entries(), [])

    def test_rejects_bad_files_and_keeps_log(self):
        self.store.save_entry("keep me")
        bad_files = {
            "not_json.json": "{oops",
            "no_entries.json": '{"foo": 1}',
            "wrong_shape.json": '[{"text": "a"}]',
            "scalar.json": "42",
            "blank_text.json": '[{"text": "  ", "ts": "2024-01-01T00:00:00Z"}]',
            "bad_timestamp.json": '[{"text": "a", "ts": "yesterday"}]',
        }
        for name, content in bad_files.items():
            with self.subTest(name=name):
                result = self.manager.restore_from_backup(self.write(name, content))
                self.assertFalse(result["success"])
                self.assertEqual(result["error_type"], "format")
                self.assertEqual([e["text"] for e in self.store.read_entries()], ["keep me"])

    def test_rejects_missing_file(self):
        result = self.manager.restore_from_backup(self.tmp / "nope.json")
        self.assertFalse(result["success"])
        self.assertIn("not found", result["error"])

    def test_extract_entries(self):
        entry = {"text": "a", "ts": "2024-01-01T00:00:00Z"}
        self.assertEqual(extract_entries([entry]), [entry])
        self.assertEqual(extract_entries({"updated_at": "x", "entries": [entry]}), [entry])
        with self.assertRaises(RestoreFormatError):
            extract_entries({"entries": "a"})


class TestSelectBackupDir(unittest.TestCase):
    """Test backup directory selection."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_prefers_app_directory(self):
        preferred = self.tmp / "app" / "backups"
        chosen = select_backup_dir(preferred, self.tmp / "user" / "backups")
        self.assertEqual(chosen, preferred)
        self.assertTrue(preferred.is_dir())

    def test_falls_back_when_not_writable(self):
        # A regular file where the directory should be can never be written into
        blocker = self.tmp / "app"
        blocker.write_text("", encoding="utf-8")
        fallback = self.tmp / "user" / "backups"

        chosen = select_backup_dir(blocker / "backups", fallback)

        self.assertEqual(chosen, fallback)
        self.assertTrue(fallback.is_dir())


if __name__ == "__main__":
    unittest.main()
