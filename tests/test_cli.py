"""Tests for the terminal front end and command-line entry points in main.py."""

import io
import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.app_session import AppSession
from main import WorkTrackerCLI, build_parser, run_backup, run_restore


class CLITestCase(unittest.TestCase):
    """WorkTrackerCLI over a temporary session, capturing output."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.session = AppSession(
            data_file=self.tmp / "data.json",
            config_file=self.tmp / "config.json",
            backup_dir=self.tmp / "backups",
            user_data_dir=self.tmp,
            timer_factory=MagicMock(),
        )
        self.out = io.StringIO()
        self.cli = WorkTrackerCLI(self.session, out=self.out)

    def tearDown(self):
        self._tmp.cleanup()

    def output(self) -> str:
        return self.out.getvalue()


class TestHandleLine(CLITestCase):
    """Test input handling."""

    def test_plain_text_saves(self):
        self.assertTrue(self.cli.handle_line("  fixing CI  \n"))
        self.assertEqual(self.session.read_entries()[0]["text"], "fixing CI")
        self.assertIn("Saved", self.output())

    def test_blank_line_ignored(self):
        self.assertTrue(self.cli.handle_line("   "))
        self.assertEqual(self.session.read_entries(), [])

    def test_quit(self):
        for command in ("/quit", "/exit", "/q", "/QUIT"):
            self.assertFalse(self.cli.handle_line(command))

    def test_skip(self):
        self.cli.handle_line("/skip")
        self.assertTrue(self.session.get_config()["skip_next"])

    def test_list(self):
        for text in ("a", "b", "c"):
            self.cli.handle_line(text)
        self.cli.handle_line("/list 2")
        lines = self.output().splitlines()
        self.assertTrue(lines[-2].endswith("c"))
        self.assertTrue(lines[-1].endswith("b"))

    def test_list_bad_number(self):
        self.cli.handle_line("/list many")
        self.assertIn("Not a number", self.output())

    def test_backup(self):
        self.cli.handle_line("/backup")
        self.assertEqual(len(self.session.backups.list_backups()), 1)

    def test_next_when_not_running(self):
        self.cli.handle_line("/next")
        self.assertIn("isn't running", self.output())

    def test_unknown_command(self):
        self.assertTrue(self.cli.handle_line("/dance"))
        self.assertIn("Unknown command", self.output())

    def test_open_prompt_prints_question(self):
        self.cli.open_prompt()
        self.assertIn("What are you working on?", self.output())
        self.assertTrue(self.cli.is_focused())


class TestOneShotCommands(CLITestCase):
    """Test --backup / --restore helpers and argument parsing."""

    def test_run_backup(self):
        self.assertEqual(run_backup(self.session), 0)

    def test_run_restore(self):
        path = self.tmp / "restore.json"
        path.write_text(json.dumps([{"text": "x", "ts": "2024-01-01T00:00:00Z"}]), encoding="utf-8")
        self.assertEqual(run_restore(self.session, path), 0)
        self.assertEqual(self.session.read_entries()[0]["text"], "x")

    def test_run_restore_bad_file(self):
        path = self.tmp / "restore.json"
        path.write_text("nope", encoding="utf-8")
        self.assertEqual(run_restore(self.session, path), 1)

    def test_parser(self):
        parser = build_parser()
        self.assertEqual(parser.parse_args(["--list"]).list, 10)
        self.assertEqual(parser.parse_args(["--list", "3"]).list, 3)
        self.assertIsNone(parser.parse_args([]).list)
        self.assertEqual(parser.parse_args(["--restore", "f.json"]).restore, Path("f.json"))
        with self.assertRaises(SystemExit):
            parser.parse_args(["--cli", "--backup"])


if __name__ == "__main__":
    unittest.main()
