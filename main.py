#!/usr/bin/env python3
"""
Work Tracker - Main Entry Point

A small desktop app that asks "What are you working on?" every few
minutes and keeps the answers in a local JSON log with daily backups.

Usage:
    python main.py                  # Window + tray icon (default)
    python main.py --cli            # Terminal mode
    python main.py --backup         # Write today's backup and exit
    python main.py --restore FILE   # Replace the log with a backup file
    python main.py --list [N]       # Print the newest N entries
"""

# =============================================================================
# PyInstaller bundled app path fix - MUST BE BEFORE ANY OTHER IMPORTS
# =============================================================================
import os
import sys

if getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS'):
    _bundle_dir = sys._MEIPASS
    os.chdir(_bundle_dir)
    if _bundle_dir not in sys.path:
        sys.path.insert(0, _bundle_dir)

import logging
import argparse
import threading
from pathlib import Path
from typing import List, Optional, TextIO

import config
from instance_lock import check_single_instance, get_existing_pid
from core.app_session import AppSession
from core.notifications import create_notifier
from gui.ui_components import format_countdown, format_entry_time
from storage.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Log to the console and to the log file in the user data directory."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    try:
        handlers.append(logging.FileHandler(config.LOG_FILE, encoding="utf-8"))
    except OSError as e:
        print(f"Could not open log file {config.LOG_FILE}: {e}", file=sys.stderr)

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format=config.LOG_FORMAT,
        handlers=handlers,
    )

    # Suppress noisy third-party library logs
    logging.getLogger("PIL").setLevel(logging.WARNING)


HELP_TEXT = """Commands:
  <text>      save an entry
  /list [N]   show the newest N entries (default 10)
  /skip       skip the next prompt
  /next       time until the next prompt
  /backup     write today's backup now
  /help       show this help
  /quit       exit"""


class WorkTrackerCLI:
    """
    Terminal front end.

    Acts as the scheduler's UI: a due prompt prints the question and the
    next line typed is saved as the answer.
    """

    def __init__(self, session: AppSession, out: Optional[TextIO] = None):
        self.session = session
        self.out = out or sys.stdout
        self._print_lock = threading.Lock()

    # Prompt contract
    def activate(self) -> None:
        pass  # A terminal can't be raised

    def is_focused(self) -> bool:
        return True

    def open_prompt(self) -> None:
        self._say(f"\n🕒 {config.PROMPT_TITLE} (type and press Enter)")

    def _say(self, message: str) -> None:
        with self._print_lock:
            print(message, file=self.out, flush=True)

    def display_welcome(self) -> None:
        """Display welcome message and instructions."""
        interval = self.session.get_config()["ask_interval_minutes"]
        self._say("\n" + "=" * 60)
        self._say("📝 Work Tracker")
        self._say("=" * 60)
        self._say(f"\nYou'll be asked what you're working on every {interval} minute(s).")
        self._say(f"Entries are saved to: {config.DATA_FILE}")
        self._say(f"Backups go to:        {self.session.get_backup_path()}")
        self._say("\n" + HELP_TEXT)
        self._say("=" * 60)

    def handle_line(self, line: str) -> bool:
        """
        Handle one line of input.

        Args:
            line: Raw text typed by the user.

        Returns:
            False when the user asked to quit, True otherwise.
        """
        text = line.strip()
        if not text:
            return True
        if not text.startswith("/"):
            self._save(text)
            return True

        parts = text[1:].split()
        command = parts[0].lower() if parts else ""
        if command in ("quit", "exit", "q"):
            return False
        if command == "list":
            self._list(parts[1] if len(parts) > 1 else None)
        elif command == "skip":
            self._skip()
        elif command == "next":
            self._next()
        elif command == "backup":
            self._backup()
        elif command == "help":
            self._say(HELP_TEXT)
        else:
            self._say(f"❓ Unknown command: /{command} (try /help)")
        return True

    def _save(self, text: str) -> None:
        try:
            self.session.save_entry(text)
        except ValidationError as e:
            self._say(f"❌ {e}")
            return
        except StorageError as e:
            logger.error(f"Failed to save entry: {e}")
            self._say(f"❌ Failed to save: {e}")
            return
        self._say("✓ Saved")

    def _list(self, count: Optional[str]) -> None:
        try:
            limit = int(count) if count else 10
        except ValueError:
            self._say(f"❌ Not a number: {count}")
            return
        entries = self.session.read_entries(max(1, limit))
        if not entries:
            self._say("No entries yet.")
            return
        for entry in entries:
            self._say(f"  {format_entry_time(entry['ts'])}  {entry['text']}")

    def _skip(self) -> None:
        try:
            self.session.skip_next()
        except StorageError as e:
            self._say(f"❌ Failed to skip: {e}")
            return
        self._say("⏭  The next prompt will be skipped")

    def _next(self) -> None:
        if not self.session.get_config()["ask_enabled"]:
            self._say("Prompts are turned off.")
            return
        info = self.session.get_next_prompt_info()
        if not info["running"]:
            self._say("The prompt timer isn't running.")
            return
        self._say(f"⏱️  Next prompt in {format_countdown(info['remaining_ms'])}")

    def _backup(self) -> None:
        result = self.session.create_backup()
        if result["success"]:
            self._say(f"✓ Backup saved: {result['path']}")
        else:
            self._say(f"❌ Backup failed: {result['error']}")

    def run(self) -> None:
        """Read lines until /quit or end of input, then shut the session down."""
        self.session.attach_ui(self)
        self.session.attach_notifier(create_notifier())
        self.display_welcome()
        self.session.start()
        try:
            while True:
                try:
                    line = input()
                except EOFError:
                    break
                if not self.handle_line(line):
                    break
        except KeyboardInterrupt:
            pass
        finally:
            self.session.shutdown()
            self._say("\n👋 Goodbye!")


def print_entries(session: AppSession, limit: Optional[int]) -> None:
    """Print the newest entries, one per line."""
    entries = session.read_entries(limit)
    if not entries:
        print("No entries yet.")
        return
    for entry in entries:
        print(f"{format_entry_time(entry['ts'])}  {entry['text']}")


def run_backup(session: AppSession) -> int:
    """Write today's backup. Returns the process exit code."""
    result = session.create_backup()
    if result["success"]:
        print(f"✓ Backup saved: {result['path']}")
        return 0
    print(f"❌ Backup failed: {result['error']}")
    return 1


def run_restore(session: AppSession, path: Path) -> int:
    """Restore the entry log from a backup file. Returns the process exit code."""
    result = session.restore_from_file(path)
    if result["success"]:
        print(f"✓ Restored {result['restored']} entries from {path}")
        return 0
    print(f"❌ Restore failed: {result['error']}")
    return 1


def main_cli() -> None:
    """Run the terminal version of the application."""
    WorkTrackerCLI(AppSession()).run()


def main_gui() -> None:
    """Run the window with a tray icon and native notifications."""
    from gui.app import WorkTrackerGUI
    from menubar import start_tray

    session = AppSession()
    gui = WorkTrackerGUI(session)
    session.attach_ui(gui)

    tray = start_tray(gui)
    gui.tray = tray
    session.attach_notifier(create_notifier(tray.icon if tray else None))
    gui.run()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Work Tracker - periodic 'what are you working on?' log",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                     Launch the window (default)
  python main.py --cli               Launch terminal mode
  python main.py --list 20           Print the newest 20 entries
  python main.py --restore FILE      Restore entries from a backup file
        """
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--cli", action="store_true", help="Run in terminal mode")
    mode.add_argument("--backup", action="store_true", help="Write today's backup and exit")
    mode.add_argument("--restore", metavar="FILE", type=Path,
                      help="Replace all entries with those in a backup file")
    mode.add_argument("--list", metavar="N", type=int, nargs="?", const=10,
                      help="Print the newest N entries (default 10) and exit")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """
    Main entry point - parses arguments and launches the requested mode.

    The window is the default unless another mode is given.
    """
    args = build_parser().parse_args(argv)
    setup_logging()

    # Read-only, safe next to a running instance
    if args.list is not None:
        print_entries(AppSession(), max(1, args.list))
        return

    if not check_single_instance():
        existing_pid = get_existing_pid()
        pid_info = f" (PID: {existing_pid})" if existing_pid else ""
        print(f"\nWork Tracker is already running{pid_info}.")
        print("Only one instance can run at a time.\n")
        sys.exit(1)

    if args.backup:
        sys.exit(run_backup(AppSession()))
    if args.restore is not None:
        sys.exit(run_restore(AppSession(), args.restore))

    try:
        if args.cli:
            main_cli()
        else:
            main_gui()
    except KeyboardInterrupt:
        print("\n\nGoodbye!")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"\nFatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
