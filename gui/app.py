"""
Work Tracker - Desktop GUI

A customtkinter main window (quick entry, recent entries, settings,
backups) plus the "What are you working on?" prompt dialog.

The window is the scheduler's UI collaborator: activate(), is_focused()
and open_prompt() may be called from timer or tray threads, so they only
schedule work on the Tk thread via after().
"""

import logging
import sys
from pathlib import Path
from tkinter import filedialog, messagebox
from typing import Any, Callable, Dict, Optional

import customtkinter as ctk

import config
from core.app_session import AppSession
from gui.ui_components import (
    COLORS,
    Card,
    RoundedButton,
    StyledEntry,
    format_countdown,
    format_entry_time,
    get_ctk_font,
)
from storage.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

RECENT_LIMIT = 8
COUNTDOWN_REFRESH_MS = 1000
ENTRIES_REFRESH_MS = 60_000
TOPMOST_RELEASE_MS = 900


class PromptDialog(ctk.CTkToplevel):
    """The entry prompt: save, save and stop asking, or skip the next prompt."""

    def __init__(self, gui: "WorkTrackerGUI"):
        super().__init__(gui.root)
        self.gui = gui
        self.title("Work Tracker")
        self.geometry("480x260")
        self.resizable(False, False)
        self.configure(fg_color=COLORS["bg"])
        self.protocol("WM_DELETE_WINDOW", self.close)

        ctk.CTkLabel(
            self,
            text=config.PROMPT_TITLE,
            text_color=COLORS["text_primary"],
            font=get_ctk_font("title"),
        ).pack(padx=20, pady=(18, 8), anchor="w")

        self.textbox = ctk.CTkTextbox(
            self,
            height=90,
            corner_radius=12,
            fg_color=COLORS["input_bg"],
            text_color=COLORS["text_primary"],
            font=get_ctk_font("body"),
        )
        self.textbox.pack(fill="x", padx=20)
        # Enter saves, Shift+Enter inserts a newline
        self.textbox.bind("<Return>", self._on_return)

        self.feedback = ctk.CTkLabel(self, text=" ", text_color=COLORS["error"],
                                     font=get_ctk_font("small"), anchor="w")
        self.feedback.pack(fill="x", padx=20, pady=(4, 0))

        buttons = ctk.CTkFrame(self, fg_color="transparent")
        buttons.pack(fill="x", padx=20, pady=(6, 16))
        RoundedButton(buttons, "Save", command=self._save, width=90).pack(side="left")
        RoundedButton(buttons, "Save & stop asking", width=150, secondary=True,
                      command=lambda: self._save(stop_asking=True)).pack(side="left", padx=6)
        RoundedButton(buttons, "Skip next", width=90, secondary=True,
                      command=self._skip).pack(side="left")
        RoundedButton(buttons, "Close", width=70, secondary=True,
                      command=self.close).pack(side="right")

    def _on_return(self, event):
        if event.state & 0x1:  # Shift held
            return None
        self._save()
        return "break"

    def present(self) -> None:
        """Show, raise and focus the dialog, keeping any text typed so far."""
        self.deiconify()
        self.lift()
        self.attributes('-topmost', True)
        self.after(TOPMOST_RELEASE_MS, self._release_topmost)
        self.focus_force()
        self.after(80, self.textbox.focus_set)

    def _release_topmost(self) -> None:
        try:
            self.attributes('-topmost', False)
        except Exception:
            pass  # Dialog already closed

    def _save(self, stop_asking: bool = False) -> None:
        text = self.textbox.get("1.0", "end")
        try:
            self.gui.session.save_entry(text)
        except ValidationError:
            self.feedback.configure(text="Empty - not saved")
            return
        except StorageError as e:
            self.feedback.configure(text=f"Failed to save: {e}")
            return

        message = "Saved"
        if stop_asking:
            if self.gui.apply_settings({"ask_enabled": False}):
                message = "Saved and disabled prompts"
        self.close()
        self.gui.refresh_entries()
        self.gui.show_status(message)

    def _skip(self) -> None:
        try:
            self.gui.session.skip_next()
            self.gui.show_status("Skipped next prompt")
        except StorageError as e:
            self.gui.show_status(f"Failed to skip: {e}", error=True)
        self.close()

    def close(self) -> None:
        self.gui.prompt_closed()
        self.destroy()


class WorkTrackerGUI:
    """
    Main window for Work Tracker.

    Shows a countdown to the next prompt, a quick-entry box, recent entries
    with search, settings, and backup controls.
    """

    def __init__(self, session: AppSession):
        """
        Build the window. Call run() to start the session and main loop.

        Args:
            session: Application session the window drives.
        """
        ctk.set_appearance_mode("light")
        self.session = session
        self.tray: Optional[Any] = None
        self._prompt: Optional[PromptDialog] = None
        self._focused = False
        self._cfg: Dict[str, Any] = session.get_config()

        self.root = ctk.CTk()
        self.root.title("Work Tracker")
        self.root.geometry("900x700")
        self.root.minsize(760, 560)
        self.root.configure(fg_color=COLORS["bg"])

        self._create_widgets()

        self.root.bind("<FocusIn>", self._on_focus_in)
        self.root.bind("<FocusOut>", self._on_focus_out)
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)

    # ------------------------------------------------------------------
    # Prompt contract (safe from any thread)
    # ------------------------------------------------------------------

    def activate(self) -> None:
        """Bring the main window to the front."""
        self.call_soon(self._raise_window)

    def is_focused(self) -> bool:
        return self._focused

    def open_prompt(self) -> None:
        """Show the entry prompt dialog."""
        self.call_soon(self._show_prompt)

    def call_soon(self, callback: Callable[[], Any]) -> None:
        """Run callback on the Tk thread."""
        try:
            self.root.after(0, callback)
        except RuntimeError as e:
            # Main loop already gone (shutting down)
            logger.debug(f"Dropped UI callback: {e}")

    def _raise_window(self) -> None:
        self.root.deiconify()
        self.root.lift()
        self.root.attributes('-topmost', True)
        self.root.after(TOPMOST_RELEASE_MS, lambda: self.root.attributes('-topmost', False))
        self.root.focus_force()

    def _show_prompt(self) -> None:
        if self._prompt is None or not self._prompt.winfo_exists():
            self._prompt = PromptDialog(self)
        self._prompt.present()

    def prompt_closed(self) -> None:
        self._prompt = None

    def _on_focus_in(self, event) -> None:
        self._focused = True

    def _on_focus_out(self, event) -> None:
        self._focused = False

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def _create_widgets(self) -> None:
        header = ctk.CTkFrame(self.root, fg_color="transparent")
        header.pack(fill="x", padx=24, pady=(20, 8))
        ctk.CTkLabel(header, text="Work Tracker", text_color=COLORS["text_primary"],
                     font=get_ctk_font("title")).pack(side="left")
        self.countdown_label = ctk.CTkLabel(header, text="--:--", text_color=COLORS["accent"],
                                            font=get_ctk_font("countdown"))
        self.countdown_label.pack(side="right")
        self.countdown_caption = ctk.CTkLabel(header, text="Next prompt in",
                                              text_color=COLORS["text_secondary"],
                                              font=get_ctk_font("small"))
        self.countdown_caption.pack(side="right", padx=(0, 8))

        body = ctk.CTkFrame(self.root, fg_color="transparent")
        body.pack(fill="both", expand=True, padx=24)
        body.grid_columnconfigure(0, weight=3)
        body.grid_columnconfigure(1, weight=2)
        body.grid_rowconfigure(1, weight=1)

        self._create_quick_entry(body).grid(row=0, column=0, sticky="nsew", padx=(0, 12), pady=(0, 12))
        self._create_entries_list(body).grid(row=1, column=0, sticky="nsew", padx=(0, 12))
        self._create_settings(body).grid(row=0, column=1, sticky="nsew", pady=(0, 12))
        self._create_backups(body).grid(row=1, column=1, sticky="nsew")

        self.status_label = ctk.CTkLabel(self.root, text=" ", anchor="w",
                                         text_color=COLORS["text_secondary"],
                                         font=get_ctk_font("small"))
        self.status_label.pack(fill="x", padx=24, pady=(8, 12))

    def _create_quick_entry(self, parent) -> Card:
        card = Card(parent, title="Log activity")
        self.quick_entry = StyledEntry(card, placeholder="What are you working on?")
        self.quick_entry.pack(fill="x", padx=16)
        self.quick_entry.bind_return(self._quick_save)

        row = ctk.CTkFrame(card, fg_color="transparent")
        row.pack(fill="x", padx=16, pady=(0, 14))
        RoundedButton(row, "Save", command=self._quick_save, width=100).pack(side="left")
        RoundedButton(row, "Open prompt", command=self._show_prompt, width=120,
                      secondary=True).pack(side="left", padx=6)
        RoundedButton(row, "Skip next prompt", command=self._skip_next, width=140,
                      secondary=True).pack(side="left")
        return card

    def _create_entries_list(self, parent) -> Card:
        card = Card(parent, title="Entries")
        self.search_entry = StyledEntry(card, placeholder="Search entries")
        self.search_entry.pack(fill="x", padx=16)
        self.search_entry.entry.bind("<KeyRelease>", lambda event: self.refresh_entries())

        self.entries_box = ctk.CTkTextbox(card, fg_color=COLORS["surface"],
                                          text_color=COLORS["text_primary"],
                                          font=get_ctk_font("body"), wrap="word")
        self.entries_box.pack(fill="both", expand=True, padx=16, pady=(0, 14))
        self.entries_box.configure(state="disabled")
        return card

    def _create_settings(self, parent) -> Card:
        card = Card(parent, title="Settings")
        form = ctk.CTkFrame(card, fg_color="transparent")
        form.pack(fill="x", padx=16)
        form.grid_columnconfigure(1, weight=1)

        ctk.CTkLabel(form, text="Ask every (minutes)", font=get_ctk_font("small"),
                     text_color=COLORS["text_primary"]).grid(row=0, column=0, sticky="w", pady=4)
        self.interval_entry = ctk.CTkEntry(form, width=70, fg_color=COLORS["input_bg"],
                                           border_width=0)
        self.interval_entry.grid(row=0, column=1, sticky="e", pady=4)

        ctk.CTkLabel(form, text="Keep backups (days)", font=get_ctk_font("small"),
                     text_color=COLORS["text_primary"]).grid(row=1, column=0, sticky="w", pady=4)
        self.keep_days_entry = ctk.CTkEntry(form, width=70, fg_color=COLORS["input_bg"],
                                            border_width=0)
        self.keep_days_entry.grid(row=1, column=1, sticky="e", pady=4)

        self.ask_switch = ctk.CTkSwitch(form, text="Ask periodically", font=get_ctk_font("small"))
        self.ask_switch.grid(row=2, column=0, columnspan=2, sticky="w", pady=4)
        self.notif_switch = ctk.CTkSwitch(form, text="Desktop notifications", font=get_ctk_font("small"))
        self.notif_switch.grid(row=3, column=0, columnspan=2, sticky="w", pady=4)

        row = ctk.CTkFrame(card, fg_color="transparent")
        row.pack(fill="x", padx=16, pady=(6, 14))
        RoundedButton(row, "Save settings", command=self._save_settings, width=120).pack(side="left")
        RoundedButton(row, "Reset", command=self._reset_settings, width=80,
                      secondary=True).pack(side="left", padx=6)
        return card

    def _create_backups(self, parent) -> Card:
        card = Card(parent, title="Backups")
        self.backup_location_label = ctk.CTkLabel(card, text=str(self.session.get_backup_path()),
                                                  text_color=COLORS["text_secondary"],
                                                  font=get_ctk_font("caption"), anchor="w",
                                                  wraplength=300, justify="left")
        self.backup_location_label.pack(fill="x", padx=16)
        self.last_backup_label = ctk.CTkLabel(card, text="", text_color=COLORS["text_secondary"],
                                              font=get_ctk_font("caption"), anchor="w")
        self.last_backup_label.pack(fill="x", padx=16, pady=(0, 6))

        for text, command in (("Backup now", self._backup_now),
                              ("Open backup folder", self._open_backup_folder),
                              ("Restore from file...", self._restore)):
            RoundedButton(card, text, command=command, width=180,
                          secondary=text != "Backup now").pack(anchor="w", padx=16, pady=3)
        return card

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def show_status(self, message: str, error: bool = False) -> None:
        self.status_label.configure(text=message,
                                    text_color=COLORS["error"] if error else COLORS["text_secondary"])

    def refresh_entries(self) -> None:
        """Reload the entry list (filtered by the search box)."""
        entries = self.session.search_entries(self.search_entry.get())
        lines = [f"{format_entry_time(e.get('ts', ''))}   {e.get('text', '')}" for e in entries]
        self.entries_box.configure(state="normal")
        self.entries_box.delete("1.0", "end")
        self.entries_box.insert("1.0", "\n".join(lines) if lines else "No entries yet")
        self.entries_box.configure(state="disabled")

    def refresh_settings(self) -> None:
        """Load settings into the form."""
        self._cfg = self.session.get_config()
        self.interval_entry.delete(0, "end")
        self.interval_entry.insert(0, str(self._cfg["ask_interval_minutes"]))
        self.keep_days_entry.delete(0, "end")
        self.keep_days_entry.insert(0, str(self._cfg["backup_keep_days"]))
        (self.ask_switch.select if self._cfg["ask_enabled"] else self.ask_switch.deselect)()
        (self.notif_switch.select if self._cfg["notifications_enabled"] else self.notif_switch.deselect)()

    def refresh_backup_info(self) -> None:
        last = self.session.backups.last_backup_time()
        self.last_backup_label.configure(
            text=f"Last backup: {last:%Y-%m-%d %H:%M}" if last else "No backups yet"
        )

    def _tick(self) -> None:
        """Update the countdown once a second."""
        if not self._cfg["ask_enabled"]:
            self.countdown_caption.configure(text="Prompts are off")
            self.countdown_label.configure(text="--:--")
        else:
            info = self.session.get_next_prompt_info()
            self.countdown_caption.configure(text="Next prompt in")
            self.countdown_label.configure(
                text=format_countdown(info["remaining_ms"]) if info["running"] else "--:--"
            )
        self.root.after(COUNTDOWN_REFRESH_MS, self._tick)

    def _periodic_refresh(self) -> None:
        self.refresh_entries()
        self.root.after(ENTRIES_REFRESH_MS, self._periodic_refresh)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _quick_save(self) -> None:
        try:
            self.session.save_entry(self.quick_entry.get())
        except ValidationError:
            self.quick_entry.show_error("Type something first")
            return
        except StorageError as e:
            self.quick_entry.show_error(f"Save failed: {e}")
            return
        self.quick_entry.set("")
        self.quick_entry.show_success("Saved")
        self.refresh_entries()

    def _skip_next(self) -> None:
        try:
            self.session.skip_next()
            self.show_status("Next prompt will be skipped")
        except StorageError as e:
            self.show_status(f"Failed to skip: {e}", error=True)

    def apply_settings(self, partial: Dict[str, Any]) -> bool:
        """Persist settings and refresh the form. Returns False on failure."""
        try:
            self.session.set_config(partial)
        except StorageError as e:
            self.show_status(f"Save failed: {e}", error=True)
            return False
        self.refresh_settings()
        return True

    def _save_settings(self) -> None:
        try:
            interval = int(self.interval_entry.get())
            keep_days = int(self.keep_days_entry.get())
        except ValueError:
            self.show_status("Interval and backup days must be whole numbers", error=True)
            return
        partial = {
            "ask_interval_minutes": max(1, interval),
            "backup_keep_days": max(1, keep_days),
            "ask_enabled": bool(self.ask_switch.get()),
            "notifications_enabled": bool(self.notif_switch.get()),
        }
        if self.apply_settings(partial):
            self.show_status("Settings saved")

    def _reset_settings(self) -> None:
        try:
            self.session.reset_config()
        except StorageError as e:
            self.show_status(f"Reset failed: {e}", error=True)
            return
        self.refresh_settings()
        self.show_status("Settings reset")

    def _backup_now(self) -> None:
        result = self.session.create_backup()
        if result["success"]:
            self.show_status(f"Backup updated: {result['path'].name}")
        else:
            self.show_status(f"Backup failed: {result['error']}", error=True)
        self.refresh_backup_info()

    def _open_backup_folder(self) -> None:
        result = self.session.open_backup_folder()
        if not result["success"]:
            self.show_status(f"Could not open folder: {result['error']}", error=True)

    def _restore(self) -> None:
        filename = filedialog.askopenfilename(
            parent=self.root,
            title="Restore entries from backup",
            initialdir=str(self.session.get_backup_path()),
            filetypes=[("JSON files", "*.json"), ("All files", "*")],
        )
        if not filename:
            return
        if not messagebox.askyesno(
            "Restore backup",
            "This replaces all current entries with the backup's entries. Continue?",
            parent=self.root,
        ):
            return

        result = self.session.restore_from_file(Path(filename))
        if result["success"]:
            self.refresh_entries()
            self.show_status(f"Restored {result['restored']} entries")
        else:
            messagebox.showerror("Restore failed", result["error"], parent=self.root)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _on_close(self) -> None:
        """Hide to the tray when there is one, otherwise quit."""
        if self.tray is not None and sys.platform != "darwin":
            self.root.withdraw()
            self.show_status("Still running in the tray")
        else:
            self.quit()

    def quit(self) -> None:
        """Stop prompting, take the final backup and close everything."""
        self.session.shutdown()
        if self.tray is not None:
            self.tray.stop()
        self.root.destroy()

    def run(self) -> None:
        """Start the session and enter the Tk main loop."""
        self.refresh_settings()
        self.refresh_entries()
        self.refresh_backup_info()
        self.session.start()
        self._tick()
        self.root.after(ENTRIES_REFRESH_MS, self._periodic_refresh)
        self._raise_window()
        try:
            self.root.mainloop()
        finally:
            # Window closed by the OS rather than quit()
            self.session.shutdown()
