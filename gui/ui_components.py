"""
Work Tracker UI Components - CustomTkinter Edition

Palette, fonts and small reusable widgets shared by the main window and
the prompt dialog.
"""
import sys
import logging
from datetime import datetime
from typing import Callable, Optional
import customtkinter as ctk
from customtkinter import CTkFont

logger = logging.getLogger(__name__)


COLORS = {
    "bg": "#F9F8F4",           # Warm Cream
    "surface": "#FFFFFF",       # White Cards
    "text_primary": "#1C1C1E",
    "text_secondary": "#8E8E93",
    "accent": "#2C3E50",
    "button_bg": "#1C1C1E",     # Black for primary actions
    "button_bg_hover": "#333333",
    "button_text": "#FFFFFF",
    "button_secondary": "#E5E5EA",
    "button_secondary_hover": "#D1D1D6",
    "border": "#E5E5EA",
    "success": "#34C759",
    "error": "#EF4444",
    "input_bg": "#F2F0EB",      # Light beige for inputs
}

# (size, weight) per font role
FONT_SPECS = {
    "title": (22, "bold"),
    "heading": (16, "bold"),
    "body": (14, "normal"),
    "body_bold": (14, "bold"),
    "small": (12, "normal"),
    "caption": (11, "normal"),
    "countdown": (28, "bold"),
}


def get_font_family() -> str:
    """Get a sans-serif family that exists on this platform."""
    if sys.platform == "darwin":
        return "Helvetica Neue"
    if sys.platform == "win32":
        return "Segoe UI"
    return "DejaVu Sans"


def get_ctk_font(font_key: str) -> CTkFont:
    """
    Get a CTkFont for a role in FONT_SPECS (unknown keys fall back to body).
    """
    size, weight = FONT_SPECS.get(font_key, FONT_SPECS["body"])
    return CTkFont(family=get_font_family(), size=size, weight=weight)


def format_countdown(remaining_ms: int) -> str:
    """Format milliseconds as MM:SS, or H:MM:SS past an hour."""
    seconds = max(0, int(remaining_ms) // 1000)
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m:02d}:{s:02d}"


def format_entry_time(ts: str) -> str:
    """Render a stored UTC timestamp in local time, or return it unchanged."""
    try:
        parsed = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return str(ts)
    return parsed.astimezone().strftime("%Y-%m-%d %H:%M")


class RoundedButton(ctk.CTkButton):
    """A rounded CTkButton in the app palette (primary or secondary)."""

    def __init__(
        self,
        parent,
        text: str,
        command: Optional[Callable] = None,
        width: int = 140,
        height: int = 36,
        secondary: bool = False,
        font_type: str = "body_bold",
        **kwargs
    ):
        """
        Args:
            parent: Parent widget.
            text: Button text.
            command: Callback when clicked.
            width: Button width.
            height: Button height.
            secondary: Use the light secondary style.
            font_type: Key into FONT_SPECS.
        """
        if secondary:
            fg, hover, text_color = (COLORS["button_secondary"],
                                     COLORS["button_secondary_hover"],
                                     COLORS["text_primary"])
        else:
            fg, hover, text_color = (COLORS["button_bg"],
                                     COLORS["button_bg_hover"],
                                     COLORS["button_text"])
        super().__init__(
            parent,
            text=text,
            command=command,
            width=width,
            height=height,
            corner_radius=height // 2,
            fg_color=fg,
            hover_color=hover,
            text_color=text_color,
            font=get_ctk_font(font_type),
            **kwargs
        )


class Card(ctk.CTkFrame):
    """A white rounded container with an optional heading."""

    def __init__(self, parent, title: str = "", radius: int = 16, **kwargs):
        super().__init__(parent, corner_radius=radius, fg_color=COLORS["surface"], **kwargs)
        if title:
            ctk.CTkLabel(
                self,
                text=title,
                text_color=COLORS["text_primary"],
                font=get_ctk_font("heading"),
                anchor="w",
            ).pack(fill="x", padx=16, pady=(12, 4))


class StyledEntry(ctk.CTkFrame):
    """
    A styled entry field with a feedback line underneath.

    Enter triggers the command set with bind_return().
    """

    def __init__(self, parent, placeholder: str = "", width: int = 200, height: int = 40, **kwargs):
        super().__init__(parent, fg_color="transparent", **kwargs)
        self.command: Optional[Callable] = None

        self.entry = ctk.CTkEntry(
            self,
            placeholder_text=placeholder,
            width=width,
            height=height,
            corner_radius=12,
            fg_color=COLORS["input_bg"],
            text_color=COLORS["text_primary"],
            placeholder_text_color=COLORS["text_secondary"],
            border_color=COLORS["input_bg"],
            border_width=2,
            font=get_ctk_font("body"),
        )
        self.entry.pack(fill="x")

        self.feedback_label = ctk.CTkLabel(
            self,
            text=" ",
            text_color=COLORS["text_secondary"],
            font=get_ctk_font("small"),
            anchor="w",
        )
        self.feedback_label.pack(fill="x", pady=(2, 0))

        self.entry.bind("<Return>", self._on_return)
        self.entry.bind("<Key>", lambda event: self.clear_feedback())

    def show_error(self, message: str):
        """Show an error message with a red border."""
        self.feedback_label.configure(text=message, text_color=COLORS["error"])
        self.entry.configure(border_color=COLORS["error"])

    def show_success(self, message: str):
        """Show a success message with a green border."""
        self.feedback_label.configure(text=message, text_color=COLORS["success"])
        self.entry.configure(border_color=COLORS["success"])

    def clear_feedback(self):
        self.feedback_label.configure(text=" ")
        self.entry.configure(border_color=COLORS["input_bg"])

    def _on_return(self, event):
        if self.command:
            self.command()

    def bind_return(self, command: Callable):
        """Bind a command to the return key."""
        self.command = command

    def get(self) -> str:
        return self.entry.get()

    def set(self, value: str):
        """Replace the entry text."""
        self.entry.delete(0, "end")
        if value:
            self.entry.insert(0, value)

    def focus_set(self):
        self.entry.focus_set()
