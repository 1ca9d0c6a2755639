"""
Core runtime package for Work Tracker.

Contains the headless AppSession, the prompt scheduler and the
notification/foreground helpers. Zero UI dependencies.
"""

from core.app_session import AppSession

__all__ = ["AppSession"]
