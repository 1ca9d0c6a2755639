"""
PromptScheduler: repeating "what are you working on?" prompt timer.

The cycle never waits for an answer: every expiry re-arms the next window
first and then surfaces the prompt. Surfacing means activating the UI,
showing a native notification when allowed (a failure is only logged),
and then asking the UI to open its input prompt.

UI collaborator (duck typed):
    activate()          bring the window forward
    is_focused() -> bool
    open_prompt()       show the entry input

Notifier collaborator:
    notify(title, message)   raises on failure
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import config
from core.foreground import ForegroundRequester
from core.notifications import notifications_available
from storage.store import EntryStore

logger = logging.getLogger(__name__)

# fire() outcomes
PROMPT_DISABLED = "disabled"
PROMPT_SKIPPED = "skipped"
PROMPT_NOTIFIED = "notified"
PROMPT_SIGNALLED = "signalled"


class PromptScheduler:
    """Drives the periodic prompt from a chain of one-shot timers."""

    def __init__(
        self,
        store: EntryStore,
        ui: Any = None,
        notifier: Any = None,
        availability: Callable[[], bool] = notifications_available,
        foreground: Optional[ForegroundRequester] = None,
        timer_factory: Callable[..., Any] = threading.Timer,
        clock: Callable[[], float] = time.time,
        first_prompt_delay: float = config.FIRST_PROMPT_DELAY_SECONDS,
    ):
        """
        Initialise the scheduler (not started).

        Args:
            store: Settings source and skip_next persistence.
            ui: UI collaborator, may be attached later via attach_ui().
            notifier: Notification backend or None.
            availability: Check deciding whether to try notifications.
            foreground: Requester used to activate the UI (built from ui if None).
            timer_factory: threading.Timer-compatible factory.
            clock: Returns the current time in epoch seconds.
            first_prompt_delay: Seconds from start() to the launch prompt.
        """
        self.store = store
        self.ui = ui
        self.notifier = notifier
        self.availability = availability
        self.foreground = foreground or (ForegroundRequester(ui) if ui is not None else None)
        self._timer_factory = timer_factory
        self._clock = clock
        self.first_prompt_delay = first_prompt_delay

        self._lock = threading.Lock()
        self._timer: Optional[Any] = None
        self._startup_timer: Optional[Any] = None
        self._generation: int = 0
        self.interval_seconds: Optional[float] = None
        self.next_fire_at: Optional[float] = None

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def attach_ui(self, ui: Any) -> None:
        """Set the UI collaborator (and a matching foreground requester)."""
        self.ui = ui
        self.foreground = ForegroundRequester(ui) if ui is not None else None

    def attach_notifier(self, notifier: Any) -> None:
        """Set or clear the notification backend."""
        self.notifier = notifier

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """True while a repeating timer is armed."""
        return self._timer is not None

    def _new_timer(self, delay: float, callback: Callable, *args) -> Any:
        timer = self._timer_factory(delay, callback, args=args)
        timer.daemon = True
        timer.start()
        return timer

    def _arm(self, generation: int) -> None:
        """Arm the next window. Caller holds self._lock."""
        self.next_fire_at = self._clock() + self.interval_seconds
        self._timer = self._new_timer(self.interval_seconds, self._on_timer, generation)

    def _cancel_timers(self) -> None:
        """Cancel pending timers. Caller holds self._lock."""
        for timer in (self._timer, self._startup_timer):
            if timer is not None:
                timer.cancel()
        self._timer = None
        self._startup_timer = None
        self.next_fire_at = None

    def start(self, interval_minutes: Optional[int] = None, prompt_now: bool = True) -> None:
        """
        (Re)start the prompt cycle.

        Args:
            interval_minutes: Prompt period; read from settings if None.
                Clamped to at least one minute.
            prompt_now: Also prompt shortly after starting.
        """
        if interval_minutes is None:
            interval_minutes = self.store.read_config()["ask_interval_minutes"]
        minutes = max(config.MIN_INTERVAL_MINUTES, int(interval_minutes))

        with self._lock:
            self._cancel_timers()
            self._generation += 1
            generation = self._generation
            self.interval_seconds = minutes * 60
            self._arm(generation)
            if prompt_now:
                self._startup_timer = self._new_timer(
                    self.first_prompt_delay, self._on_startup_timer, generation
                )

        logger.info(f"Prompt scheduler started: every {minutes} minute(s)")

    def stop(self) -> None:
        """Cancel the cycle. Safe to call repeatedly or when never started."""
        with self._lock:
            was_running = self._timer is not None
            self._cancel_timers()
            self._generation += 1
        if was_running:
            logger.info("Prompt scheduler stopped")

    def reconfigure(self, interval_minutes: int) -> None:
        """Apply a new interval; restarts the cycle if it is running."""
        if self.is_running:
            self.start(interval_minutes, prompt_now=False)

    # ------------------------------------------------------------------
    # Timer callbacks (timer threads)
    # ------------------------------------------------------------------

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return  # Superseded by a restart or stop
            self._arm(generation)
        self._fire_safely()

    def _on_startup_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._startup_timer = None
        self._fire_safely()

    def _fire_safely(self) -> None:
        try:
            self.fire()
        except Exception as e:
            logger.error(f"Prompt failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Prompting
    # ------------------------------------------------------------------

    def fire(self) -> str:
        """
        Handle one prompt window.

        Returns:
            PROMPT_DISABLED if prompting is off, PROMPT_SKIPPED if the
            one-shot skip flag was consumed, PROMPT_NOTIFIED if a native
            notification was shown alongside the prompt, PROMPT_SIGNALLED
            if the prompt was opened without one.
        """
        cfg = self.store.read_config()

        if not cfg["ask_enabled"]:
            logger.debug("Prompting disabled, skipping window")
            return PROMPT_DISABLED

        if cfg["skip_next"] and self.store.take_skip_next():
            logger.info("Skipped prompt (skip_next was set)")
            return PROMPT_SKIPPED

        if self.foreground is not None:
            self.foreground.request()

        outcome = PROMPT_SIGNALLED
        if cfg["notifications_enabled"] and self.notifier is not None and self._notifications_allowed():
            try:
                self.notifier.notify(config.PROMPT_TITLE, config.PROMPT_MESSAGE)
                outcome = PROMPT_NOTIFIED
            except Exception as e:
                logger.warning(f"Notification failed, opening prompt without it: {e}")

        self._signal_ui()
        return outcome

    def _notifications_allowed(self) -> bool:
        try:
            return bool(self.availability())
        except Exception as e:
            logger.debug(f"Notification availability check failed: {e}")
            return False

    def _signal_ui(self) -> None:
        if self.ui is None:
            logger.warning("Prompt due but no UI is attached")
            return
        try:
            self.ui.open_prompt()
        except Exception as e:
            logger.error(f"Failed to open prompt: {e}")

    def prompt_now(self) -> None:
        """Open the prompt immediately, ignoring the enabled and skip flags."""
        if self.foreground is not None:
            self.foreground.request()
        self._signal_ui()

    def skip_next(self) -> Dict[str, Any]:
        """Suppress exactly the next prompt. Returns the updated settings."""
        cfg = self.store.write_config({"skip_next": True})
        logger.info("Next prompt will be skipped")
        return cfg

    def get_next_prompt_info(self) -> Dict[str, Any]:
        """
        Get countdown info for display.

        Returns:
            {"running": bool, "next_fire_at": ISO string or None,
             "remaining_ms": int}
        """
        with self._lock:
            next_fire_at = self.next_fire_at
            running = self._timer is not None

        if next_fire_at is None:
            return {"running": running, "next_fire_at": None, "remaining_ms": 0}

        remaining = max(0.0, next_fire_at - self._clock())
        return {
            "running": running,
            "next_fire_at": datetime.fromtimestamp(next_fire_at, timezone.utc).isoformat(),
            "remaining_ms": int(remaining * 1000),
        }
