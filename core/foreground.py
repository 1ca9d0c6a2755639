"""Bring the UI to the foreground, retrying while the window manager resists."""

import logging
import time
from typing import Any, Callable

import config

logger = logging.getLogger(__name__)


class ForegroundRequester:
    """
    One idempotent "bring UI to front" call.

    Each attempt asks the UI to activate itself and then checks whether it
    got focus. Attempts are repeated with exponential backoff.
    """

    def __init__(
        self,
        ui: Any,
        retries: int = config.FOREGROUND_RETRIES,
        backoff_seconds: float = config.FOREGROUND_BACKOFF_SECONDS,
        backoff_factor: float = config.FOREGROUND_BACKOFF_FACTOR,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            ui: Object with activate() and is_focused().
            retries: Extra attempts after the first one.
            backoff_seconds: Delay before the first retry.
            backoff_factor: Multiplier applied to the delay per retry.
            sleep: Sleep function (injected in tests).
        """
        self.ui = ui
        self.retries = max(0, retries)
        self.backoff_seconds = max(0.0, backoff_seconds)
        self.backoff_factor = max(1.0, backoff_factor)
        self._sleep = sleep

    def _focused(self) -> bool:
        try:
            return bool(self.ui.is_focused())
        except Exception as e:
            logger.debug(f"Focus check failed: {e}")
            return False

    def request(self) -> bool:
        """
        Activate the UI until it reports focus or attempts run out.

        Returns:
            True if the UI reported focus.
        """
        if self.ui is None:
            return False

        delay = self.backoff_seconds
        for attempt in range(self.retries + 1):
            try:
                self.ui.activate()
            except Exception as e:
                logger.debug(f"Activate attempt {attempt + 1} failed: {e}")

            if self._focused():
                return True

            if attempt < self.retries:
                self._sleep(delay)
                delay *= self.backoff_factor

        logger.debug(f"UI did not take focus after {self.retries + 1} attempts")
        return False
