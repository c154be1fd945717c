"""Per-question countdown driven by an external tick source."""

from __future__ import annotations

from typing import Optional

__all__ = ["DEFAULT_SECONDS", "CountdownTimer"]

DEFAULT_SECONDS = 30


class CountdownTimer:
    """Whole-second countdown advanced by :meth:`elapse`.

    The timer owns no thread or callback. Whoever drives it feeds elapsed
    time; fractions of a second carry over to the next call.
    """

    def __init__(self, seconds: int = DEFAULT_SECONDS) -> None:
        if seconds <= 0:
            raise ValueError("seconds must be positive")
        self.seconds = seconds
        self._remaining = seconds
        self._carry = 0.0
        self._running = False

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        self._remaining = self.seconds
        self._carry = 0.0
        self._running = True

    def cancel(self) -> None:
        self._running = False
        self._carry = 0.0

    def tick(self) -> bool:
        """Advance one second; return ``True`` when the countdown expires."""

        return self.elapse(1.0) is not None

    def elapse(self, seconds: float) -> Optional[float]:
        """Consume ``seconds`` of wall time.

        Returns ``None`` while the countdown is still running (or was not
        running). Once it reaches zero the timer stops and the time left over
        past expiry is returned, so the caller can keep spending it.
        """

        if not self._running:
            return None
        if seconds < 0:
            raise ValueError("seconds must be non-negative")
        self._carry += seconds
        while self._carry >= 1.0 and self._remaining > 0:
            self._carry -= 1.0
            self._remaining -= 1
        if self._remaining > 0:
            return None
        leftover = self._carry
        self._running = False
        self._carry = 0.0
        return leftover
