"""Per-session placement budget with timed catch-up refill."""

from __future__ import annotations

import math
import time
from typing import Callable, Optional

MAX_PIXELS = 100
REFILL_INTERVAL_SECONDS = 20.0
REFILL_POLL_SECONDS = 0.25


def format_countdown(seconds: float) -> str:
    total = max(0, math.ceil(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes:02d}:{secs:02d}"


class BudgetScheduler:
    """Bounded placement pool.

    ``remaining`` is decremented per queued placement and refilled by one unit
    per elapsed interval. The refill deadline only exists while the pool is
    below ``max_pixels``; :meth:`tick` grants every interval that elapsed since
    the deadline in one step, so a suspended process catches up on its next
    observation instead of gaining a single unit.
    """

    def __init__(
        self,
        *,
        max_pixels: int = MAX_PIXELS,
        refill_interval_seconds: float = REFILL_INTERVAL_SECONDS,
        remaining: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_pixels = max(1, int(max_pixels))
        self.refill_interval_seconds = max(0.001, float(refill_interval_seconds))
        self._clock = clock
        self.unlimited = False
        self.next_refill_at: Optional[float] = None
        self.remaining = self.max_pixels if remaining is None else self._clamp(remaining)
        self.ensure_deadline()

    def _clamp(self, value: int) -> int:
        return max(0, min(self.max_pixels, int(value)))

    @property
    def is_full(self) -> bool:
        return self.unlimited or self.remaining >= self.max_pixels

    @property
    def timer_active(self) -> bool:
        return self.next_refill_at is not None

    def can_place(self) -> bool:
        return self.unlimited or self.remaining > 0

    def restore(self, remaining: Optional[int]) -> None:
        if remaining is None:
            return
        self.remaining = self._clamp(remaining)
        self.ensure_deadline()

    def consume(self) -> bool:
        if self.unlimited:
            return True
        if self.remaining <= 0:
            return False
        self.remaining -= 1
        self.ensure_deadline()
        return True

    def refund(self, units: int = 1) -> None:
        if self.unlimited or units <= 0:
            return
        self.remaining = min(self.max_pixels, self.remaining + int(units))
        self.ensure_deadline()

    def enable_unlimited(self) -> None:
        self.unlimited = True
        self.stop()

    def ensure_deadline(self, now: Optional[float] = None) -> None:
        if self.is_full:
            self.stop()
            return
        if self.next_refill_at is None:
            current = self._clock() if now is None else now
            self.next_refill_at = current + self.refill_interval_seconds

    def stop(self) -> None:
        self.next_refill_at = None

    def tick(self, now: Optional[float] = None) -> int:
        """Apply any refill that is due and return the number of units granted."""
        if self.is_full:
            self.stop()
            return 0
        current = self._clock() if now is None else now
        if self.next_refill_at is None:
            self.ensure_deadline(current)
            return 0
        # Counted in whole milliseconds; float seconds land just short of interval multiples.
        elapsed_ms = round((current - self.next_refill_at) * 1000)
        if elapsed_ms < 0:
            return 0
        interval_ms = max(1, round(self.refill_interval_seconds * 1000))
        steps = 1 + elapsed_ms // interval_ms
        before = self.remaining
        self.remaining = min(self.max_pixels, self.remaining + steps)
        self.next_refill_at += steps * self.refill_interval_seconds
        if self.remaining >= self.max_pixels:
            self.stop()
        return self.remaining - before

    def seconds_until_refill(self, now: Optional[float] = None) -> Optional[float]:
        if self.is_full:
            return None
        current = self._clock() if now is None else now
        deadline = self.next_refill_at
        if deadline is None:
            deadline = current + self.refill_interval_seconds
        return max(0.0, deadline - current)

    def countdown_label(self, now: Optional[float] = None) -> Optional[str]:
        seconds = self.seconds_until_refill(now)
        if seconds is None:
            return None
        return f"Next +1 in {format_countdown(seconds)}"

    def remaining_label(self) -> str:
        return "Pixels left: ∞" if self.unlimited else f"Pixels left: {self.remaining}"
