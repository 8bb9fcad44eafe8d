"""Process-wide hourly spending governor."""

import time
from collections.abc import Callable
from decimal import Decimal

from loguru import logger


def to_decimal(value: float | int | str | Decimal) -> Decimal:
    """Convert a money amount without binary float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class CostGovernor:
    """Rolling cost window shared by all requests of the process.

    Admission is advisory: concurrent requests admitted together may exceed
    the ceiling by the sum of their pre-flight estimates. The window rolls
    over lazily whenever it is read or written.
    """

    def __init__(
        self,
        limit: float | Decimal,
        window_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = to_decimal(limit)
        self.window_seconds = window_seconds
        self._clock = clock
        self._window_start = clock()
        self._accumulated = Decimal(0)

    def _roll_window(self) -> None:
        now = self._clock()
        if now - self._window_start > self.window_seconds:
            if self._accumulated:
                logger.info(f"Cost window rolled over (spent ${self._accumulated} last window)")
            self._window_start = now
            self._accumulated = Decimal(0)

    @property
    def accumulated(self) -> Decimal:
        self._roll_window()
        return self._accumulated

    def can_proceed(self, estimated_cost: float | Decimal) -> bool:
        """Check whether a request with the given estimate fits in the window."""
        self._roll_window()
        allowed = self._accumulated + to_decimal(estimated_cost) <= self.limit
        if not allowed:
            logger.warning(f"Hourly cost limit reached: ${self._accumulated} of ${self.limit}")
        return allowed

    def add_cost(self, cost: float | Decimal) -> None:
        """Record the reconciled cost of a finished request."""
        self._roll_window()
        self._accumulated += to_decimal(cost)
        logger.debug(f"Cost window now at ${self._accumulated}")
