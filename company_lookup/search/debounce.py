"""
Debouncer - Cancellable timer with explicit sequence numbers.

Each ``trigger`` re-arms the timer and cancels the pending one, so only the
last value inside the quiet window reaches the callback. Every trigger
takes the next sequence number; ``is_current`` tells a callback whether it
still belongs to the latest trigger.
"""

import asyncio
from typing import Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")


class Debouncer(Generic[T]):
    """
    Usage:
        debouncer = Debouncer(0.3, lambda value, seq: start_search(value))
        debouncer.trigger("T")
        debouncer.trigger("TS")  # cancels "T"; only "TS" fires after 0.3s
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[T, int], None],
        name: str = "debounce",
    ):
        self.delay = delay
        self.name = name
        self._callback = callback
        self._sequence = 0
        self._handle: asyncio.TimerHandle | None = None

    @property
    def sequence(self) -> int:
        """Number of the latest trigger."""
        return self._sequence

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self, value: T) -> int:
        """(Re)arm the timer for ``value``. Must run inside an event loop."""
        self.cancel()
        self._sequence += 1
        seq = self._sequence
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, value, seq)
        return seq

    def cancel(self) -> bool:
        """Cancel the pending timer, if any."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def is_current(self, seq: int) -> bool:
        return seq == self._sequence

    def _fire(self, value: T, seq: int) -> None:
        self._handle = None
        if not self.is_current(seq):
            return
        try:
            self._callback(value, seq)
        except Exception:
            logger.exception(f"[{self.name}] callback failed")
