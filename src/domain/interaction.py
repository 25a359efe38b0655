"""
Rate-limited cancellation token for map interaction.

Every drag / zoom / touch tick of the rider's map is an interaction
signal.  Signals are coalesced so that at most one "stop auto-following
the driver" event fires per debounce window; the window restarts on the
emitted event (leading edge).  ``recenter()`` hands control back to
auto-follow.
"""

from __future__ import annotations

import time
from typing import Callable, Optional


class InteractionDebouncer:
    def __init__(
        self,
        window_seconds: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        if window_seconds < 0.5:
            raise ValueError("debounce window must be at least 0.5 s")
        self.window_seconds = window_seconds
        self._clock = clock
        self._last_emit: Optional[float] = None
        self.following = True
        self.emitted = 0

    def signal(self) -> bool:
        """Register one interaction.  Returns True when it emitted an event."""
        now = self._clock()
        if self._last_emit is not None and now - self._last_emit < self.window_seconds:
            return False
        self._last_emit = now
        self.following = False
        self.emitted += 1
        return True

    def recenter(self) -> None:
        self.following = True
        self._last_emit = None
