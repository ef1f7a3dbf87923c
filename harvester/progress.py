"""
Console progress reporting.
"""

import threading
import time


class ConsoleProgress:
    """Prints `[done/total]` lines as links finish."""

    def __init__(self, every: int = 10):
        """
        Args:
            every: Print a line every N finished links (the last one is always printed)
        """
        self.every = max(1, every)
        self._started = time.monotonic()
        self._lock = threading.Lock()
        self._last_printed = 0

    def __call__(self, done: int, total: int):
        with self._lock:
            if done <= self._last_printed:
                return
            if done % self.every != 0 and done != total:
                return
            self._last_printed = done

        percent = (done / total * 100) if total > 0 else 100.0
        elapsed = time.monotonic() - self._started
        rate = done / elapsed * 3600 if elapsed > 0 else 0.0
        print(f"  Progress: [{done}/{total}] {percent:.1f}% ({rate:.0f} links/hour)")
