"""
Out-of-band pause control.

Pressing Enter on an interactive terminal toggles pause; on POSIX systems
SIGUSR1 does the same. Pausing only holds back new attempts, it never
interrupts a request that is already running.
"""

import signal
import sys
import threading
from typing import Optional, TextIO

from harvester.coordinator import RunCoordinator


class PauseListener:
    """Background listener that toggles the coordinator's pause flag."""

    def __init__(self, coordinator: RunCoordinator, stream: Optional[TextIO] = None):
        """
        Initialize listener.

        Args:
            coordinator: RunCoordinator to toggle
            stream: Line source, defaults to sys.stdin
        """
        self.coordinator = coordinator
        self.stream = stream if stream is not None else sys.stdin
        self._thread: Optional[threading.Thread] = None
        self._previous_handler = None

    def toggle(self) -> bool:
        paused = self.coordinator.toggle_pause()
        if paused:
            print("\n⏸  Paused - running requests will finish, press Enter to resume")
        else:
            print("\n▶  Resumed")
        return paused

    def start(self):
        """Start listening; keyboard input is only watched on a terminal."""
        if self._stream_is_interactive():
            self._thread = threading.Thread(target=self._read_loop, name="harvester-pause", daemon=True)
            self._thread.start()
            print("Press Enter at any time to pause or resume")

        if hasattr(signal, "SIGUSR1") and threading.current_thread() is threading.main_thread():
            self._previous_handler = signal.signal(signal.SIGUSR1, self._signal_handler)

    def stop(self):
        """Restore the previous SIGUSR1 handler. The daemon reader thread ends with the process."""
        if self._previous_handler is not None:
            signal.signal(signal.SIGUSR1, self._previous_handler)
            self._previous_handler = None

    def _stream_is_interactive(self) -> bool:
        isatty = getattr(self.stream, "isatty", None)
        return bool(isatty and isatty())

    def _read_loop(self):
        for _ in self.stream:
            if self.coordinator.is_stopped():
                return
            self.toggle()

    def _signal_handler(self, signum, frame):
        self.toggle()
