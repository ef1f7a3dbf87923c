"""
Shared run state and the lock that guards it.

Every counter update and pause toggle goes through RunCoordinator. Workers
never touch RunState directly.
"""

import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from harvester.models import Link
from harvester.resilience.checkpoint import CheckpointLedger, FailedLog

ProgressListener = Callable[[int, int], None]


@dataclass
class RunState:
    """Run-wide counters and settings shared by all workers."""
    total: int = 0
    done: int = 0
    failed: int = 0
    paused: bool = False
    retry_limit: int = 3
    proxy: Optional[str] = None
    throttle_delay: float = 0.0


class RunCoordinator:
    """Owns RunState and mediates all access to it under a single lock."""

    def __init__(
        self,
        state: RunState,
        ledger: Optional[CheckpointLedger] = None,
        failed_log: Optional[FailedLog] = None
    ):
        """
        Initialize coordinator.

        Args:
            state: RunState to own; callers must not keep mutating it
            ledger: Ledger receiving successful URIs
            failed_log: Log receiving URIs whose retries were exhausted
        """
        self._state = state
        self._ledger = ledger
        self._failed_log = failed_log
        self._lock = threading.Lock()
        self._unpaused = threading.Condition(self._lock)
        self._stopped = False
        self._listeners: List[ProgressListener] = []

    @property
    def retry_limit(self) -> int:
        return self._state.retry_limit

    @property
    def proxy(self) -> Optional[str]:
        return self._state.proxy

    @property
    def throttle_delay(self) -> float:
        return self._state.throttle_delay

    def add_listener(self, listener: ProgressListener):
        """Register a callback receiving (done, total) after every finished link."""
        self._listeners.append(listener)

    def increment_done(self) -> int:
        with self._lock:
            self._state.done += 1
            return self._state.done

    def increment_failed(self) -> int:
        with self._lock:
            self._state.failed += 1
            return self._state.failed

    def record_outcome(self, link: Link, succeeded: bool):
        """
        Account for a finished link.

        Counters and the ledger or failed-file append happen in one critical
        section; listeners are notified after the lock is released.

        Args:
            link: Link that finished
            succeeded: Whether any attempt succeeded

        Raises:
            LedgerIOError: If the ledger or failed file cannot be appended
        """
        with self._lock:
            if succeeded:
                if self._ledger is not None:
                    self._ledger.mark_completed(link.uri)
            else:
                if self._failed_log is not None:
                    self._failed_log.record_failed(link.uri)
                self._state.failed += 1
            self._state.done += 1
            done, total = self._state.done, self._state.total

        for listener in self._listeners:
            listener(done, total)

    def toggle_pause(self) -> bool:
        """
        Flip the pause flag.

        Returns:
            New paused value
        """
        with self._lock:
            self._state.paused = not self._state.paused
            if not self._state.paused:
                self._unpaused.notify_all()
            return self._state.paused

    def is_paused(self) -> bool:
        with self._lock:
            return self._state.paused

    def wait_while_paused(self, poll_interval: float = 0.5) -> bool:
        """
        Block the calling worker while the run is paused.

        The condition wait releases the lock, so other workers keep
        finishing their in-flight links.

        Returns:
            False if the run was stopped, True otherwise
        """
        with self._unpaused:
            while self._state.paused and not self._stopped:
                self._unpaused.wait(timeout=poll_interval)
            return not self._stopped

    def stop(self):
        """Ask workers to finish the link in hand and take no new ones."""
        with self._lock:
            self._stopped = True
            self._unpaused.notify_all()

    def is_stopped(self) -> bool:
        with self._lock:
            return self._stopped

    def snapshot(self) -> Tuple[int, int, int]:
        """
        Consistent view of the counters.

        Returns:
            Tuple of (done, failed, total)
        """
        with self._lock:
            return self._state.done, self._state.failed, self._state.total
