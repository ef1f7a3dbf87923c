"""
Per-link retry loop.

Retries are immediate: a link gets retry_limit + 1 attempts back to back,
and the pause flag is checked before each one.
"""

from typing import Callable, Optional, TYPE_CHECKING

from harvester.models import Link, LinkOutcome

if TYPE_CHECKING:
    from harvester.coordinator import RunCoordinator


class RetryHandler:
    """Runs a task for one link until it succeeds or attempts run out."""

    def __init__(self, coordinator: "RunCoordinator"):
        """
        Initialize retry handler.

        Args:
            coordinator: RunCoordinator providing retry limit and pause flag
        """
        self.coordinator = coordinator

    def execute_with_retry(
        self,
        func: Callable[[Link], list],
        link: Link
    ) -> LinkOutcome:
        """
        Execute func for a link with retry logic.

        Any exception from func counts as a failed attempt. Waiting while
        paused does not consume an attempt; an attempt already running is
        never interrupted.

        Args:
            func: Callable taking the link and returning its records
            link: Link to process

        Returns:
            LinkOutcome with records on success or the last failure reason
        """
        max_attempts = self.coordinator.retry_limit + 1
        last_error: Optional[str] = None
        attempts = 0

        while attempts < max_attempts:
            if not self.coordinator.wait_while_paused():
                # Run stopped; the link stays unaccounted and is picked up next run
                return LinkOutcome(
                    link=link,
                    succeeded=False,
                    attempts=attempts,
                    reason="Run stopped",
                    interrupted=True
                )

            attempts += 1
            try:
                records = func(link)
            except Exception as e:
                last_error = str(e) or type(e).__name__
                print(f"  Attempt {attempts}/{max_attempts} failed for {link.uri}: {last_error}")
                continue

            return LinkOutcome(link=link, succeeded=True, attempts=attempts, records=records)

        return LinkOutcome(
            link=link,
            succeeded=False,
            attempts=attempts,
            reason=last_error
        )
