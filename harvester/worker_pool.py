"""
Bounded pool of workers pulling links from a shared queue.

Each worker runs the fetch-transform task for one link at a time with
retries, writes a shard on success and reports the outcome to the
coordinator. A link that exhausts its retries never stops the pool; a fatal
I/O error does.
"""

import queue
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, List

from harvester.coordinator import RunCoordinator
from harvester.exceptions import FatalIOError
from harvester.models import Link
from harvester.resilience.retry_handler import RetryHandler
from harvester.shards import ShardStore


class WorkerPool:
    """Runs every link to completion with at most `workers` in flight."""

    def __init__(
        self,
        coordinator: RunCoordinator,
        task: Callable[[Link], list],
        store: ShardStore,
        workers: int = 1,
        poll_interval: float = 0.5
    ):
        """
        Initialize pool.

        Args:
            coordinator: RunCoordinator owning the run state
            task: Fetch-transform callable taking a Link and returning records
            store: ShardStore receiving successful results
            workers: Maximum number of concurrent workers
            poll_interval: How often the waiting thread wakes up to stay interruptible
        """
        self.coordinator = coordinator
        self.task = task
        self.store = store
        self.workers = max(1, workers)
        self.poll_interval = poll_interval
        self.retry_handler = RetryHandler(coordinator)

    def run(self, links: List[Link]):
        """
        Process all links and return once every worker has finished.

        Raises:
            FatalIOError: If a shard, ledger or failed-file write failed
        """
        if not links:
            return

        pending_links: "queue.Queue[Link]" = queue.Queue()
        for link in links:
            pending_links.put(link)

        worker_count = min(self.workers, len(links))
        print(f"Starting {worker_count} workers for {len(links)} links...")

        with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="harvester-worker") as executor:
            futures = [executor.submit(self._worker_loop, pending_links) for _ in range(worker_count)]
            try:
                remaining = set(futures)
                while remaining:
                    finished, remaining = wait(remaining, timeout=self.poll_interval, return_when=FIRST_EXCEPTION)
                    if any(f.exception() is not None for f in finished):
                        self.coordinator.stop()
            except KeyboardInterrupt:
                print("\nInterrupted, waiting for in-flight links to finish...")
                self.coordinator.stop()
                raise

        errors = [f.exception() for f in futures if f.exception() is not None]
        if errors:
            fatal = [e for e in errors if isinstance(e, FatalIOError)]
            raise (fatal or errors)[0]

    def _worker_loop(self, pending_links: "queue.Queue[Link]"):
        while not self.coordinator.is_stopped():
            try:
                link = pending_links.get_nowait()
            except queue.Empty:
                return
            try:
                self._process(link)
            except Exception:
                self.coordinator.stop()
                raise

    def _process(self, link: Link):
        outcome = self.retry_handler.execute_with_retry(self.task, link)
        if outcome.interrupted:
            return

        if outcome.succeeded:
            self.store.write_shard(link.uri, outcome.records)
            if self.coordinator.throttle_delay > 0:
                time.sleep(self.coordinator.throttle_delay)
        else:
            print(f"  ✗ Giving up on {link.uri} after {outcome.attempts} attempts: {outcome.reason}")

        self.coordinator.record_outcome(link, outcome.succeeded)
