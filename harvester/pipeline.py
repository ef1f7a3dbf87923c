"""
Pipeline driver for the harvester.
Reconciles with the previous run, runs the worker pool and merges the shards.
"""

from datetime import datetime
from typing import Callable, Optional, Sequence, Set

from harvester.config import PipelineConfig
from harvester.coordinator import RunCoordinator, RunState
from harvester.exceptions import ConfigurationError, FatalIOError
from harvester.extractors import load_extractor
from harvester.fetcher import Extractor, FetchTask
from harvester.inputs import load_links, remaining_links
from harvester.models import RecoveryState, RunSummary
from harvester.pause import PauseListener
from harvester.progress import ConsoleProgress
from harvester.resilience import (
    CheckpointLedger,
    FailedLog,
    detect_recovery_state,
    has_leftover_shards
)
from harvester.shards import ShardCollector, ShardStore
from harvester.worker_pool import WorkerPool

Prompt = Callable[[str, Sequence[str]], str]


def console_prompt(question: str, choices: Sequence[str]) -> str:
    """
    Ask the operator to pick one of several answers.

    Accepts the full answer or its first letter.

    Raises:
        ConfigurationError: If stdin is closed before an answer is given
    """
    options = "/".join(choices)
    while True:
        try:
            answer = input(f"{question} [{options}]: ").strip().lower()
        except EOFError:
            raise ConfigurationError(f"No answer to prompt: {question}")
        for choice in choices:
            if answer in (choice, choice[0]):
                return choice
        print(f"Please answer one of: {options}")


class PipelineDriver:
    """Orchestrates one run: reconcile, fetch, merge, report."""

    def __init__(
        self,
        config: PipelineConfig,
        extractor: Optional[Extractor] = None,
        prompt: Optional[Prompt] = None,
        listen_for_pause: bool = True
    ):
        """
        Initialize driver.

        Args:
            config: PipelineConfig for this run
            extractor: Extractor callable; resolved from config.extractor if None
            prompt: Operator prompt, console_prompt if None
            listen_for_pause: Whether to watch stdin and SIGUSR1 for pause toggles
        """
        self.config = config
        self._extractor = extractor
        self.prompt = prompt or console_prompt
        self.listen_for_pause = listen_for_pause

        self.ledger = CheckpointLedger(config.completed_path)
        self.failed_log = FailedLog(config.failed_path)
        self.store = ShardStore(config.shard_dir)
        self.collector = ShardCollector(self.store, config.output_path)

        self.coordinator: Optional[RunCoordinator] = None
        self._stop_requested = False
        self._started_at: Optional[str] = None

    def run(self) -> RunSummary:
        """
        Run the pipeline.

        Returns:
            RunSummary with counts and timing

        Raises:
            ConfigurationError: Before any work starts, for unusable configuration
            FatalIOError: If run state could not be written; shards are not merged
            ShardCollectionError: If a shard could not be read during the merge
        """
        self.config.validate()
        self._started_at = datetime.now().isoformat()

        if self.config.collect_only:
            return self._run_collect_only()
        return self._run_fetch()

    def stop(self):
        """Gracefully stop: in-flight links finish, the rest stay for the next run."""
        print("\nStopping gracefully, waiting for in-flight links...")
        self._stop_requested = True
        if self.coordinator:
            self.coordinator.stop()

    def _run_collect_only(self) -> RunSummary:
        print(f"Collect-only mode: merging {self.store.shard_dir} into {self.config.output_path}")
        if not self.store.exists():
            print(f"No shard store at {self.store.shard_dir}, nothing to collect")
        merged = self.collector.collect()
        return self._create_result(collect_only=True, merged_records=merged)

    def _run_fetch(self) -> RunSummary:
        extractor = self._extractor or load_extractor(self.config.extractor, timeout=self.config.timeout)

        links = load_links(self.config.input_path)
        print(f"Loaded {len(links)} links from {self.config.input_path}")

        completed = self._reconcile()
        remaining = remaining_links(links, completed)
        skipped = len({link.uri for link in links} & completed)
        if skipped:
            print(f"Skipping {skipped} links already in {self.config.completed_path}")

        state = RunState(
            total=len(remaining),
            retry_limit=self.config.retry.max_retries,
            proxy=self.config.proxy,
            throttle_delay=self.config.delay
        )
        self.coordinator = RunCoordinator(state, ledger=self.ledger, failed_log=self.failed_log)
        self.coordinator.add_listener(ConsoleProgress(every=self.config.progress_every))
        if self._stop_requested:
            self.coordinator.stop()

        self.failed_log.reset()

        pool = WorkerPool(
            self.coordinator,
            FetchTask(extractor, proxy=self.coordinator.proxy),
            self.store,
            workers=self.config.workers
        )
        pause_listener = PauseListener(self.coordinator) if self.listen_for_pause else None

        merge = True
        interrupted = False
        merged = 0
        try:
            if pause_listener:
                pause_listener.start()
            print(f"\nFetching {len(remaining)} links "
                  f"(workers={self.config.workers}, retries={self.config.retry.max_retries})...")
            pool.run(remaining)
        except FatalIOError as e:
            merge = False
            print(f"✗ Fatal I/O error on {e.path}: {e.reason}")
            print(f"  Shards left in {self.store.shard_dir} for inspection, not merging")
            raise
        except KeyboardInterrupt:
            interrupted = True
        finally:
            if pause_listener:
                pause_listener.stop()
            if merge:
                merged = self.collector.collect()

        done, failed, total = self.coordinator.snapshot()
        return self._create_result(
            total=total,
            succeeded=done - failed,
            failed=failed,
            skipped=skipped,
            merged_records=merged,
            interrupted=interrupted or self.coordinator.is_stopped()
        )

    def _reconcile(self) -> Set[str]:
        """
        Decide what to do with the files an earlier run left behind.

        Returns:
            URIs to treat as already completed
        """
        state = detect_recovery_state(self.config.completed_path, self.config.output_path)

        if has_leftover_shards(self.store.shard_dir):
            print(f"⚠️  Found {self.store.count()} leftover shards in {self.store.shard_dir}; "
                  f"they will be merged with this run's results (use --collect-only to merge them alone)")

        if state == RecoveryState.RESUMABLE_CRASH:
            print(f"Found checkpoint ledger {self.config.completed_path} from an earlier run")
            answer = "keep" if self.config.assume_yes else self.prompt(
                "Keep completed links and resume, or discard and start over?", ["keep", "discard"]
            )
            if answer == "keep":
                completed = self.ledger.completed()
                print(f"Resuming: {len(completed)} links already completed")
                if self.config.output_path.exists():
                    self.store.adopt(self.config.output_path)
                return completed

            self.ledger.discard()
            if self.config.output_path.exists():
                self._confirm_overwrite()
            return set()

        if state == RecoveryState.STALE_OUTPUT:
            print(f"⚠️  Output {self.config.output_path} exists but there is no checkpoint ledger; "
                  f"it belongs to an unrelated run")
            self._confirm_overwrite()

        return set()

    def _confirm_overwrite(self):
        answer = "overwrite" if self.config.assume_yes else self.prompt(
            f"Overwrite {self.config.output_path}?", ["overwrite", "abort"]
        )
        if answer != "overwrite":
            raise ConfigurationError(f"Refusing to overwrite existing output {self.config.output_path}")
        self.config.output_path.unlink()

    def _create_result(
        self,
        total: int = 0,
        succeeded: int = 0,
        failed: int = 0,
        skipped: int = 0,
        merged_records: int = 0,
        collect_only: bool = False,
        interrupted: bool = False
    ) -> RunSummary:
        """Create RunSummary with calculated fields."""
        completed_at = datetime.now().isoformat()

        duration = 0.0
        if self._started_at:
            start = datetime.fromisoformat(self._started_at)
            end = datetime.fromisoformat(completed_at)
            duration = (end - start).total_seconds()

        links_per_hour = 0.0
        if duration > 0:
            links_per_hour = (succeeded + failed) / (duration / 3600)

        return RunSummary(
            total=total,
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
            merged_records=merged_records,
            collect_only=collect_only,
            interrupted=interrupted,
            started_at=self._started_at or completed_at,
            completed_at=completed_at,
            duration_seconds=duration,
            links_per_hour=links_per_hour
        )
