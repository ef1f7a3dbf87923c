"""
Crash detection from the files a previous run left behind.
"""

from pathlib import Path

from harvester.models import RecoveryState


def detect_recovery_state(completed_path, output_path) -> RecoveryState:
    """
    Classify the working directory before a run starts.

    A checkpoint ledger means an earlier run stopped before cleaning up, so
    its results can be resumed. An output file without a ledger belongs to
    some unrelated finished run.

    Args:
        completed_path: Checkpoint ledger location
        output_path: Final output location

    Returns:
        RecoveryState for the pipeline driver to branch on
    """
    if Path(completed_path).is_file():
        return RecoveryState.RESUMABLE_CRASH
    if Path(output_path).exists():
        return RecoveryState.STALE_OUTPUT
    return RecoveryState.CLEAN


def has_leftover_shards(shard_dir) -> bool:
    """True if a shard store from an earlier run still holds files."""
    shard_dir = Path(shard_dir)
    return shard_dir.is_dir() and any(shard_dir.iterdir())
