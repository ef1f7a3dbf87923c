"""
Resilience components for the harvester: retries, checkpointing and crash recovery.
"""

from .checkpoint import CheckpointLedger, FailedLog
from .recovery import detect_recovery_state, has_leftover_shards
from .retry_handler import RetryHandler

__all__ = [
    'CheckpointLedger',
    'FailedLog',
    'RetryHandler',
    'detect_recovery_state',
    'has_leftover_shards'
]
