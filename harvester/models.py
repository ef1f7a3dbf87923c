"""
Data models for the harvester.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Link:
    """One unit of work: a URI plus an optional external correlation id."""
    uri: str
    correlation_id: Optional[str] = None


class RecoveryState(Enum):
    """What the files left on disk say about the previous run."""
    CLEAN = "clean"
    RESUMABLE_CRASH = "resumable-crash"
    STALE_OUTPUT = "stale-output"


@dataclass
class LinkOutcome:
    """Result of running one link through the retry loop."""
    link: Link
    succeeded: bool
    attempts: int
    records: list = field(default_factory=list)
    reason: Optional[str] = None
    interrupted: bool = False


@dataclass
class RunSummary:
    """Result of a pipeline run."""
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    merged_records: int = 0
    collect_only: bool = False
    interrupted: bool = False
    started_at: str = ""
    completed_at: str = ""
    duration_seconds: float = 0.0
    links_per_hour: float = 0.0
