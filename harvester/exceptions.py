"""
Exception hierarchy for the harvester pipeline.

Transient errors (FetchError, ExtractionError) are retried per link and never
abort the run. FatalIOError subclasses stop the run without merging.
"""


class HarvesterError(Exception):
    """Base class for all harvester errors."""


class ConfigurationError(HarvesterError):
    """Invalid or missing configuration, raised before any worker starts."""


class FetchError(HarvesterError):
    """Network failure or remote rejection (HTTP error status, proxy failure)."""


class ExtractionError(HarvesterError):
    """Response received but could not be turned into flat records."""


class FatalIOError(HarvesterError):
    """Disk-level failure on run state that cannot be trusted afterwards."""

    def __init__(self, path, reason):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class LedgerIOError(FatalIOError):
    """Append to the checkpoint ledger or failed file failed."""


class ShardWriteError(FatalIOError):
    """Writing a shard file failed."""


class ShardCollectionError(HarvesterError):
    """A shard could not be read while merging; the shard store is left intact."""

    def __init__(self, path, reason):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Failed to read shard {self.path}: {reason}")
