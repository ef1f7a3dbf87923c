"""
Configuration for the harvester.

Dataclasses describe a resolved run; Settings supplies defaults from the
environment (HARVESTER_* variables or a .env file).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from harvester.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Environment-driven defaults for the command line."""

    model_config = SettingsConfigDict(
        env_prefix="HARVESTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    proxy: Optional[str] = None
    output: str = "output.csv"
    failed: str = "failed.txt"
    completed: str = "completed.txt"
    retries: int = 3
    workers: int = 0  # 0 means os.cpu_count()
    delay: float = 0.0
    timeout: float = 30.0
    extractor: str = "wherevent"
    progress_every: int = 10


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3


@dataclass
class PipelineConfig:
    """Resolved configuration for one pipeline run."""
    input_path: Optional[Path] = None
    output_path: Path = Path("output.csv")
    failed_path: Path = Path("failed.txt")
    completed_path: Path = Path("completed.txt")
    shard_dir: Optional[Path] = None
    proxy: Optional[str] = None

    retry: RetryConfig = field(default_factory=RetryConfig)
    workers: int = 0
    delay: float = 0.0

    # Extractor
    extractor: str = "wherevent"
    timeout: float = 30.0

    collect_only: bool = False
    assume_yes: bool = False
    progress_every: int = 10

    def __post_init__(self):
        if self.input_path is not None:
            self.input_path = Path(self.input_path)
        self.output_path = Path(self.output_path)
        self.failed_path = Path(self.failed_path)
        self.completed_path = Path(self.completed_path)
        if self.shard_dir is None:
            self.shard_dir = default_shard_dir(self.output_path)
        else:
            self.shard_dir = Path(self.shard_dir)
        if not self.workers:
            self.workers = os.cpu_count() or 1

    def validate(self):
        """
        Check the configuration before any work starts.

        Raises:
            ConfigurationError: If a value or path is unusable
        """
        if self.retry.max_retries < 0:
            raise ConfigurationError(f"retry count must be >= 0, got {self.retry.max_retries}")
        if self.workers < 1:
            raise ConfigurationError(f"worker count must be >= 1, got {self.workers}")
        if self.delay < 0:
            raise ConfigurationError(f"delay must be >= 0, got {self.delay}")
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be > 0, got {self.timeout}")

        if self.collect_only:
            return

        if self.input_path is None:
            raise ConfigurationError("an input file is required unless --collect-only is set")
        if not self.input_path.is_file():
            raise ConfigurationError(f"input file not found: {self.input_path}")

        paths = {
            "output": self.output_path,
            "failed": self.failed_path,
            "completed": self.completed_path,
        }
        for name, path in paths.items():
            if path.is_dir():
                raise ConfigurationError(f"{name} path is a directory: {path}")
            if path.resolve() == self.input_path.resolve():
                raise ConfigurationError(f"{name} path would overwrite the input file: {path}")
        if self.shard_dir.exists() and not self.shard_dir.is_dir():
            raise ConfigurationError(f"shard store path is not a directory: {self.shard_dir}")


def default_shard_dir(output_path: Path) -> Path:
    """Shard store location derived from the output file: output.csv -> output.csv.shards"""
    output_path = Path(output_path)
    return output_path.with_name(output_path.name + ".shards")
