"""
Checkpoint ledger for resumable runs.

Every URI that completed successfully is appended to a plain text file, one
per line. The file survives crashes and is read once at startup to skip work
that is already done.
"""

import threading
from pathlib import Path
from typing import Set

from harvester.exceptions import LedgerIOError


class AppendOnlyLog:
    """Line-oriented file that is only ever appended to."""

    def __init__(self, path):
        """
        Initialize log backed by a file.

        Args:
            path: File holding one entry per line
        """
        self.path = Path(path)
        self._lock = threading.Lock()

    def exists(self) -> bool:
        return self.path.is_file()

    def append(self, entry: str):
        """
        Append one entry as a single write.

        The file is opened, written and closed for every entry, so a crash
        never leaves a buffered tail behind.

        Args:
            entry: Text without newlines

        Raises:
            LedgerIOError: If the file cannot be written
        """
        line = entry.replace("\r", " ").replace("\n", " ") + "\n"
        with self._lock:
            try:
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line)
            except OSError as e:
                raise LedgerIOError(self.path, e.strerror or str(e)) from e

    def read(self) -> Set[str]:
        """
        Read all entries.

        Returns:
            Set of non-empty stripped lines, empty if the file does not exist
        """
        if not self.exists():
            return set()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return {line.strip() for line in f if line.strip()}
        except OSError as e:
            raise LedgerIOError(self.path, e.strerror or str(e)) from e

    def reset(self):
        """Truncate the file, creating it if needed."""
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text("", encoding="utf-8")
            except OSError as e:
                raise LedgerIOError(self.path, e.strerror or str(e)) from e

    def delete(self):
        with self._lock:
            try:
                self.path.unlink(missing_ok=True)
            except OSError as e:
                raise LedgerIOError(self.path, e.strerror or str(e)) from e


class CheckpointLedger(AppendOnlyLog):
    """URIs that completed successfully in any run, past or current."""

    def mark_completed(self, uri: str):
        self.append(uri)

    def completed(self) -> Set[str]:
        return self.read()

    def discard(self):
        """Throw the ledger away after the operator chose to start over."""
        if self.exists():
            print(f"Discarding checkpoint ledger {self.path}")
        self.delete()


class FailedLog(AppendOnlyLog):
    """URIs whose retries were exhausted in the current run."""

    def record_failed(self, uri: str):
        self.append(uri)
