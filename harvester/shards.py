"""
Shard store and shard collector.

Each successful fetch writes its records to a small CSV file of its own,
named `<link key>-<uuid>.csv` where the link key is a hash of the URI. After
the run the collector merges every shard into the final output and removes
the shard directory.
"""

import csv
import hashlib
import os
import shutil
import uuid
from pathlib import Path
from typing import Iterable, List, Optional

from harvester.exceptions import ShardCollectionError, ShardWriteError

SHARD_SUFFIX = ".csv"
PREVIOUS_PREFIX = "previous-"
LINK_KEY_LENGTH = 16


def link_key(uri: str) -> str:
    """Filename-safe key identifying the link a shard was fetched from."""
    return hashlib.sha1(uri.encode("utf-8")).hexdigest()[:LINK_KEY_LENGTH]


def shard_link_key(path: Path) -> Optional[str]:
    """
    Link key encoded in a shard's name.

    Returns:
        The key, or None for adopted outputs and files not named by write_shard
    """
    if path.name.startswith(PREVIOUS_PREFIX):
        return None
    key, sep, _ = path.stem.partition("-")
    if not sep or len(key) != LINK_KEY_LENGTH:
        return None
    return key


class ShardStore:
    """Directory of independently written result files."""

    def __init__(self, shard_dir):
        """
        Initialize store.

        Args:
            shard_dir: Directory holding the shards, created on first write
        """
        self.shard_dir = Path(shard_dir)

    def exists(self) -> bool:
        return self.shard_dir.is_dir()

    def _ensure_dir(self):
        self.shard_dir.mkdir(parents=True, exist_ok=True)

    def write_shard(self, uri: str, records: List[dict]) -> Optional[Path]:
        """
        Write records to a new, uniquely named shard.

        The header is the union of record keys in first-seen order. The shard
        is written under a temporary name and renamed, so the collector never
        sees a half-written file.

        Args:
            uri: Link the records were fetched from
            records: Flat records from one fetch

        Returns:
            Path of the new shard, or None when there were no records

        Raises:
            ShardWriteError: If the shard cannot be written
        """
        if not records:
            return None

        fieldnames = []
        for record in records:
            for key in record:
                if key not in fieldnames:
                    fieldnames.append(key)

        name = f"{link_key(uri)}-{uuid.uuid4().hex}"
        path = self.shard_dir / f"{name}{SHARD_SUFFIX}"
        temp_path = self.shard_dir / f".{name}.tmp"
        try:
            self._ensure_dir()
            with open(temp_path, "w", encoding="utf-8", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=fieldnames, restval="")
                writer.writeheader()
                writer.writerows(records)
            os.replace(temp_path, path)
        except OSError as e:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                pass
            raise ShardWriteError(path, e.strerror or str(e)) from e
        return path

    def adopt(self, path) -> Path:
        """
        Move a partial output from an earlier run into the store.

        Adopted files sort first, so their header becomes the merge schema.

        Args:
            path: Existing output file

        Returns:
            New location inside the store
        """
        target = self.shard_dir / f"{PREVIOUS_PREFIX}{uuid.uuid4().hex}{SHARD_SUFFIX}"
        try:
            self._ensure_dir()
            shutil.move(str(path), str(target))
        except OSError as e:
            raise ShardWriteError(path, e.strerror or str(e)) from e
        print(f"Moved partial output {path} into shard store as {target.name}")
        return target

    def list_shards(self) -> List[Path]:
        """
        Shards in merge order: adopted outputs first, then by name.

        Returns:
            List of shard paths, empty if the store does not exist
        """
        if not self.exists():
            return []
        shards = [
            p for p in self.shard_dir.iterdir()
            if p.is_file() and p.suffix == SHARD_SUFFIX and not p.name.startswith(".")
        ]
        return sorted(shards, key=lambda p: (not p.name.startswith(PREVIOUS_PREFIX), p.name))

    def count(self) -> int:
        return len(self.list_shards())

    def remove(self):
        shutil.rmtree(self.shard_dir)


class ShardCollector:
    """Merges a shard store into one output file."""

    def __init__(self, store: ShardStore, output_path):
        """
        Initialize collector.

        Args:
            store: ShardStore to merge
            output_path: Final output file
        """
        self.store = store
        self.output_path = Path(output_path)

    def collect(self) -> int:
        """
        Merge all shards into the output, then delete the shard directory.

        The first shard's header is the output schema. Later shards are
        projected onto it: missing fields are left blank, extra fields are
        dropped. Every record of every selected shard is written, identical
        rows included. When one link has several shards (it was fetched again
        after a crash) only the first is merged. Without any shards this is a
        no-op and an existing output is left untouched.

        Returns:
            Number of rows written

        Raises:
            ShardCollectionError: If a shard cannot be read; the store and any
                existing output are left as they were
        """
        if not self.store.exists():
            return 0

        shards = self.store.list_shards()
        if not shards:
            print(f"No shards to collect in {self.store.shard_dir}")
            self.store.remove()
            return 0

        selected = self._one_shard_per_link(shards)
        skipped = len(shards) - len(selected)

        print(f"Collecting {len(selected)} shards into {self.output_path}...")
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.output_path.with_name(f".{self.output_path.name}.{uuid.uuid4().hex}.tmp")

        try:
            rows_written = self._merge(selected, temp_path)
            os.replace(temp_path, self.output_path)
        finally:
            if temp_path.exists():
                temp_path.unlink()

        self.store.remove()
        if skipped:
            print(f"  Skipped {skipped} shards of links fetched more than once")
        print(f"✓ Merged {rows_written} rows into {self.output_path}")
        return rows_written

    @staticmethod
    def _one_shard_per_link(shards: Iterable[Path]) -> List[Path]:
        seen = set()
        selected = []
        for shard in shards:
            key = shard_link_key(shard)
            if key is not None:
                if key in seen:
                    continue
                seen.add(key)
            selected.append(shard)
        return selected

    def _merge(self, shards: Iterable[Path], temp_path: Path) -> int:
        schema = None
        writer = None
        rows_written = 0

        with open(temp_path, "w", encoding="utf-8", newline="") as out:
            for shard in shards:
                fieldnames, records = self._read_shard(shard)
                if writer is None and fieldnames:
                    schema = fieldnames
                    writer = csv.DictWriter(out, fieldnames=schema, restval="", extrasaction="ignore")
                    writer.writeheader()

                for record in records:
                    writer.writerow({name: record.get(name) or "" for name in schema})
                    rows_written += 1

        return rows_written

    def _read_shard(self, shard: Path):
        try:
            with open(shard, "r", encoding="utf-8", newline="") as f:
                reader = csv.DictReader(f)
                if reader.fieldnames is None:
                    return [], []
                return list(reader.fieldnames), list(reader)
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            raise ShardCollectionError(shard, str(e)) from e
