"""Pytest configuration and shared fixtures."""

import csv
import threading
from pathlib import Path

import pytest

from harvester.config import PipelineConfig, RetryConfig


@pytest.fixture
def workdir(tmp_path):
    """Return a scratch directory for run files."""
    return tmp_path


@pytest.fixture
def make_config(workdir):
    """Build a PipelineConfig rooted in the scratch directory."""
    def _make(**overrides):
        values = dict(
            input_path=workdir / "links.txt",
            output_path=workdir / "output.csv",
            failed_path=workdir / "failed.txt",
            completed_path=workdir / "completed.txt",
            retry=RetryConfig(max_retries=overrides.pop("retries", 2)),
            workers=4,
            progress_every=1000,
        )
        values.update(overrides)
        return PipelineConfig(**values)
    return _make


@pytest.fixture
def write_links(workdir):
    """Write URIs to the input file, one per line."""
    def _write(uris, path=None):
        path = Path(path or workdir / "links.txt")
        path.write_text("\n".join(uris) + "\n", encoding="utf-8")
        return path
    return _write


class RecordingExtractor:
    """Stub extractor that records every call and fails for chosen URIs."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, uri, proxy=None):
        with self._lock:
            self.calls.append(uri)
        if uri in self.fail:
            raise ConnectionError(f"cannot reach {uri}")
        return [{"Url": uri, "Title": f"title of {uri}"}]

    def calls_for(self, uri):
        with self._lock:
            return self.calls.count(uri)


@pytest.fixture
def recording_extractor():
    return RecordingExtractor


def read_csv(path):
    with open(path, "r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        return reader.fieldnames, list(reader)


def write_csv(path, fieldnames, rows):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)
    return path


def echo_extractor(uri, proxy=None):
    """Module-level extractor for loading through a package.module:callable path."""
    return [{"Url": uri, "Proxy": proxy or ""}]
