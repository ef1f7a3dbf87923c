"""
Input link readers.

Two formats are accepted:
- plain text, one URI per line (blank lines and lines starting with # are skipped)
- CSV with a header containing a Url column and optionally an Id column
"""

import csv
from pathlib import Path
from typing import Iterable, List, Set

from harvester.exceptions import ConfigurationError
from harvester.models import Link

URL_COLUMNS = ("url", "uri", "link")
ID_COLUMNS = ("id", "correlationid", "correlation_id")


def load_links(path) -> List[Link]:
    """
    Load links from a text or CSV file, keeping input order and duplicates.

    Args:
        path: Input file

    Returns:
        List of Link

    Raises:
        ConfigurationError: If the file is missing or a CSV has no URL column
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"input file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            first_line = f.readline()
            f.seek(0)
            if _looks_like_csv_header(first_line):
                return _read_csv(f, path)
            return [Link(uri=line.strip()) for line in f if _is_entry(line)]
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"cannot read input file {path}: {e}") from e


def _is_entry(line: str) -> bool:
    line = line.strip()
    return bool(line) and not line.startswith("#")


def _looks_like_csv_header(line: str) -> bool:
    columns = [c.strip().strip('"').lower() for c in line.split(",")]
    return any(c in URL_COLUMNS for c in columns)


def _read_csv(f, path: Path) -> List[Link]:
    reader = csv.DictReader(f)
    lookup = {name.strip().lower(): name for name in reader.fieldnames or []}
    url_column = next((lookup[c] for c in URL_COLUMNS if c in lookup), None)
    id_column = next((lookup[c] for c in ID_COLUMNS if c in lookup), None)
    if url_column is None:
        raise ConfigurationError(f"no Url column in {path}")

    links = []
    for row in reader:
        uri = (row.get(url_column) or "").strip()
        if not uri:
            continue
        correlation_id = (row.get(id_column) or "").strip() if id_column else ""
        links.append(Link(uri=uri, correlation_id=correlation_id or None))
    return links


def remaining_links(links: Iterable[Link], completed: Set[str]) -> List[Link]:
    """
    Set difference of input links and completed URIs.

    Duplicate URIs collapse to their first occurrence, so repeats in the
    input can neither defeat the ledger filter nor be fetched twice.

    Args:
        links: Links in input order
        completed: URIs already in the checkpoint ledger

    Returns:
        Links still to process, in input order
    """
    seen = set(completed)
    remaining = []
    for link in links:
        if link.uri in seen:
            continue
        seen.add(link.uri)
        remaining.append(link)
    return remaining
