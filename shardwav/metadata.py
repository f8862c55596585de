"""
shardwav.metadata - Transcription index CSV.

Collects metadata rows shard by shard and writes them as
`file_name,transcription` CSV once the run is over.
"""

from __future__ import annotations

import csv
import io
import threading
from collections.abc import Iterable
from pathlib import Path

from shardwav.dispatch import MetadataRow
from shardwav.exceptions import MetadataError
from shardwav.io import write_text

CSV_HEADER = ("file_name", "transcription")


class MetadataSink:
    """Thread-safe, ordered collection of metadata rows for one run.

    Each shard's block is appended whole, so rows keep source order
    within a shard and shards keep processing order.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: list[MetadataRow] = []

    def add_shard(self, rows: Iterable[MetadataRow]) -> None:
        block = list(rows)
        with self._lock:
            self._rows.extend(block)

    @property
    def rows(self) -> list[MetadataRow]:
        with self._lock:
            return list(self._rows)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)

    def to_csv(self) -> str:
        """Render the collected rows as RFC 4180 CSV text with a header."""
        buffer = io.StringIO(newline="")
        writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
        writer.writerow(CSV_HEADER)
        for row in self.rows:
            writer.writerow((row.file_name, row.transcription))
        return buffer.getvalue()

    def write_csv(self, path: Path) -> int:
        """Write the CSV atomically.

        Returns:
            Number of data rows written

        Raises:
            MetadataError: If the file cannot be written
        """
        count = len(self)
        try:
            write_text(path, self.to_csv(), newline="")
        except OSError as e:
            raise MetadataError(f"Failed to write metadata file {path}: {e}") from e
        return count
