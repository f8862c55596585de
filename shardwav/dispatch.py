"""
shardwav.dispatch - Concurrent extraction of one shard's records.

Records are normalized on the calling thread and handed to a caller-owned
executor, with at most `max_in_flight` writes outstanding at any time so
the reader never runs far ahead of the disk. Writes finish in any order;
metadata rows are re-sorted by source row index before being returned.
"""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import FIRST_COMPLETED, Executor, Future, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from shardwav.exceptions import RecordError, ShardError
from shardwav.logging import logger
from shardwav.readers.base import RawRow
from shardwav.records import Record, normalize_row
from shardwav.writer import WriteResult, WriteStatus, write_audio_file

DUPLICATE_NAME_REASON = "duplicate file name in shard"


@dataclass(frozen=True)
class MetadataRow:
    file_name: str
    transcription: str


@dataclass(frozen=True)
class ExtractionTask:
    """Write one record into the output directory. Safe to retry."""

    record: Record
    output_dir: Path

    def run(self) -> WriteResult:
        return write_audio_file(self.output_dir, self.record.file_name, self.record.audio_bytes)


@dataclass
class ExtractionResult:
    """Per-shard counts plus metadata rows in source row order."""

    shard: Path | None = None
    written: int = 0
    skipped: int = 0
    failed: int = 0
    bytes_written: int = 0
    metadata: list[MetadataRow] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.written + self.skipped + self.failed

    def record_failure(self, index: int, reason: str) -> None:
        self.failed += 1
        self.errors.append({"row": index, "error": reason})
        logger.warning("%s: row %d skipped: %s", self.shard or "<shard>", index, reason)


def dispatch_shard(
    rows: Iterable[RawRow],
    output_dir: Path,
    executor: Executor,
    max_in_flight: int,
    shard: Path | None = None,
) -> ExtractionResult:
    """Extract every record of one shard using the given executor.

    Within the shard each file name is handed to at most one task; a later
    row with the same name fails instead of racing the first. Names seen in
    earlier shards are left to the writer's existence check.

    Args:
        rows: Raw rows in shard order
        output_dir: Existing output directory
        executor: Worker pool owned by the caller
        max_in_flight: Upper bound on outstanding write tasks (>= 1)
        shard: Shard path, for reporting

    Returns:
        ExtractionResult for the shard

    Raises:
        ShardError: Propagated from the reader once outstanding writes
            have finished, with the partial result attached as `.result`
    """
    if max_in_flight < 1:
        raise ValueError("max_in_flight must be at least 1")

    result = ExtractionResult(shard=shard)
    pending: dict[Future[WriteResult], ExtractionTask] = {}
    metadata_by_index: dict[int, MetadataRow] = {}
    claimed_names: set[str] = set()

    def collect(future: Future[WriteResult], task: ExtractionTask) -> None:
        record = task.record
        try:
            outcome = future.result()
        except Exception as e:
            result.record_failure(record.index, f"write task crashed: {e}")
            return

        if outcome.status is WriteStatus.WRITTEN:
            result.written += 1
            result.bytes_written += outcome.bytes_written
        elif outcome.status is WriteStatus.SKIPPED_EXISTING:
            result.skipped += 1
            logger.debug("%s: %s already exists, skipped", shard, record.file_name)
        else:
            result.record_failure(record.index, f"{record.file_name}: {outcome.reason}")
            return

        if record.has_transcription:
            metadata_by_index[record.index] = MetadataRow(record.file_name, record.transcription)

    def drain(return_when: str) -> None:
        done, _ = wait(pending, return_when=return_when)
        for future in done:
            collect(future, pending.pop(future))

    def finish() -> ExtractionResult:
        while pending:
            drain(FIRST_COMPLETED)
        result.metadata = [metadata_by_index[i] for i in sorted(metadata_by_index)]
        return result

    try:
        for row in rows:
            try:
                record = normalize_row(row)
            except RecordError as e:
                result.record_failure(e.index, e.message)
                continue

            if record.file_name in claimed_names:
                result.record_failure(record.index, f"{record.file_name}: {DUPLICATE_NAME_REASON}")
                continue
            claimed_names.add(record.file_name)

            if len(pending) >= max_in_flight:
                drain(FIRST_COMPLETED)

            task = ExtractionTask(record=record, output_dir=output_dir)
            pending[executor.submit(task.run)] = task
    except ShardError as e:
        e.result = finish()
        raise
    finally:
        while pending:
            drain(FIRST_COMPLETED)

    return finish()
