"""
shardwav.pipeline - Run orchestration.

Resolves the input shards, then for each shard in turn runs
read → normalize → dispatch on a worker pool that lives for the whole
run, and finally writes the metadata CSV if one was requested.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from shardwav.config import ExtractionConfig, ShardFormat
from shardwav.dispatch import ExtractionResult, dispatch_shard
from shardwav.exceptions import ShardError, ShardReadError
from shardwav.logging import logger
from shardwav.metadata import MetadataSink
from shardwav.readers import get_reader
from shardwav.utils import format_bytes, format_duration
from shardwav.validation import (
    check_disk_space,
    prepare_metadata_file,
    prepare_output_dir,
    validate_shard_file,
)


@dataclass
class ShardReport:
    path: Path
    result: ExtractionResult | None = None
    error: ShardError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RunSummary:
    shards: list[ShardReport] = field(default_factory=list)
    metadata_rows: int | None = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return all(report.ok for report in self.shards)

    def total(self, attr: str) -> int:
        return sum(getattr(r.result, attr) for r in self.shards if r.result is not None)

    @property
    def written(self) -> int:
        return self.total("written")

    @property
    def skipped(self) -> int:
        return self.total("skipped")

    @property
    def failed(self) -> int:
        return self.total("failed")

    @property
    def bytes_written(self) -> int:
        return self.total("bytes_written")


class ExtractionContext:
    """Run-scoped state shared by every shard.

    Owns the worker pool and the metadata sink (if any). Use as a context
    manager; the pool is shut down on exit.
    """

    def __init__(self, config: ExtractionConfig) -> None:
        self.config = config
        self.output_dir = config.output
        self.sink = MetadataSink() if config.metadata_file else None
        self._executor: ThreadPoolExecutor | None = None

    def __enter__(self) -> ExtractionContext:
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.threads,
            thread_name_prefix="shardwav-writer",
        )
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    @property
    def executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            raise RuntimeError("ExtractionContext is not active")
        return self._executor

    def process_shard(self, path: Path) -> ExtractionResult:
        """Run one shard through the pipeline.

        Metadata rows of files written before a mid-shard read failure are
        still collected.

        Raises:
            ShardError: On a fatal shard-level problem
        """
        validate_shard_file(path, self.config.format)

        with get_reader(path, self.config.format, self.config.batch_size) as reader:
            num_rows = reader.num_rows
            logger.info("Processing %s (%s rows)", path, "unknown" if num_rows is None else num_rows)
            try:
                result = dispatch_shard(
                    reader.rows(),
                    output_dir=self.output_dir,
                    executor=self.executor,
                    max_in_flight=self.config.threads,
                    shard=path,
                )
            except ShardError as e:
                if self.sink is not None and e.result is not None:
                    self.sink.add_shard(e.result.metadata)
                raise

        if self.sink is not None:
            self.sink.add_shard(result.metadata)
        return result


def resolve_shards(config: ExtractionConfig) -> list[Path]:
    """Resolve the shard paths for a run.

    A single --input file is used as-is. For --input-dir, every regular
    file whose suffix matches the declared format is used, sorted by name.

    Raises:
        ShardReadError: If the input directory does not exist
    """
    if config.input is not None:
        return [config.input]

    input_dir = config.input_dir
    if input_dir is None or not input_dir.is_dir():
        raise ShardReadError(input_dir, "Input directory does not exist or is not a directory")

    suffix = ShardFormat(config.format).suffix
    return sorted(
        (p for p in input_dir.iterdir() if p.is_file() and p.suffix.lower() == suffix),
        key=lambda p: p.name,
    )


def estimate_required_bytes(shards: list[Path]) -> int:
    """Rough upper bound on output size: the shards' own size on disk."""
    total = 0
    for shard in shards:
        try:
            total += shard.stat().st_size
        except OSError:
            continue
    return total


def run_extraction(config: ExtractionConfig, console: Any = None) -> RunSummary:
    """Extract audio from every shard described by the config.

    Args:
        config: Validated run configuration
        console: Optional rich console for a summary table

    Returns:
        RunSummary with one report per attempted shard

    Raises:
        ValidationError: If the output directory or metadata file path is unusable
        ShardReadError: If the input directory cannot be listed
        MetadataError: If the metadata CSV cannot be written at the end
    """
    started = time.monotonic()
    prepare_output_dir(config.output)
    if config.metadata_file is not None:
        prepare_metadata_file(config.metadata_file)
    shards = resolve_shards(config)

    if not shards:
        logger.warning("No %s shards found in %s", config.format.value, config.input_dir)

    disk = check_disk_space(config.output, estimate_required_bytes(shards))
    if not disk["sufficient"]:
        logger.warning(
            "Output may not fit: shards total %s, %s free",
            format_bytes(disk["required_bytes"]),
            format_bytes(disk["available_bytes"]),
        )

    summary = RunSummary()

    with ExtractionContext(config) as context:
        for shard in shards:
            if console:
                console.print(f"[dim]Processing {shard}...[/dim]")
            try:
                result = context.process_shard(shard)
            except ShardError as e:
                logger.error("%s", e)
                summary.shards.append(ShardReport(path=shard, result=e.result, error=e))
                if config.fail_fast:
                    break
                continue
            summary.shards.append(ShardReport(path=shard, result=result))

        if context.sink is not None and config.metadata_file is not None:
            logger.info("Writing metadata to %s", config.metadata_file)
            summary.metadata_rows = context.sink.write_csv(config.metadata_file)

    summary.elapsed_seconds = time.monotonic() - started

    if console:
        render_summary(summary, console)

    return summary


def render_summary(summary: RunSummary, console: Any) -> None:
    """Print the per-shard summary table."""
    from rich.table import Table

    table = Table(title="Audio Extraction")
    table.add_column("Shard", style="cyan")
    table.add_column("Written", justify="right", style="green")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right", style="yellow")
    table.add_column("Size", justify="right")
    table.add_column("Status")

    for report in summary.shards:
        error = f"[red]Error: {report.error.message}[/red]" if report.error else None
        if report.result is None:
            table.add_row(report.path.name, "-", "-", "-", "-", error)
            continue
        result = report.result
        if error:
            status = error
        elif result.failed == 0:
            status = "[green]✓ Done[/green]"
        else:
            status = "[yellow]Partial[/yellow]"
        table.add_row(
            report.path.name,
            str(result.written),
            str(result.skipped),
            str(result.failed),
            format_bytes(result.bytes_written),
            status,
        )

    console.print(table)
    if summary.metadata_rows is not None:
        console.print(f"[dim]  {summary.metadata_rows} metadata row(s) written[/dim]")
    console.print(f"[dim]  Finished in {format_duration(summary.elapsed_seconds)}[/dim]")
