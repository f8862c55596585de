"""
shardwav.cli - Typer CLI entry point.

Turns command-line options into an ExtractionConfig, runs the extraction
and maps the outcome onto the process exit status.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from shardwav import __version__
from shardwav.config import ShardFormat, build_config
from shardwav.exceptions import ConfigError, MetadataError, ShardError, ValidationError
from shardwav.logging import configure_logging
from shardwav.pipeline import run_extraction

EXIT_FATAL = 1
EXIT_CONFIG = 2

app = typer.Typer(
    name="shardwav",
    help="Extract audio files from Arrow or Parquet dataset shards.\n\n"
    "Writes each embedded audio payload to its own file and optionally a "
    "file_name,transcription CSV. Existing files are skipped, so an "
    "interrupted run can simply be started again.",
    add_completion=False,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"shardwav {__version__}")
        raise typer.Exit()


@app.command()
def extract(
    input: Path | None = typer.Option(
        None, "--input", "-i", help="Single shard file to process"
    ),
    input_dir: Path | None = typer.Option(
        None, "--input-dir", "-d", help="Directory of shard files to process"
    ),
    fmt: ShardFormat | None = typer.Option(
        None,
        "--format",
        "-f",
        case_sensitive=False,
        help="Shard format: arrow or parquet [default: parquet]",
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Directory to write audio files into"
    ),
    threads: int | None = typer.Option(
        None, "--threads", "-t", min=1, help="Number of writer threads [default: 3]"
    ),
    metadata_file: Path | None = typer.Option(
        None, "--metadata-file", "-m", help="CSV file for file_name,transcription rows"
    ),
    fail_fast: bool = typer.Option(
        False, "--fail-fast", help="Stop at the first shard with a fatal error"
    ),
    batch_size: int | None = typer.Option(
        None, "--batch-size", min=1, help="Rows per batch when reading parquet [default: 1024]"
    ),
    config_file: Path | None = typer.Option(
        None, "--config", "-c", help="YAML file with default option values"
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Extract audio payloads from dataset shards into individual files."""
    configure_logging(verbose)

    cli_values = {
        "input": input,
        "input_dir": input_dir,
        "format": fmt,
        "output": output,
        "threads": threads,
        "metadata_file": metadata_file,
        "fail_fast": True if fail_fast else None,
        "batch_size": batch_size,
    }

    try:
        config = build_config(cli_values, config_file)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(EXIT_CONFIG)

    source = config.input or config.input_dir
    console.print(
        f"[cyan]Extracting {config.format.value} shards from {source} "
        f"with {config.threads} thread(s)...[/cyan]\n"
    )

    try:
        summary = run_extraction(config, console=console)
    except ValidationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(EXIT_CONFIG)
    except (ShardError, MetadataError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(EXIT_FATAL)

    console.print(
        f"\n[green]✓[/green] Written {summary.written}, "
        f"skipped {summary.skipped}, failed {summary.failed}"
    )

    if not summary.ok:
        for report in summary.shards:
            if report.error is not None:
                console.print(f"[red]Fatal: {report.error}[/red]")
        raise typer.Exit(EXIT_FATAL)
