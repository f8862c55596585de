"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.ipc as ipc
import pyarrow.parquet as pq
import pytest

AUDIO_TYPE = pa.struct(
    [
        ("bytes", pa.binary()),
        ("path", pa.string()),
        ("sampling_rate", pa.int32()),
    ]
)


def build_table(
    rows: list[dict[str, Any] | None],
    transcription_column: str | None = "transcription",
) -> pa.Table:
    """Build a dataset-style table.

    Each row is a dict with "path", "bytes" and optionally "transcription";
    None stands for a row whose whole audio struct is null.
    """
    audio = []
    transcriptions = []
    for row in rows:
        if row is None:
            audio.append(None)
            transcriptions.append(None)
            continue
        audio.append(
            {
                "bytes": row.get("bytes"),
                "path": row.get("path"),
                "sampling_rate": row.get("sampling_rate", 16000),
            }
        )
        transcriptions.append(row.get("transcription"))

    columns = {"audio": pa.array(audio, type=AUDIO_TYPE)}
    if transcription_column:
        columns[transcription_column] = pa.array(transcriptions, type=pa.string())
    return pa.table(columns)


def write_table(
    path: Path,
    table: pa.Table,
    fmt: str = "parquet",
    chunk_size: int | None = None,
) -> Path:
    """Write a table as a parquet file, arrow stream, or arrow IPC file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "parquet":
        pq.write_table(table, path, row_group_size=chunk_size)
        return path

    with pa.OSFile(str(path), "wb") as sink:
        if fmt == "arrow-file":
            with ipc.new_file(sink, table.schema) as writer:
                writer.write_table(table, max_chunksize=chunk_size)
        else:
            with ipc.new_stream(sink, table.schema) as writer:
                writer.write_table(table, max_chunksize=chunk_size)
    return path


@pytest.fixture
def sample_rows() -> list[dict[str, Any]]:
    """Two clips: one with a transcription, one with an empty one."""
    return [
        {"path": "clips/a.wav", "bytes": b"\x52\x49\x46\x46", "transcription": "hello"},
        {"path": "clips/b.wav", "bytes": b"\x00\x01", "transcription": ""},
    ]


@pytest.fixture
def write_shard() -> Callable[..., Path]:
    """Factory writing an arbitrary table to a path: write_shard(path, table, fmt)."""
    return write_table


@pytest.fixture
def make_shard(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing dataset rows as a shard under tmp_path/shards.

    fmt is "parquet", "arrow" (IPC stream) or "arrow-file" (IPC file).
    """

    def _make(
        name: str,
        rows: list[dict[str, Any] | None],
        fmt: str = "parquet",
        transcription_column: str | None = "transcription",
        chunk_size: int | None = None,
    ) -> Path:
        table = build_table(rows, transcription_column=transcription_column)
        return write_table(tmp_path / "shards" / name, table, fmt=fmt, chunk_size=chunk_size)

    return _make


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    path = tmp_path / "out"
    path.mkdir()
    return path


@pytest.fixture
def clip_rows() -> Callable[[str, int], list[dict[str, Any]]]:
    """Factory for rows with unique names and distinct payloads."""

    def _rows(prefix: str, count: int) -> list[dict[str, Any]]:
        return [
            {
                "path": f"{prefix}/{prefix}_{i:03d}.wav",
                "bytes": f"{prefix}-{i}".encode() * (i + 1),
                "transcription": f"{prefix} line {i}",
            }
            for i in range(count)
        ]

    return _rows
