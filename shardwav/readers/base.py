"""
shardwav.readers.base - Shared reader contract and schema resolution.

Both readers locate the same logical fields: an `audio` struct column with
`bytes` and `path` leaves, plus an optional transcription column.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pyarrow as pa

from shardwav.config import ShardFormat
from shardwav.exceptions import SchemaError

AUDIO_COLUMN = "audio"
BYTES_FIELD = "bytes"
PATH_FIELD = "path"
TRANSCRIPTION_COLUMNS = ("transcription", "sentence")


@dataclass(frozen=True)
class RawRow:
    """One row as read from a shard, before normalization.

    `audio` is the audio struct cell as a mapping (None when the cell is
    null); `index` is the row position within the shard.
    """

    index: int
    audio: dict[str, Any] | None
    transcription: Any = None


@dataclass(frozen=True)
class ShardLayout:
    """Where the fields of interest live in a shard schema."""

    audio_column: str
    transcription_column: str | None

    @property
    def columns(self) -> list[str]:
        if self.transcription_column:
            return [self.audio_column, self.transcription_column]
        return [self.audio_column]


def _is_binary(data_type: pa.DataType) -> bool:
    return (
        pa.types.is_binary(data_type)
        or pa.types.is_large_binary(data_type)
        or pa.types.is_fixed_size_binary(data_type)
    )


def _is_string(data_type: pa.DataType) -> bool:
    return pa.types.is_string(data_type) or pa.types.is_large_string(data_type)


def resolve_layout(path: Path, schema: pa.Schema) -> ShardLayout:
    """Locate the audio struct and transcription column in a schema.

    Raises:
        SchemaError: If the audio column or its bytes/path leaves are missing
    """
    if AUDIO_COLUMN not in schema.names:
        raise SchemaError(path, f"Missing '{AUDIO_COLUMN}' column (found: {', '.join(schema.names)})")
    if schema.names.count(AUDIO_COLUMN) > 1:
        raise SchemaError(path, f"Ambiguous schema: '{AUDIO_COLUMN}' appears more than once")

    audio_type = schema.field(AUDIO_COLUMN).type
    if not pa.types.is_struct(audio_type):
        raise SchemaError(path, f"'{AUDIO_COLUMN}' column is {audio_type}, expected a struct")

    leaves = {field.name: field.type for field in audio_type}
    if BYTES_FIELD not in leaves:
        raise SchemaError(path, f"'{AUDIO_COLUMN}' struct has no '{BYTES_FIELD}' field")
    if not _is_binary(leaves[BYTES_FIELD]):
        raise SchemaError(
            path, f"'{AUDIO_COLUMN}.{BYTES_FIELD}' is {leaves[BYTES_FIELD]}, expected binary"
        )
    if PATH_FIELD not in leaves:
        raise SchemaError(path, f"'{AUDIO_COLUMN}' struct has no '{PATH_FIELD}' field")
    if not _is_string(leaves[PATH_FIELD]):
        raise SchemaError(
            path, f"'{AUDIO_COLUMN}.{PATH_FIELD}' is {leaves[PATH_FIELD]}, expected string"
        )

    transcription_column = next(
        (name for name in TRANSCRIPTION_COLUMNS if name in schema.names),
        None,
    )
    return ShardLayout(audio_column=AUDIO_COLUMN, transcription_column=transcription_column)


class ShardReader(ABC):
    """Streams raw rows out of one shard.

    Use as a context manager: entering opens the file and validates the
    schema, so a SchemaError surfaces before any row is produced.
    """

    format: ShardFormat

    def __init__(self, path: Path, batch_size: int = 1024) -> None:
        self.path = path
        self.batch_size = batch_size
        self.layout: ShardLayout | None = None

    def __enter__(self) -> ShardReader:
        try:
            self.open()
        except BaseException:
            self.close()
            raise
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @abstractmethod
    def open(self) -> ShardLayout:
        """Open the shard and resolve its layout."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying file."""

    @abstractmethod
    def rows(self) -> Iterator[RawRow]:
        """Lazily yield rows in shard order."""

    @property
    def num_rows(self) -> int | None:
        """Row count if known without reading the whole shard."""
        return None
