"""
shardwav.readers - Shard readers for the supported columnar formats.

The reader class is chosen once per shard from the declared format;
everything downstream sees only RawRow values.
"""

from __future__ import annotations

from pathlib import Path

from shardwav.config import ShardFormat
from shardwav.readers.arrow import ArrowShardReader
from shardwav.readers.base import RawRow, ShardLayout, ShardReader
from shardwav.readers.parquet import ParquetShardReader

READERS: dict[ShardFormat, type[ShardReader]] = {
    ShardFormat.ARROW: ArrowShardReader,
    ShardFormat.PARQUET: ParquetShardReader,
}


def get_reader(path: Path, fmt: ShardFormat, batch_size: int = 1024) -> ShardReader:
    """Create an unopened reader for a shard in the given format."""
    return READERS[ShardFormat(fmt)](path, batch_size=batch_size)


__all__ = [
    "ArrowShardReader",
    "ParquetShardReader",
    "RawRow",
    "ShardLayout",
    "ShardReader",
    "get_reader",
]
