"""
shardwav.readers.arrow - Arrow IPC shard reader.

Handles the streaming format written by `datasets` as well as the IPC
file format. Batches are read one at a time from a memory map, and the
audio struct is split into its `bytes` and `path` leaves per batch.
"""

from __future__ import annotations

from collections.abc import Iterator

import pyarrow as pa
import pyarrow.ipc as ipc

from shardwav.config import ShardFormat
from shardwav.exceptions import ShardReadError
from shardwav.readers.base import (
    BYTES_FIELD,
    PATH_FIELD,
    RawRow,
    ShardLayout,
    ShardReader,
    resolve_layout,
)

# IPC file format starts with this; the streaming format does not.
ARROW_FILE_MAGIC = b"ARROW1"


class ArrowShardReader(ShardReader):
    format = ShardFormat.ARROW

    def __init__(self, path, batch_size: int = 1024) -> None:
        super().__init__(path, batch_size)
        self._source: pa.MemoryMappedFile | None = None
        self._reader = None

    def open(self) -> ShardLayout:
        try:
            self._source = pa.memory_map(str(self.path), "r")
            magic = self._source.read(len(ARROW_FILE_MAGIC))
            self._source.seek(0)
            if magic == ARROW_FILE_MAGIC:
                self._reader = ipc.open_file(self._source)
            else:
                self._reader = ipc.open_stream(self._source)
        except (OSError, pa.ArrowException) as e:
            self.close()
            raise ShardReadError(self.path, f"Failed to open arrow stream: {e}") from e

        self.layout = resolve_layout(self.path, self._reader.schema)
        return self.layout

    def close(self) -> None:
        self._reader = None
        if self._source is not None:
            self._source.close()
            self._source = None

    @property
    def num_rows(self) -> int | None:
        if isinstance(self._reader, ipc.RecordBatchFileReader):
            return sum(
                self._reader.get_batch(i).num_rows
                for i in range(self._reader.num_record_batches)
            )
        return None

    def _batches(self) -> Iterator[pa.RecordBatch]:
        if isinstance(self._reader, ipc.RecordBatchFileReader):
            for i in range(self._reader.num_record_batches):
                yield self._reader.get_batch(i)
        else:
            yield from self._reader

    def rows(self) -> Iterator[RawRow]:
        if self._reader is None or self.layout is None:
            raise RuntimeError("Reader is not open")

        layout = self.layout
        index = 0
        batches = self._batches()
        while True:
            try:
                batch = next(batches)
            except StopIteration:
                return
            except (OSError, pa.ArrowException) as e:
                raise ShardReadError(self.path, f"Failed to read record batch: {e}") from e

            audio = batch.column(layout.audio_column)
            leaf_names = [field.name for field in audio.type]
            # flatten() folds the struct's own nulls into each leaf
            leaves = dict(zip(leaf_names, audio.flatten()))
            blobs = leaves[BYTES_FIELD]
            names = leaves[PATH_FIELD]
            nulls = audio.is_null().to_pylist()
            transcriptions = (
                batch.column(layout.transcription_column)
                if layout.transcription_column
                else None
            )

            for i in range(batch.num_rows):
                if nulls[i]:
                    cell = None
                else:
                    cell = {BYTES_FIELD: blobs[i].as_py(), PATH_FIELD: names[i].as_py()}
                yield RawRow(
                    index=index,
                    audio=cell,
                    transcription=transcriptions[i].as_py() if transcriptions is not None else None,
                )
                index += 1
