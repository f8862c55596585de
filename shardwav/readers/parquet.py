"""
shardwav.readers.parquet - Parquet shard reader.

Reads only the audio and transcription columns, one record batch at a time.
"""

from __future__ import annotations

from collections.abc import Iterator

import pyarrow as pa
import pyarrow.parquet as pq

from shardwav.config import ShardFormat
from shardwav.exceptions import ShardReadError
from shardwav.readers.base import RawRow, ShardLayout, ShardReader, resolve_layout


class ParquetShardReader(ShardReader):
    format = ShardFormat.PARQUET

    def __init__(self, path, batch_size: int = 1024) -> None:
        super().__init__(path, batch_size)
        self._file: pq.ParquetFile | None = None

    def open(self) -> ShardLayout:
        try:
            self._file = pq.ParquetFile(str(self.path))
        except (OSError, pa.ArrowException) as e:
            raise ShardReadError(self.path, f"Failed to open parquet file: {e}") from e

        self.layout = resolve_layout(self.path, self._file.schema_arrow)
        return self.layout

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    @property
    def num_rows(self) -> int | None:
        if self._file is None:
            return None
        return self._file.metadata.num_rows

    def rows(self) -> Iterator[RawRow]:
        if self._file is None or self.layout is None:
            raise RuntimeError("Reader is not open")

        layout = self.layout
        index = 0
        batches = self._file.iter_batches(batch_size=self.batch_size, columns=layout.columns)
        while True:
            try:
                batch = next(batches)
            except StopIteration:
                return
            except (OSError, pa.ArrowException) as e:
                raise ShardReadError(self.path, f"Failed to read row group: {e}") from e

            audio = batch.column(layout.audio_column)
            transcriptions = (
                batch.column(layout.transcription_column)
                if layout.transcription_column
                else None
            )
            for i in range(batch.num_rows):
                yield RawRow(
                    index=index,
                    audio=audio[i].as_py(),
                    transcription=transcriptions[i].as_py() if transcriptions is not None else None,
                )
                index += 1
