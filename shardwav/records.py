"""
shardwav.records - Canonical records and row normalization.

normalize_row() is pure: it turns a RawRow from either reader into a
Record or raises RecordError, and never touches the file system.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath

from shardwav.exceptions import RecordError
from shardwav.readers.base import BYTES_FIELD, PATH_FIELD, RawRow


@dataclass(frozen=True)
class Record:
    """One extractable audio item."""

    index: int
    file_name: str
    audio_bytes: bytes
    transcription: str | None = None

    @property
    def has_transcription(self) -> bool:
        return bool(self.transcription)


def output_file_name(recorded_path: str) -> str:
    """Reduce a recorded audio path to the flat output file name.

    Both "/" and "\\" count as separators, so "clips/a/x.wav" and
    "clips\\a\\x.wav" both give "x.wav".

    Raises:
        ValueError: If no usable base name remains
    """
    name = PurePosixPath(recorded_path.replace("\\", "/")).name
    if not name or name in (".", ".."):
        raise ValueError(f"no file name in path {recorded_path!r}")
    return name


def normalize_row(row: RawRow) -> Record:
    """Convert a raw shard row into a Record.

    Args:
        row: Row produced by a shard reader

    Returns:
        Record with a flat file name and the audio payload as bytes

    Raises:
        RecordError: If the audio cell, payload, or path is unusable
    """
    if row.audio is None:
        raise RecordError(row.index, "audio value is null")

    payload = row.audio.get(BYTES_FIELD)
    if payload is None:
        raise RecordError(row.index, "audio bytes are null")
    if isinstance(payload, (bytearray, memoryview)):
        payload = bytes(payload)
    if not isinstance(payload, bytes):
        raise RecordError(row.index, f"audio bytes have unexpected type {type(payload).__name__}")
    if not payload:
        raise RecordError(row.index, "audio bytes are empty")

    recorded_path = row.audio.get(PATH_FIELD)
    if not recorded_path:
        raise RecordError(row.index, "audio path is null or empty")
    try:
        file_name = output_file_name(str(recorded_path))
    except ValueError as e:
        raise RecordError(row.index, str(e)) from e

    transcription = row.transcription
    if transcription is not None and not isinstance(transcription, str):
        transcription = str(transcription)

    return Record(
        index=row.index,
        file_name=file_name,
        audio_bytes=payload,
        transcription=transcription,
    )
