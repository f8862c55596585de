"""
shardwav.writer - Idempotent audio file writes.

A file that already exists under the target name is never touched. This
is the whole resume mechanism: content is not compared, so a re-run over
a partly filled output directory only writes what is missing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from shardwav.io import write_bytes


class WriteStatus(str, Enum):
    WRITTEN = "written"
    SKIPPED_EXISTING = "skipped_existing"
    FAILED = "failed"


@dataclass(frozen=True)
class WriteResult:
    status: WriteStatus
    path: Path
    bytes_written: int = 0
    reason: str | None = None

    @property
    def ok(self) -> bool:
        """True when the file is present on disk after the call."""
        return self.status is not WriteStatus.FAILED


def write_audio_file(output_dir: Path, file_name: str, data: bytes) -> WriteResult:
    """Write `data` to `output_dir / file_name` unless that file exists.

    Args:
        output_dir: Existing output directory
        file_name: Flat file name (no directory components)
        data: Audio payload, written verbatim

    Returns:
        WriteResult; I/O errors are reported as FAILED, never raised
    """
    target = output_dir / file_name

    try:
        if target.exists():
            return WriteResult(WriteStatus.SKIPPED_EXISTING, target)
        write_bytes(target, data)
    except OSError as e:
        return WriteResult(WriteStatus.FAILED, target, reason=str(e))

    return WriteResult(WriteStatus.WRITTEN, target, bytes_written=len(data))
