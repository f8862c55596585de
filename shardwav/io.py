"""
shardwav.io - Atomic file writes.

Everything shardwav writes lands in a temporary file next to its target
and is renamed into place, so an interrupted run never leaves a partial
file behind under the final name.
"""

from __future__ import annotations

import tempfile
from pathlib import Path


def write_text(path: Path, content: str, newline: str | None = None) -> None:
    """Write text file atomically with UTF-8 encoding.

    Args:
        path: Destination path
        content: Text content to write
        newline: Passed to open(); use "" to keep line endings verbatim
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        newline=newline,
        dir=path.parent,
        delete=False,
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            tmp.write(content)
        except Exception:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise
    try:
        tmp_path.replace(path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def write_bytes(path: Path, data: bytes) -> None:
    """Write a binary file atomically.

    The temporary file is hidden (dot-prefixed) so a directory listing of
    the output never shows it as an extracted file.

    Args:
        path: Destination path; its parent must already exist
        data: Bytes to write verbatim
    """
    with tempfile.NamedTemporaryFile(
        mode="wb",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            tmp.write(data)
        except Exception:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise
    try:
        tmp_path.replace(path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
