"""
shardwav.validation - Pre-flight checks.

Validates the output location and input shards before any shard is read.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Any

from shardwav.config import ShardFormat
from shardwav.exceptions import ShardReadError, ValidationError


def prepare_output_dir(path: Path) -> Path:
    """Create the output directory if needed and make sure it is writable.

    Args:
        path: Output directory

    Returns:
        The directory path

    Raises:
        ValidationError: If the path is not a directory or cannot be written
    """
    if path.exists() and not path.is_dir():
        raise ValidationError(f"Output path is not a directory: {path}")

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ValidationError(f"Failed to create output directory {path}: {e}") from e

    if not os.access(path, os.W_OK | os.X_OK):
        raise ValidationError(f"Output directory is not writable: {path}")

    return path


def prepare_metadata_file(path: Path) -> Path:
    """Make sure the metadata CSV can be created at `path`.

    Creates missing parent directories. An existing file is fine; it is
    replaced at the end of the run.

    Raises:
        ValidationError: If the path is a directory or its parent cannot be written
    """
    if path.is_dir():
        raise ValidationError(f"Metadata file path is a directory: {path}")

    parent = path.parent
    if parent.exists() and not parent.is_dir():
        raise ValidationError(f"Metadata file parent is not a directory: {parent}")

    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ValidationError(f"Failed to create directory for metadata file {path}: {e}") from e

    if not os.access(parent, os.W_OK | os.X_OK):
        raise ValidationError(f"Metadata file directory is not writable: {parent}")

    return path


def check_disk_space(path: Path, required_bytes: int) -> dict[str, Any]:
    """Check if there's enough disk space at the given path.

    Args:
        path: Path to check (will use parent directory if file)
        required_bytes: Required space in bytes

    Returns:
        Dict with 'available_bytes', 'required_bytes', 'sufficient'

    Raises:
        ValidationError: If free space cannot be determined
    """
    check_path = path.parent if path.is_file() else path

    while not check_path.exists() and check_path != check_path.parent:
        check_path = check_path.parent

    try:
        stat = shutil.disk_usage(check_path)
    except OSError as e:
        raise ValidationError(f"Cannot check disk space: {e}") from e

    return {
        "available_bytes": stat.free,
        "required_bytes": required_bytes,
        "sufficient": stat.free >= required_bytes,
    }


def validate_shard_file(path: Path, fmt: ShardFormat) -> None:
    """Check that a shard path points at a readable file.

    The suffix is not enforced here: a single --input file is read with
    the declared format whatever it is called.

    Raises:
        ShardReadError: If the file is missing or not a regular file
    """
    if not path.exists():
        raise ShardReadError(path, "Input file not found")
    if not path.is_file():
        raise ShardReadError(path, f"Input is not a file (expected {fmt.value} shard)")
