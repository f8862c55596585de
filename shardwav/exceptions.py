"""
shardwav.exceptions - Custom exception classes.

All shardwav-specific exceptions inherit from ShardwavError.
"""

from __future__ import annotations

from pathlib import Path


class ShardwavError(Exception):
    """Base exception for all shardwav errors."""

    pass


class ConfigError(ShardwavError):
    """Configuration loading or validation error."""

    pass


class ValidationError(ShardwavError):
    """Pre-flight environment check failed."""

    pass


class ShardError(ShardwavError):
    """Fatal error for a single shard; processing of that shard stops."""

    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        # ExtractionResult for rows handled before the failure, if any
        self.result = None
        super().__init__(f"{path}: {message}")


class ShardReadError(ShardError):
    """Shard missing, unreadable, or not in the declared format."""

    pass


class SchemaError(ShardError):
    """Shard schema lacks the audio column or its bytes/path leaves."""

    pass


class RecordError(ShardwavError):
    """A single row could not be turned into a record. Not fatal."""

    def __init__(self, index: int, message: str):
        self.index = index
        self.message = message
        super().__init__(f"row {index}: {message}")


class MetadataError(ShardwavError):
    """The metadata CSV could not be written."""

    pass
