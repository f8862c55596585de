"""
shardwav - Audio extraction from columnar dataset exports.

Reads Parquet or Arrow stream shards of a speech dataset, writes every
embedded audio payload to its own file, and optionally records a
`file_name,transcription` CSV index: shard resolution → streaming read →
record normalization → concurrent idempotent writes → metadata CSV.
"""

__version__ = "0.1.0"
