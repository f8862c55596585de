"""Tests for shardwav.dispatch - bounded concurrent extraction."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from shardwav.dispatch import DUPLICATE_NAME_REASON, MetadataRow, dispatch_shard
from shardwav.exceptions import ShardReadError
from shardwav.readers.base import RawRow
from shardwav.writer import WriteResult, WriteStatus


def raw_rows(count: int, prefix: str = "clip") -> list[RawRow]:
    return [
        RawRow(
            index=i,
            audio={"bytes": f"{prefix}{i}".encode(), "path": f"dir/{prefix}_{i:03d}.wav"},
            transcription=f"text {i}",
        )
        for i in range(count)
    ]


class TrackingExecutor(ThreadPoolExecutor):
    """ThreadPoolExecutor that records the peak number of unfinished tasks."""

    def __init__(self, max_workers: int) -> None:
        super().__init__(max_workers=max_workers)
        self._outstanding = 0
        self.peak = 0
        self._count_lock = threading.Lock()

    def submit(self, fn, /, *args, **kwargs):
        with self._count_lock:
            self._outstanding += 1
            self.peak = max(self.peak, self._outstanding)

        def tracked():
            try:
                return fn(*args, **kwargs)
            finally:
                with self._count_lock:
                    self._outstanding -= 1

        return super().submit(tracked)


class TestDispatchShard:
    def test_writes_all_records(self, output_dir: Path) -> None:
        with ThreadPoolExecutor(max_workers=4) as executor:
            result = dispatch_shard(raw_rows(20), output_dir, executor, max_in_flight=4)

        assert result.written == 20
        assert result.skipped == 0
        assert result.failed == 0
        assert len(list(output_dir.iterdir())) == 20
        assert (output_dir / "clip_007.wav").read_bytes() == b"clip7"
        assert result.bytes_written == sum(len(f"clip{i}") for i in range(20))

    def test_metadata_in_source_order(self, output_dir: Path, monkeypatch) -> None:
        from shardwav import dispatch

        original = dispatch.write_audio_file

        def slow_for_early_rows(output_dir, file_name, data):
            # Early rows finish last.
            index = int(file_name.split("_")[1].split(".")[0])
            time.sleep(max(0, 10 - index) * 0.005)
            return original(output_dir, file_name, data)

        monkeypatch.setattr(dispatch, "write_audio_file", slow_for_early_rows)

        with ThreadPoolExecutor(max_workers=8) as executor:
            result = dispatch_shard(raw_rows(12), output_dir, executor, max_in_flight=8)

        assert [m.file_name for m in result.metadata] == [f"clip_{i:03d}.wav" for i in range(12)]
        assert result.metadata[0] == MetadataRow("clip_000.wav", "text 0")

    def test_in_flight_is_bounded(self, output_dir: Path) -> None:
        executor = TrackingExecutor(max_workers=2)
        try:
            result = dispatch_shard(raw_rows(50), output_dir, executor, max_in_flight=2)
        finally:
            executor.shutdown(wait=True)

        assert result.written == 50
        assert executor.peak <= 2

    def test_rows_pulled_lazily(self, output_dir: Path) -> None:
        pulled = []

        def rows():
            for r in raw_rows(30):
                pulled.append(r.index)
                yield r

        seen_ahead = []

        def watch(rows_iter):
            for r in rows_iter:
                seen_ahead.append(len(pulled) - len(list(output_dir.iterdir())))
                yield r

        with ThreadPoolExecutor(max_workers=1) as executor:
            dispatch_shard(watch(rows()), output_dir, executor, max_in_flight=1)

        # With one slot, the reader is never more than a couple of rows ahead of the disk.
        assert max(seen_ahead) <= 2

    def test_undecodable_rows_counted_not_fatal(self, output_dir: Path) -> None:
        rows = raw_rows(3)
        rows.insert(1, RawRow(index=99, audio={"bytes": None, "path": "x.wav"}))
        rows.insert(2, RawRow(index=100, audio=None))

        with ThreadPoolExecutor(max_workers=2) as executor:
            result = dispatch_shard(rows, output_dir, executor, max_in_flight=2)

        assert result.written == 3
        assert result.failed == 2
        assert {e["row"] for e in result.errors} == {99, 100}
        assert not (output_dir / "x.wav").exists()

    def test_existing_files_skipped_and_kept_in_metadata(self, output_dir: Path) -> None:
        (output_dir / "clip_001.wav").write_bytes(b"already here")

        with ThreadPoolExecutor(max_workers=2) as executor:
            result = dispatch_shard(raw_rows(3), output_dir, executor, max_in_flight=2)

        assert result.written == 2
        assert result.skipped == 1
        assert [m.file_name for m in result.metadata] == [
            "clip_000.wav",
            "clip_001.wav",
            "clip_002.wav",
        ]

    def test_rows_without_transcription_have_no_metadata(self, output_dir: Path) -> None:
        rows = [
            RawRow(0, {"bytes": b"a", "path": "a.wav"}, "hello"),
            RawRow(1, {"bytes": b"b", "path": "b.wav"}, ""),
            RawRow(2, {"bytes": b"c", "path": "c.wav"}, None),
        ]

        with ThreadPoolExecutor(max_workers=2) as executor:
            result = dispatch_shard(rows, output_dir, executor, max_in_flight=2)

        assert result.written == 3
        assert result.metadata == [MetadataRow("a.wav", "hello")]

    def test_failed_write_does_not_stop_siblings(self, output_dir: Path, monkeypatch) -> None:
        from shardwav import dispatch

        original = dispatch.write_audio_file

        def flaky(output_dir, file_name, data):
            if file_name == "clip_002.wav":
                return WriteResult(WriteStatus.FAILED, output_dir / file_name, reason="disk full")
            if file_name == "clip_004.wav":
                raise RuntimeError("boom")
            return original(output_dir, file_name, data)

        monkeypatch.setattr(dispatch, "write_audio_file", flaky)

        with ThreadPoolExecutor(max_workers=3) as executor:
            result = dispatch_shard(raw_rows(6), output_dir, executor, max_in_flight=3)

        assert result.written == 4
        assert result.failed == 2
        assert "clip_002.wav" not in [m.file_name for m in result.metadata]
        reasons = " ".join(e["error"] for e in result.errors)
        assert "disk full" in reasons
        assert "boom" in reasons

    def test_duplicate_names_in_shard_fail(self, output_dir: Path) -> None:
        rows = [
            RawRow(0, {"bytes": b"one", "path": "a/x.wav"}, "first"),
            RawRow(1, {"bytes": b"two", "path": "b/x.wav"}, "second"),
        ]

        with ThreadPoolExecutor(max_workers=2) as executor:
            result = dispatch_shard(rows, output_dir, executor, 2)

        assert result.written == 1
        assert result.failed == 1
        assert DUPLICATE_NAME_REASON in result.errors[0]["error"]
        assert (output_dir / "x.wav").read_bytes() == b"one"
        assert result.metadata == [MetadataRow("x.wav", "first")]

    def test_names_are_not_claimed_across_calls(self, output_dir: Path) -> None:
        first = [RawRow(0, {"bytes": b"one", "path": "a/x.wav"}, "first")]
        second = [RawRow(0, {"bytes": b"two", "path": "b/x.wav"}, "second")]

        with ThreadPoolExecutor(max_workers=2) as executor:
            dispatch_shard(first, output_dir, executor, 2)
            result = dispatch_shard(second, output_dir, executor, 2)

        assert result.skipped == 1
        assert result.failed == 0
        assert (output_dir / "x.wav").read_bytes() == b"one"
        assert result.metadata == [MetadataRow("x.wav", "second")]

    def test_reader_error_waits_for_pending_writes(self, output_dir: Path) -> None:
        def rows():
            yield from raw_rows(3)
            raise ShardReadError(Path("shard.parquet"), "truncated")

        with ThreadPoolExecutor(max_workers=2) as executor:
            with pytest.raises(ShardReadError) as exc_info:
                dispatch_shard(rows(), output_dir, executor, max_in_flight=2)

        assert sorted(p.name for p in output_dir.iterdir()) == [
            "clip_000.wav",
            "clip_001.wav",
            "clip_002.wav",
        ]
        partial = exc_info.value.result
        assert partial is not None
        assert partial.written == 3
        assert [row.file_name for row in partial.metadata] == [
            "clip_000.wav",
            "clip_001.wav",
            "clip_002.wav",
        ]

    def test_invalid_in_flight_limit(self, output_dir: Path) -> None:
        with ThreadPoolExecutor(max_workers=1) as executor:
            with pytest.raises(ValueError):
                dispatch_shard([], output_dir, executor, max_in_flight=0)
