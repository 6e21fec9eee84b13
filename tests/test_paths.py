"""Unit tests for output naming and timestamp transfer."""

import os
from pathlib import Path

from keycut.paths import format_duration, get_out_path, transfer_timestamps


class TestFormatDuration:
    def test_display(self):
        assert format_duration(3725.5) == "01:02:05.500"

    def test_file_name_friendly(self):
        assert format_duration(3725.5, file_name_friendly=True) == "01.02.05.500"

    def test_zero_and_none(self):
        assert format_duration(0) == "00:00:00.000"
        assert format_duration(None) == "00:00:00.000"

    def test_milliseconds_rounded(self):
        assert format_duration(1.2346) == "00:00:01.235"

    def test_rounding_carries_into_seconds(self):
        assert format_duration(5.9996, file_name_friendly=True) == "00.00.06.000"
        assert format_duration(59.9999) == "00:01:00.000"
        assert format_duration(3599.9996) == "01:00:00.000"


class TestGetOutPath:
    def test_next_to_source(self):
        assert get_out_path(None, Path("/v/in.mp4"), "merged.mp4") == Path("/v/in.mp4-merged.mp4")

    def test_custom_dir(self):
        assert get_out_path(Path("/out"), Path("/v/in.mp4"), "x.mkv") == Path("/out/in.mp4-x.mkv")


class TestTransferTimestamps:
    def test_copies_mtime(self, tmp_path):
        src = tmp_path / "src.mp4"
        dst = tmp_path / "dst.mp4"
        src.write_bytes(b"a")
        dst.write_bytes(b"b")
        os.utime(src, (1_000_000_000, 1_100_000_000))

        transfer_timestamps(src, dst)

        assert dst.stat().st_mtime == 1_100_000_000
