"""Unit tests for ffutil — binary lookup, process running and probing."""

import logging
from fractions import Fraction
from pathlib import Path

import pytest

from keycut import ffutil
from keycut.ffutil import (
    ConfigurationError,
    FFmpegNotFoundError,
    ProcessAbortedError,
    ProcessError,
    get_binary_path,
    get_ff_command_line,
    parse_rational,
)


# ---------------------------------------------------------------------------
# Command line rendering and binary lookup
# ---------------------------------------------------------------------------

class TestGetFfCommandLine:
    def test_plain_args_unquoted(self):
        assert get_ff_command_line("ffmpeg", ["-c", "copy", "-map", "0"]) == "ffmpeg -c copy -map 0"

    def test_special_characters_quoted(self):
        line = get_ff_command_line("ffmpeg", ["-i", "my video.mp4", "-ss", "5.00000", "-map", "0:1"])
        assert line == "ffmpeg -i 'my video.mp4' -ss '5.00000' -map '0:1'"

    def test_underscore_and_dash_are_safe(self):
        assert get_ff_command_line("ffprobe", ["-show_entries"]) == "ffprobe -show_entries"


class TestGetBinaryPath:
    def test_unsupported_platform(self):
        with pytest.raises(ConfigurationError, match="Unsupported platform"):
            get_binary_path("ffmpeg", bin_root="/opt/bin", platform="sunos5")

    def test_bundled_linux(self):
        path = get_binary_path("ffprobe", bin_root="/opt/bin", platform="linux")
        assert Path(path) == Path("/opt/bin/linux/x64/ffprobe")

    def test_bundled_windows_adds_exe(self):
        path = get_binary_path("ffmpeg", bin_root="/opt/bin", platform="win32")
        assert Path(path) == Path("/opt/bin/win32/x64/ffmpeg.exe")

    def test_env_bin_root(self, monkeypatch):
        monkeypatch.setenv("KEYCUT_BIN_DIR", "/srv/ff")
        path = get_binary_path("ffmpeg", platform="darwin")
        assert Path(path) == Path("/srv/ff/darwin/x64/ffmpeg")

    def test_falls_back_to_path(self, monkeypatch):
        monkeypatch.delenv("KEYCUT_BIN_DIR", raising=False)
        monkeypatch.setattr("keycut.ffutil.shutil.which", lambda name: f"/usr/local/bin/{name}")
        assert get_binary_path("ffmpeg", platform="linux") == "/usr/local/bin/ffmpeg"

    def test_not_on_path(self, monkeypatch):
        monkeypatch.delenv("KEYCUT_BIN_DIR", raising=False)
        monkeypatch.setattr("keycut.ffutil.shutil.which", lambda name: None)
        with pytest.raises(FFmpegNotFoundError, match="ffprobe not found"):
            get_binary_path("ffprobe", platform="linux")

    def test_check_ffmpeg_missing_bundle(self, tmp_path):
        with pytest.raises(FFmpegNotFoundError):
            ffutil.check_ffmpeg(bin_root=tmp_path)


# ---------------------------------------------------------------------------
# run / start (faked Popen)
# ---------------------------------------------------------------------------

class TestRun:
    def test_returns_stdout(self, ff):
        ff.push(stdout=b"hello")
        result = ffutil.run(ffutil.TRANSCODE, ["-version"])
        assert result.stdout == b"hello"
        assert result.returncode == 0
        assert ff.calls == [["/usr/bin/ffmpeg", "-version"]]

    def test_logs_command_line(self, ff, caplog):
        caplog.set_level(logging.INFO, logger="keycut.ffutil")
        ffutil.run(ffutil.PROBE, ["-i", "a b.mp4"])
        assert "ffprobe -i 'a b.mp4'" in caplog.text

    def test_nonzero_exit_raises(self, ff):
        ff.push(stderr="first\nin.mp4: No such file or directory\n", returncode=1)
        with pytest.raises(ProcessError, match="No such file") as exc_info:
            ffutil.run(ffutil.TRANSCODE, ["-i", "in.mp4"])
        assert exc_info.value.returncode == 1
        assert "first" in exc_info.value.stderr
        assert exc_info.value.cmd == ["ffmpeg", "-i", "in.mp4"]

    def test_killed_process_is_aborted(self, ff):
        ff.push(returncode=-15)
        with pytest.raises(ProcessAbortedError):
            ffutil.run(ffutil.TRANSCODE, ["-i", "in.mp4"])

    def test_spawn_failure_raises(self, ff, monkeypatch):
        def boom(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr("keycut.ffutil.subprocess.Popen", boom)
        with pytest.raises(ProcessError, match="Failed to start ffmpeg"):
            ffutil.run(ffutil.TRANSCODE, ["-version"])

    def test_input_data_written_to_stdin(self, ff):
        ffutil.run(ffutil.TRANSCODE, ["-i", "-"], input_data=b"file 'a.mp4'")
        stdin = ff.popens[0].stdin
        stdin.write.assert_called_once_with(b"file 'a.mp4'")
        stdin.close.assert_called_once()


class TestStart:
    def test_lines_split_on_carriage_return(self, ff):
        ff.push(stderr=b"Input #0\nframe=1 time=00:00:01.00 \rframe=2 time=00:00:02.00 \r\nend\n")
        lines: list[str] = []
        ffutil.start(ffutil.TRANSCODE, ["-i", "x"], on_line=lines.append).wait()
        assert lines == [
            "Input #0",
            "frame=1 time=00:00:01.00 ",
            "frame=2 time=00:00:02.00 ",
            "end",
        ]

    def test_terminate_then_wait_raises_aborted(self, ff):
        process = ffutil.start(ffutil.TRANSCODE, ["-i", "x"])
        process.terminate()
        ff.popens[0].terminate.assert_called_once()
        with pytest.raises(ProcessAbortedError):
            process.wait()

    def test_terminate_after_exit_keeps_success(self, ff):
        ff.push(stdout=b"done")
        process = ffutil.start(ffutil.TRANSCODE, ["-i", "x"])
        ff.popens[0].poll.return_value = 0
        process.terminate()
        ff.popens[0].terminate.assert_not_called()
        assert process.wait().stdout == b"done"


# ---------------------------------------------------------------------------
# Probing
# ---------------------------------------------------------------------------

PROBE_JSON = {
    "format": {"duration": "60.0", "format_name": "mov,mp4,m4a,3gp,3g2,mj2"},
    "streams": [
        {"index": 0, "codec_type": "video", "codec_name": "h264", "avg_frame_rate": "30000/1001"},
        {"index": 1, "codec_type": "audio", "codec_name": "aac", "avg_frame_rate": "0/0"},
        {"index": 2, "codec_type": "data", "codec_tag_string": "tmcd"},
    ],
}


class TestProbe:
    def test_basic(self, ff):
        ff.push(stdout=PROBE_JSON)
        result = ffutil.probe(Path("video.mp4"))
        assert result.duration == 60.0
        assert result.format_name == "mov,mp4,m4a,3gp,3g2,mj2"
        assert [s.codec_type for s in result.streams] == ["video", "audio", "data"]
        assert result.streams[0].avg_frame_rate == Fraction(30000, 1001)
        assert result.streams[1].avg_frame_rate is None
        assert result.streams[2].codec_name is None
        assert result.streams[2].codec_tag_string == "tmcd"

    def test_get_duration(self, ff):
        ff.push(stdout={"format": {"duration": "12.345"}})
        assert ffutil.get_duration(Path("a.mkv")) == 12.345
        assert "format=duration" in ff.args[0]

    def test_get_all_streams(self, ff):
        ff.push(stdout=PROBE_JSON)
        streams = ffutil.get_all_streams(Path("a.mp4"))
        assert [s.index for s in streams] == [0, 1, 2]
        assert ff.args[0][:4] == ["-of", "json", "-show_entries", "stream"]

    def test_probe_failure(self, ff):
        ff.push(stderr="Invalid data found when processing input", returncode=1)
        with pytest.raises(ProcessError, match="Invalid data"):
            ffutil.probe(Path("broken.mp4"))


class TestParseRational:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("25/1", Fraction(25)),
            ("30000/1001", Fraction(30000, 1001)),
            ("0/0", None),
            ("", None),
            (None, None),
            ("N/A", None),
        ],
    )
    def test_values(self, value, expected):
        assert parse_rational(value) == expected
