"""Unit tests for the stream-copy cut planner."""

from pathlib import Path
from unittest.mock import patch

import pytest

from keycut.editors.cut import InvalidCutError, cut, plan_cut
from keycut.ffutil import ProcessError
from keycut.models import StreamSelection

SOURCE = StreamSelection(path=Path("in.mp4"), stream_ids=[0, 1])


def _value(args: list[str], flag: str) -> str:
    return args[args.index(flag) + 1]


# ---------------------------------------------------------------------------
# plan_cut (pure argument building)
# ---------------------------------------------------------------------------

class TestPlanCutTrim:
    def test_full_range_omits_trim(self):
        args = plan_cut("mp4", 0.0, 60.0, 60.0, [SOURCE], Path("out.mp4"))
        assert "-ss" not in args
        assert "-t" not in args

    def test_start_only(self):
        args = plan_cut("mp4", 12.5, 60.0, 60.0, [SOURCE], Path("out.mp4"))
        assert _value(args, "-ss") == "12.50000"
        assert "-t" not in args

    def test_end_only(self):
        args = plan_cut("mp4", 0.0, 20.0, 60.0, [SOURCE], Path("out.mp4"))
        assert "-ss" not in args
        assert _value(args, "-t") == "20.00000"

    def test_duration_is_segment_length(self):
        args = plan_cut("mp4", 5.0, 7.123456, 60.0, [SOURCE], Path("out.mp4"))
        assert _value(args, "-ss") == "5.00000"
        assert _value(args, "-t") == "2.12346"


class TestPlanCutSeekMode:
    def test_keyframe_mode_seeks_before_input(self):
        args = plan_cut("mp4", 5.0, 10.0, 60.0, [SOURCE], Path("out.mp4"), keyframe_cut=True)
        assert args[:8] == [
            "-ss", "5.00000",
            "-i", "in.mp4",
            "-t", "5.00000",
            "-avoid_negative_ts", "make_zero",
        ]

    def test_accurate_mode_seeks_after_input(self):
        args = plan_cut("mp4", 5.0, 10.0, 60.0, [SOURCE], Path("out.mp4"), keyframe_cut=False)
        assert args[:6] == ["-i", "in.mp4", "-ss", "5.00000", "-t", "5.00000"]
        assert "-avoid_negative_ts" not in args


class TestPlanCutStreams:
    def test_multi_input_mapping(self):
        selections = [
            StreamSelection(Path("a.mp4"), [0, 2]),
            StreamSelection(Path("b.mp4"), []),
            StreamSelection(Path("c.m4a"), [1]),
        ]
        args = plan_cut("matroska", 0.0, 60.0, 60.0, selections, Path("out.mkv"))
        inputs = [args[i + 1] for i, a in enumerate(args) if a == "-i"]
        maps = [args[i + 1] for i, a in enumerate(args) if a == "-map"]
        assert inputs == ["a.mp4", "c.m4a"]
        assert maps == ["0:0", "0:2", "1:1"]

    def test_copy_metadata_and_output(self):
        args = plan_cut("mp4", 0.0, 60.0, 60.0, [SOURCE], Path("out.mp4"))
        assert _value(args, "-c") == "copy"
        assert _value(args, "-map_metadata") == "0"
        assert "-ignore_unknown" in args
        assert args[-5:] == ["-ignore_unknown", "-f", "mp4", "-y", "out.mp4"]

    def test_rotation_metadata(self):
        args = plan_cut("mp4", 0.0, 60.0, 60.0, [SOURCE], Path("out.mp4"), rotation=90)
        assert _value(args, "-metadata:s:v:0") == "rotate=90"

    def test_no_rotation_by_default(self):
        args = plan_cut("mp4", 0.0, 60.0, 60.0, [SOURCE], Path("out.mp4"))
        assert "-metadata:s:v:0" not in args


class TestPlanCutValidation:
    @pytest.mark.parametrize(
        "cut_from, cut_to",
        [(-1.0, 5.0), (5.0, 5.0), (8.0, 5.0), (0.0, 61.0)],
    )
    def test_out_of_range(self, cut_from, cut_to):
        with pytest.raises(InvalidCutError):
            plan_cut("mp4", cut_from, cut_to, 60.0, [SOURCE], Path("out.mp4"))


# ---------------------------------------------------------------------------
# cut (faked ffmpeg)
# ---------------------------------------------------------------------------

STDERR = (
    "Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'in.mp4':\n"
    "frame=  60 fps=0.0 q=-1.0 size=     256kB time=00:00:02.00 bitrate=1048.6kbits/s speed=  20x\r"
    "frame= 120 fps=0.0 q=-1.0 Lsize=    512kB time=00:00:04.00 bitrate=1048.6kbits/s speed=  20x\n"
)


class TestCut:
    @patch("keycut.editors.cut.transfer_timestamps")
    def test_runs_ffmpeg_and_reports_progress(self, mock_transfer, ff):
        ff.push(stderr=STDERR)
        progress: list[float] = []
        commands: list[str] = []

        out = cut(
            Path("in.mp4"), "mp4", 5.0, 10.0, 60.0, [SOURCE], Path("out.mp4"),
            on_progress=progress.append,
            append_command_log=commands.append,
        )

        assert out == Path("out.mp4")
        assert progress == [0.0, pytest.approx(0.4), pytest.approx(0.8)]
        assert len(commands) == 1
        assert commands[0].startswith("ffmpeg -ss '5.00000' -i 'in.mp4'")
        assert ff.args[0][:2] == ["-ss", "5.00000"]
        mock_transfer.assert_called_once_with(Path("in.mp4"), Path("out.mp4"))

    @patch("keycut.editors.cut.transfer_timestamps")
    def test_failure_skips_timestamp_transfer(self, mock_transfer, ff):
        ff.push(stderr="Conversion failed!\n", returncode=1)
        with pytest.raises(ProcessError, match="Conversion failed"):
            cut(Path("in.mp4"), "mp4", 5.0, 10.0, 60.0, [SOURCE], Path("out.mp4"))
        mock_transfer.assert_not_called()

    @patch("keycut.editors.cut.transfer_timestamps")
    def test_on_start_receives_process(self, mock_transfer, ff):
        started = []
        cut(Path("in.mp4"), "mp4", 0.0, 60.0, 60.0, [SOURCE], Path("out.mp4"), on_start=started.append)
        assert len(started) == 1
        assert started[0].kind == "ffmpeg"
