"""Lossless single-segment cut, planned and run as one stream-copy ffmpeg call."""

import logging
from pathlib import Path
from typing import Callable, Sequence

from keycut import ffutil
from keycut.models import StreamSelection
from keycut.paths import transfer_timestamps
from keycut.progress import ProgressParser

logger = logging.getLogger(__name__)


class InvalidCutError(ValueError):
    pass


def is_cutting_start(cut_from: float) -> bool:
    return cut_from > 0


def is_cutting_end(cut_to: float, duration: float) -> bool:
    return cut_to < duration


def validate_cut(cut_from: float, cut_to: float, duration: float) -> None:
    """Reject segments outside ``0 <= cut_from < cut_to <= duration``."""
    if cut_from < 0:
        raise InvalidCutError(f"Cut start {cut_from} is before the start of the file")
    if cut_to <= cut_from:
        raise InvalidCutError(f"Cut end {cut_to} is not after cut start {cut_from}")
    if cut_to > duration:
        raise InvalidCutError(f"Cut end {cut_to} is past the file duration {duration}")


def plan_cut(
    output_format: str,
    cut_from: float,
    cut_to: float,
    duration: float,
    selections: Sequence[StreamSelection],
    output_path: Path,
    keyframe_cut: bool = True,
    rotation: int | None = None,
) -> list[str]:
    """Build the ffmpeg arguments for one stream-copy cut.

    Trim arguments are left out at the true start/end of the file. In
    keyframe-cut mode ``-ss`` goes before the inputs (input seeking) and
    negative timestamps are shifted to zero.
    """
    validate_cut(cut_from, cut_to, duration)

    cut_duration = cut_to - cut_from
    cut_from_args = ["-ss", f"{cut_from:.5f}"] if is_cutting_start(cut_from) else []
    cut_to_args = ["-t", f"{cut_duration:.5f}"] if is_cutting_end(cut_to, duration) else []

    selected = [s for s in selections if s.stream_ids]
    input_args = [arg for s in selected for arg in ("-i", str(s.path))]

    if keyframe_cut:
        input_cut_args = [
            *cut_from_args,
            *input_args,
            *cut_to_args,
            "-avoid_negative_ts", "make_zero",
        ]
    else:
        input_cut_args = [*input_args, *cut_from_args, *cut_to_args]

    map_args = [
        arg
        for file_index, s in enumerate(selected)
        for stream_id in s.stream_ids
        for arg in ("-map", f"{file_index}:{stream_id}")
    ]
    rotation_args = ["-metadata:s:v:0", f"rotate={rotation}"] if rotation is not None else []

    return [
        *input_cut_args,
        "-c", "copy",
        *map_args,
        "-map_metadata", "0",
        # keep container metadata under stream copy
        "-movflags", "use_metadata_tags",
        "-ignore_unknown",
        *rotation_args,
        "-f", output_format, "-y", str(output_path),
    ]


def cut(
    input_path: Path,
    output_format: str,
    cut_from: float,
    cut_to: float,
    duration: float,
    selections: Sequence[StreamSelection],
    output_path: Path,
    keyframe_cut: bool = True,
    rotation: int | None = None,
    on_progress: Callable[[float], None] | None = None,
    append_command_log: Callable[[str], None] | None = None,
    on_start: Callable[[ffutil.FFProcess], None] | None = None,
) -> Path:
    """Cut ``[cut_from, cut_to]`` out of ``input_path`` without re-encoding.

    ``on_start`` receives the running process so the caller can terminate it.
    """
    logger.info("Cutting %s from %.3f to %.3f", input_path, cut_from, cut_to)
    args = plan_cut(
        output_format, cut_from, cut_to, duration, selections, output_path,
        keyframe_cut=keyframe_cut, rotation=rotation,
    )

    if append_command_log:
        append_command_log(ffutil.get_ff_command_line(ffutil.TRANSCODE, args))

    report = on_progress or (lambda frac: None)
    report(0.0)

    parser = ProgressParser(cut_to - cut_from, report)
    process = ffutil.start(ffutil.TRANSCODE, args, on_line=parser.feed)
    if on_start:
        on_start(process)
    process.wait()

    transfer_timestamps(input_path, output_path)
    return output_path
