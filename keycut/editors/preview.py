"""Preview helpers: playable proxies and single-frame snapshots."""

import logging
from pathlib import Path

from keycut import ffutil
from keycut.paths import transfer_timestamps

logger = logging.getLogger(__name__)

TRANSPOSE_FILTERS = {
    90: "transpose=2",
    180: "transpose=1,transpose=1",
    270: "transpose=1",
}


def html5ify(
    input_path: Path, output_path: Path, encode_video: bool, encode_audio: bool
) -> Path:
    """Make a browser-friendly proxy, re-encoding only what was asked for."""
    if encode_video:
        video_args = [
            "-vf", "scale=-2:400,format=yuv420p",
            "-sws_flags", "neighbor",
            "-vcodec", "libx264",
            "-profile:v", "baseline",
            "-x264opts", "level=3.0",
            "-preset:v", "ultrafast",
            "-crf", "28",
        ]
    else:
        video_args = ["-vcodec", "copy"]
    audio_args = ["-acodec", "aac", "-b:a", "96k"] if encode_audio else ["-an"]

    ffutil.run(ffutil.TRANSCODE, [
        "-i", str(input_path), *video_args, *audio_args,
        "-y", str(output_path),
    ])
    transfer_timestamps(input_path, output_path)
    return output_path


def html5ify_dummy(input_path: Path, output_path: Path) -> Path:
    """Silent audio file with the source's duration, for seeking in a player."""
    duration = ffutil.get_duration(input_path)
    ffutil.run(ffutil.TRANSCODE, [
        "-f", "lavfi", "-i", "anullsrc=channel_layout=stereo:sample_rate=44100",
        "-t", str(duration),
        "-acodec", "flac",
        "-y", str(output_path),
    ])
    transfer_timestamps(input_path, output_path)
    return output_path


def render_frame(timestamp: float, input_path: Path, rotation: int | None = None) -> bytes:
    """Return the frame at ``timestamp`` as JPEG bytes."""
    args = ["-ss", str(timestamp)]
    if rotation is not None:
        args.append("-noautorotate")
    args += ["-i", str(input_path)]
    if rotation in TRANSPOSE_FILTERS:
        args += ["-vf", TRANSPOSE_FILTERS[rotation]]
    args += ["-f", "image2", "-vframes", "1", "-q:v", "10", "-"]
    return ffutil.run(ffutil.TRANSCODE, args).stdout
